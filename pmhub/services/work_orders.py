import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..models.models import WorkOrder
from .errors import NotFoundError


def get_work_order(db: Session, tenant_id: uuid.UUID, work_order_id: uuid.UUID) -> WorkOrder:
    work_order = (
        db.query(WorkOrder)
        .filter(WorkOrder.id == work_order_id, WorkOrder.tenant_id == tenant_id)
        .first()
    )
    if not work_order:
        raise NotFoundError("Work order not found", field="ticket_id")
    return work_order


def close_work_order_for_completion(
    db: Session,
    work_order: WorkOrder,
    *,
    closed_by_id: Optional[uuid.UUID],
    now: datetime,
) -> None:
    if work_order.status in ("closed", "cancelled"):
        return
    work_order.status = "closed"
    work_order.closed_at = now
    work_order.closed_by = closed_by_id
    work_order.updated_at = now
