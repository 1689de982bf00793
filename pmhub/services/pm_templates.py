"""
PM template catalog.
Templates are tenant-scoped, soft-deleted, and read by the schedule service at creation time.
"""
import uuid
from typing import Any, Dict, List, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.models import PMSchedule, PMTemplate
from .audit import create_audit_log
from .errors import InvalidTemplateError, NotFoundError
from .time_rules import utc_now
from .validation import clean_text, validate_name

logger = structlog.get_logger(__name__)

MAX_DURATION_HOURS = 99.99


def _validate_duration(hours: Optional[float]) -> None:
    if hours is None:
        return
    if hours <= 0:
        raise InvalidTemplateError("Estimated duration must be positive", field="estimated_duration_hours")
    if hours > MAX_DURATION_HOURS:
        raise InvalidTemplateError("Estimated duration must be less than 100 hours", field="estimated_duration_hours")


def _active_templates(db: Session, tenant_id: uuid.UUID):
    return db.query(PMTemplate).filter(
        PMTemplate.tenant_id == tenant_id,
        PMTemplate.deleted_at.is_(None),
    )


def get_template(db: Session, tenant_id: uuid.UUID, template_id: uuid.UUID) -> Optional[PMTemplate]:
    return _active_templates(db, tenant_id).filter(PMTemplate.id == template_id).first()


def require_template(db: Session, tenant_id: uuid.UUID, template_id: uuid.UUID) -> PMTemplate:
    template = get_template(db, tenant_id, template_id)
    if not template:
        raise NotFoundError("PM template not found", field="template_id")
    return template


def list_templates(db: Session, tenant_id: uuid.UUID, category: Optional[str] = None) -> List[PMTemplate]:
    query = _active_templates(db, tenant_id)
    if category:
        query = query.filter(PMTemplate.category == category)
    return query.order_by(PMTemplate.name.asc()).all()


def list_templates_with_schedule_count(
    db: Session,
    tenant_id: uuid.UUID,
    category: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Templates with the number of live schedules created from each."""
    counts = dict(
        db.query(PMSchedule.template_id, func.count(PMSchedule.id))
        .filter(
            PMSchedule.tenant_id == tenant_id,
            PMSchedule.template_id.isnot(None),
            PMSchedule.deleted_at.is_(None),
        )
        .group_by(PMSchedule.template_id)
        .all()
    )
    return [
        {"template": template, "schedule_count": counts.get(template.id, 0)}
        for template in list_templates(db, tenant_id, category)
    ]


def create_template(
    db: Session,
    tenant_id: uuid.UUID,
    *,
    name: str,
    description: Optional[str] = None,
    category: Optional[str] = None,
    checklist: Optional[Dict[str, Any]] = None,
    estimated_duration_hours: Optional[float] = None,
    default_vendor_id: Optional[uuid.UUID] = None,
    actor_id: Optional[uuid.UUID] = None,
) -> PMTemplate:
    clean_name = validate_name(name, "Template")
    _validate_duration(estimated_duration_hours)

    template = PMTemplate(
        tenant_id=tenant_id,
        name=clean_name,
        description=clean_text(description),
        category=clean_text(category),
        checklist=checklist or None,
        estimated_duration_hours=estimated_duration_hours or None,
        default_vendor_id=default_vendor_id,
    )
    db.add(template)
    db.flush()
    create_audit_log(db, tenant_id, "pm_template", template.id, "CREATE", actor_id=actor_id, source="api")
    logger.info("pm_template_created", tenant_id=str(tenant_id), template_id=str(template.id))
    return template


def update_template(
    db: Session,
    tenant_id: uuid.UUID,
    template_id: uuid.UUID,
    data: Dict[str, Any],
    *,
    actor_id: Optional[uuid.UUID] = None,
) -> PMTemplate:
    template = require_template(db, tenant_id, template_id)

    if "name" in data:
        data["name"] = validate_name(data["name"], "Template")
    if "estimated_duration_hours" in data:
        _validate_duration(data["estimated_duration_hours"])
    for key in ("description", "category"):
        if key in data:
            data[key] = clean_text(data[key])

    before = {k: getattr(template, k) for k in data}
    for key, value in data.items():
        setattr(template, key, value)
    template.updated_at = utc_now()
    db.flush()

    create_audit_log(
        db, tenant_id, "pm_template", template.id, "UPDATE",
        actor_id=actor_id, source="api",
        changes_json={"before": before, "after": data},
    )
    logger.info("pm_template_updated", tenant_id=str(tenant_id), template_id=str(template.id), fields=sorted(data))
    return template


def delete_template(
    db: Session,
    tenant_id: uuid.UUID,
    template_id: uuid.UUID,
    *,
    actor_id: Optional[uuid.UUID] = None,
) -> None:
    template = require_template(db, tenant_id, template_id)
    template.deleted_at = utc_now()
    db.flush()
    create_audit_log(db, tenant_id, "pm_template", template.id, "DELETE", actor_id=actor_id, source="api")
    logger.info("pm_template_deleted", tenant_id=str(tenant_id), template_id=str(template.id))
