from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..auth.security import get_current_tenant, require_permissions
from ..schemas.pm import PMCalendarItem
from ..services import pm_projections
from .pm_schedules import check_calendar_window


router = APIRouter(prefix="/calendar", tags=["calendar"])


@router.get("/pm", response_model=List[PMCalendarItem])
def calendar_pm(
    month: int = Query(...),
    year: int = Query(...),
    db: Session = Depends(get_db),
    tenant=Depends(get_current_tenant),
    _=Depends(require_permissions("pm:read")),
):
    """PM due dates for the shared calendar view"""
    check_calendar_window(month, year)
    return pm_projections.calendar(db, tenant.id, month, year)
