import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..auth.security import get_current_tenant, get_current_user, require_permissions
from ..models.models import Tenant, User
from ..schemas.pm import (
    DueType,
    PMCalendarItem,
    PMCompletionCreate,
    PMCompletionResponse,
    PMFrequency,
    PMScheduleCreate,
    PMScheduleDetailResponse,
    PMScheduleListItem,
    PMScheduleResponse,
    PMScheduleUpdate,
    PMStatsResponse,
)
from ..services import pm_projections, pm_schedules

router = APIRouter(prefix="/pm-schedules", tags=["pm"])


def check_calendar_window(month: int, year: int) -> None:
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail="Month must be between 1 and 12")
    if not settings.pm_calendar_min_year <= year <= settings.pm_calendar_max_year:
        raise HTTPException(
            status_code=400,
            detail=f"Year must be between {settings.pm_calendar_min_year} and {settings.pm_calendar_max_year}",
        )


# ---------- PROJECTIONS ----------
@router.get("", response_model=List[PMScheduleListItem])
def list_pm_schedules(
    asset_id: Optional[uuid.UUID] = Query(None),
    location_id: Optional[uuid.UUID] = Query(None),
    frequency: Optional[PMFrequency] = Query(None),
    is_active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _=Depends(require_permissions("pm:read")),
):
    """List PM schedules with filters"""
    return pm_projections.list_schedules(
        db, tenant.id,
        asset_id=asset_id,
        location_id=location_id,
        frequency=frequency.value if frequency else None,
        is_active=is_active,
    )


@router.get("/stats", response_model=PMStatsResponse)
def get_pm_stats(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _=Depends(require_permissions("pm:read")),
):
    return pm_projections.stats(db, tenant.id)


@router.get("/active", response_model=List[PMScheduleResponse])
def get_active_pm_schedules(
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _=Depends(require_permissions("pm:read")),
):
    return pm_projections.active_schedules(db, tenant.id)


@router.get("/due", response_model=List[PMScheduleResponse])
def get_due_pm_schedules(
    type: DueType = Query(DueType.today),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _=Depends(require_permissions("pm:read")),
):
    """Schedules due today, or overdue with type=overdue"""
    if type == DueType.overdue:
        return pm_projections.overdue(db, tenant.id)
    return pm_projections.due_today(db, tenant.id)


@router.get("/calendar", response_model=List[PMCalendarItem])
def get_pm_calendar(
    month: int = Query(...),
    year: int = Query(...),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _=Depends(require_permissions("pm:read")),
):
    check_calendar_window(month, year)
    return pm_projections.calendar(db, tenant.id, month, year)


@router.get("/by-asset/{asset_id}", response_model=List[PMScheduleResponse])
def get_pm_schedules_by_asset(
    asset_id: uuid.UUID,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _=Depends(require_permissions("pm:read")),
):
    return pm_projections.schedules_by_asset(db, tenant.id, asset_id)


@router.get("/by-location/{location_id}", response_model=List[PMScheduleResponse])
def get_pm_schedules_by_location(
    location_id: uuid.UUID,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _=Depends(require_permissions("pm:read")),
):
    return pm_projections.schedules_by_location(db, tenant.id, location_id)


@router.get("/{schedule_id}", response_model=PMScheduleDetailResponse)
def get_pm_schedule(
    schedule_id: uuid.UUID,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _=Depends(require_permissions("pm:read")),
):
    """Get PM schedule detail with its completion history"""
    return pm_projections.schedule_detail(db, tenant.id, schedule_id)


@router.get("/{schedule_id}/completions", response_model=List[PMCompletionResponse])
def get_pm_completions(
    schedule_id: uuid.UUID,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    _=Depends(require_permissions("pm:read")),
):
    return pm_projections.completion_history(db, tenant.id, schedule_id)


# ---------- LIFECYCLE ----------
@router.post("", response_model=PMScheduleResponse, status_code=201)
def create_pm_schedule(
    payload: PMScheduleCreate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(get_current_user),
    _=Depends(require_permissions("pm:write")),
):
    """Create a PM schedule; the first due date is computed from today"""
    schedule = pm_schedules.create_schedule(db, tenant.id, **payload.dict(), actor_id=user.id)
    db.commit()
    db.refresh(schedule)
    return schedule


@router.patch("/{schedule_id}", response_model=PMScheduleResponse)
def update_pm_schedule(
    schedule_id: uuid.UUID,
    payload: PMScheduleUpdate,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(get_current_user),
    _=Depends(require_permissions("pm:write")),
):
    schedule = pm_schedules.update_schedule(
        db, tenant.id, schedule_id, payload.dict(exclude_unset=True), actor_id=user.id
    )
    db.commit()
    db.refresh(schedule)
    return schedule


@router.delete("/{schedule_id}", status_code=204)
def delete_pm_schedule(
    schedule_id: uuid.UUID,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(get_current_user),
    _=Depends(require_permissions("pm:write")),
):
    pm_schedules.delete_schedule(db, tenant.id, schedule_id, actor_id=user.id)
    db.commit()
    return Response(status_code=204)


@router.post("/{schedule_id}/activate", response_model=PMScheduleResponse)
def activate_pm_schedule(
    schedule_id: uuid.UUID,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(get_current_user),
    _=Depends(require_permissions("pm:write")),
):
    schedule = pm_schedules.activate_schedule(db, tenant.id, schedule_id, actor_id=user.id)
    db.commit()
    db.refresh(schedule)
    return schedule


@router.post("/{schedule_id}/deactivate", response_model=PMScheduleResponse)
def deactivate_pm_schedule(
    schedule_id: uuid.UUID,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(get_current_user),
    _=Depends(require_permissions("pm:write")),
):
    schedule = pm_schedules.deactivate_schedule(db, tenant.id, schedule_id, actor_id=user.id)
    db.commit()
    db.refresh(schedule)
    return schedule


@router.post("/{schedule_id}/complete", response_model=PMCompletionResponse, status_code=201)
def complete_pm_schedule(
    schedule_id: uuid.UUID,
    payload: Optional[PMCompletionCreate] = None,
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant),
    user: User = Depends(get_current_user),
    _=Depends(require_permissions("pm:complete", "pm:write")),
):
    """Record a completion and advance the schedule's next due date"""
    payload = payload or PMCompletionCreate()
    completion = pm_schedules.complete_schedule(
        db, tenant.id, schedule_id,
        ticket_id=payload.ticket_id,
        completed_by=user.id,
        checklist_results=payload.checklist_results,
        notes=payload.notes,
    )
    db.commit()
    db.refresh(completion)
    return completion
