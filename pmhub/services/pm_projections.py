"""
Read-only views over PM schedules: per-target, active, due, overdue, calendar window and stats.
All views exclude soft-deleted schedules. "Today" is the tenant's local calendar day.
"""
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import PMCompletion, PMSchedule
from .errors import NotFoundError
from .targets import resolve_target_names
from .time_rules import month_bounds, tenant_today


def _live(db: Session, tenant_id: uuid.UUID):
    return db.query(PMSchedule).filter(
        PMSchedule.tenant_id == tenant_id,
        PMSchedule.deleted_at.is_(None),
    )


def _last_completed(db: Session, schedule_ids: List[uuid.UUID]) -> Dict[uuid.UUID, date]:
    if not schedule_ids:
        return {}
    rows = (
        db.query(PMCompletion.schedule_id, func.max(PMCompletion.completed_date))
        .filter(PMCompletion.schedule_id.in_(schedule_ids))
        .group_by(PMCompletion.schedule_id)
        .all()
    )
    return dict(rows)


def _enrich(db: Session, tenant_id: uuid.UUID, schedules: List[PMSchedule]) -> List[Dict[str, Any]]:
    asset_names, location_names = resolve_target_names(
        db, tenant_id,
        [s.asset_id for s in schedules],
        [s.location_id for s in schedules],
    )
    last_done = _last_completed(db, [s.id for s in schedules])
    items = []
    for s in schedules:
        item = {column.name: getattr(s, column.name) for column in PMSchedule.__table__.columns}
        item["asset_name"] = asset_names.get(s.asset_id)
        item["location_name"] = location_names.get(s.location_id)
        item["last_completed_at"] = last_done.get(s.id)
        items.append(item)
    return items


def list_schedules(
    db: Session,
    tenant_id: uuid.UUID,
    *,
    asset_id: Optional[uuid.UUID] = None,
    location_id: Optional[uuid.UUID] = None,
    frequency: Optional[str] = None,
    is_active: Optional[bool] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Filtered listing ordered by next due date, with target names and last completion."""
    query = _live(db, tenant_id)
    if asset_id:
        query = query.filter(PMSchedule.asset_id == asset_id)
    if location_id:
        query = query.filter(PMSchedule.location_id == location_id)
    if frequency:
        query = query.filter(PMSchedule.frequency == frequency)
    if is_active is not None:
        query = query.filter(PMSchedule.is_active == is_active)
    schedules = (
        query.order_by(PMSchedule.next_due_date.asc(), PMSchedule.name.asc())
        .limit(limit or settings.pm_list_limit)
        .all()
    )
    return _enrich(db, tenant_id, schedules)


def schedules_by_asset(db: Session, tenant_id: uuid.UUID, asset_id: uuid.UUID) -> List[PMSchedule]:
    return (
        _live(db, tenant_id)
        .filter(PMSchedule.asset_id == asset_id)
        .order_by(PMSchedule.next_due_date.asc())
        .all()
    )


def schedules_by_location(db: Session, tenant_id: uuid.UUID, location_id: uuid.UUID) -> List[PMSchedule]:
    return (
        _live(db, tenant_id)
        .filter(PMSchedule.location_id == location_id)
        .order_by(PMSchedule.next_due_date.asc())
        .all()
    )


def active_schedules(db: Session, tenant_id: uuid.UUID) -> List[PMSchedule]:
    return (
        _live(db, tenant_id)
        .filter(PMSchedule.is_active.is_(True))
        .order_by(PMSchedule.next_due_date.asc())
        .all()
    )


def due_today(db: Session, tenant_id: uuid.UUID, *, now: Optional[datetime] = None) -> List[PMSchedule]:
    today = tenant_today(db, tenant_id, now)
    return (
        _live(db, tenant_id)
        .filter(PMSchedule.is_active.is_(True), PMSchedule.next_due_date == today)
        .order_by(PMSchedule.name.asc())
        .all()
    )


def overdue(db: Session, tenant_id: uuid.UUID, *, now: Optional[datetime] = None) -> List[PMSchedule]:
    today = tenant_today(db, tenant_id, now)
    return (
        _live(db, tenant_id)
        .filter(PMSchedule.is_active.is_(True), PMSchedule.next_due_date < today)
        .order_by(PMSchedule.next_due_date.asc())
        .all()
    )


def calendar(db: Session, tenant_id: uuid.UUID, month: int, year: int) -> List[Dict[str, Any]]:
    """
    Active schedules whose next due date falls inside the given month.

    Returns:
        List of calendar items sorted by due date, each naming its target
    """
    first, last = month_bounds(month, year)
    schedules = (
        _live(db, tenant_id)
        .filter(
            PMSchedule.is_active.is_(True),
            PMSchedule.next_due_date >= first,
            PMSchedule.next_due_date <= last,
        )
        .order_by(PMSchedule.next_due_date.asc(), PMSchedule.name.asc())
        .all()
    )
    asset_names, location_names = resolve_target_names(
        db, tenant_id,
        [s.asset_id for s in schedules],
        [s.location_id for s in schedules],
    )
    items = []
    for s in schedules:
        if s.asset_id:
            target_type, target_name = "asset", asset_names.get(s.asset_id)
        else:
            target_type, target_name = "location", location_names.get(s.location_id)
        items.append({
            "schedule_id": s.id,
            "name": s.name,
            "target_type": target_type,
            "target_name": target_name,
            "frequency": s.frequency,
            "due_date": s.next_due_date,
        })
    return items


def stats(db: Session, tenant_id: uuid.UUID, *, now: Optional[datetime] = None) -> Dict[str, int]:
    today = tenant_today(db, tenant_id, now)
    base = _live(db, tenant_id)
    active = base.filter(PMSchedule.is_active.is_(True))
    first, last = month_bounds(today.month, today.year)
    completed_this_month = (
        db.query(func.count(PMCompletion.id))
        .join(PMSchedule, PMSchedule.id == PMCompletion.schedule_id)
        .filter(
            PMSchedule.tenant_id == tenant_id,
            PMCompletion.completed_date >= first,
            PMCompletion.completed_date <= last,
        )
        .scalar()
    )
    return {
        "total": base.count(),
        "active": active.count(),
        "due_today": active.filter(PMSchedule.next_due_date == today).count(),
        "overdue": active.filter(PMSchedule.next_due_date < today).count(),
        "completed_this_month": completed_this_month or 0,
    }


def schedule_detail(db: Session, tenant_id: uuid.UUID, schedule_id: uuid.UUID) -> Dict[str, Any]:
    schedule = _live(db, tenant_id).filter(PMSchedule.id == schedule_id).first()
    if not schedule:
        raise NotFoundError("PM schedule not found")
    item = _enrich(db, tenant_id, [schedule])[0]
    item["completions"] = list(schedule.completions)
    return item


def completion_history(
    db: Session,
    tenant_id: uuid.UUID,
    schedule_id: uuid.UUID,
    limit: int = 100,
) -> List[PMCompletion]:
    """Completions for a schedule, newest first. Soft-deleted schedules keep their history."""
    owner = (
        db.query(PMSchedule.id)
        .filter(PMSchedule.id == schedule_id, PMSchedule.tenant_id == tenant_id)
        .first()
    )
    if not owner:
        raise NotFoundError("PM schedule not found")
    return (
        db.query(PMCompletion)
        .filter(PMCompletion.schedule_id == schedule_id)
        .order_by(PMCompletion.completed_date.desc(), PMCompletion.created_at.desc())
        .limit(limit)
        .all()
    )
