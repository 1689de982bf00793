"""
PM schedule lifecycle: create, update, activate/deactivate, complete, delete.

Every operation validates before its first write, flushes into the caller's session and
leaves the commit to the caller, so the writes of one request form one unit of work.
"now" is resolved once per call (or passed in) and handed to the
recurrence calculator as an explicit reference date.
"""
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.orm import Session

from ..models.models import PMCompletion, PMSchedule
from ..schemas.pm import PMFrequency
from .audit import compute_diff, create_audit_log
from .errors import InvalidRecurrenceError, NotFoundError
from .pm_templates import require_template
from .recurrence import compute_next_due_date
from .targets import ensure_target_exists, validate_target_shape
from .time_rules import tenant_today, utc_now
from .validation import clean_text, validate_name
from .work_orders import close_work_order_for_completion, get_work_order

logger = structlog.get_logger(__name__)

RECURRENCE_FIELDS = ("frequency", "day_of_week", "day_of_month", "month_of_year")
AUDITED_FIELDS = (
    "template_id", "name", "description", "asset_id", "location_id",
    "frequency", "day_of_week", "day_of_month", "month_of_year",
    "assigned_to", "vendor_id", "estimated_cost", "is_active", "next_due_date",
)


def _check_range(field: str, value: Optional[int], low: int, high: int) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        raise InvalidRecurrenceError(f"{field} must be between {low} and {high}", field=field)


def validate_recurrence(
    frequency: Any,
    day_of_week: Optional[int],
    day_of_month: Optional[int],
    month_of_year: Optional[int],
) -> PMFrequency:
    """Range checks for the recurrence description; the calculator assumes they passed."""
    try:
        frequency = PMFrequency(frequency)
    except ValueError:
        raise InvalidRecurrenceError(f"Unknown frequency: {frequency}", field="frequency")
    _check_range("day_of_week", day_of_week, 0, 6)
    _check_range("day_of_month", day_of_month, 1, 31)
    _check_range("month_of_year", month_of_year, 1, 12)
    return frequency


def _snapshot(schedule: PMSchedule) -> Dict[str, Any]:
    return {field: getattr(schedule, field) for field in AUDITED_FIELDS}


def get_schedule(db: Session, tenant_id: uuid.UUID, schedule_id: uuid.UUID) -> Optional[PMSchedule]:
    return (
        db.query(PMSchedule)
        .filter(
            PMSchedule.id == schedule_id,
            PMSchedule.tenant_id == tenant_id,
            PMSchedule.deleted_at.is_(None),
        )
        .first()
    )


def require_schedule(db: Session, tenant_id: uuid.UUID, schedule_id: uuid.UUID) -> PMSchedule:
    schedule = get_schedule(db, tenant_id, schedule_id)
    if not schedule:
        raise NotFoundError("PM schedule not found")
    return schedule


def create_schedule(
    db: Session,
    tenant_id: uuid.UUID,
    *,
    frequency: Any,
    name: Optional[str] = None,
    template_id: Optional[uuid.UUID] = None,
    description: Optional[str] = None,
    asset_id: Optional[uuid.UUID] = None,
    location_id: Optional[uuid.UUID] = None,
    day_of_week: Optional[int] = None,
    day_of_month: Optional[int] = None,
    month_of_year: Optional[int] = None,
    assigned_to: Optional[uuid.UUID] = None,
    vendor_id: Optional[uuid.UUID] = None,
    estimated_cost: Optional[float] = None,
    actor_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
) -> PMSchedule:
    if template_id:
        template = require_template(db, tenant_id, template_id)
        # Template values only fill fields the caller left blank
        if not name or not name.strip():
            name = template.name
        if not description or not description.strip():
            description = template.description
        vendor_id = vendor_id or template.default_vendor_id

    clean_name = validate_name(name, "Schedule")
    validate_target_shape(asset_id, location_id)
    frequency = validate_recurrence(frequency, day_of_week, day_of_month, month_of_year)
    ensure_target_exists(db, tenant_id, asset_id=asset_id, location_id=location_id)

    now = now or utc_now()
    next_due_date = compute_next_due_date(
        frequency, day_of_week, day_of_month, month_of_year,
        reference_date=tenant_today(db, tenant_id, now),
    )

    schedule = PMSchedule(
        tenant_id=tenant_id,
        template_id=template_id,
        name=clean_name,
        description=clean_text(description),
        asset_id=asset_id,
        location_id=location_id,
        frequency=frequency.value,
        day_of_week=day_of_week,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        assigned_to=assigned_to,
        vendor_id=vendor_id,
        estimated_cost=estimated_cost,
        is_active=True,
        next_due_date=next_due_date,
        last_generated_at=None,
        created_at=now,
    )
    db.add(schedule)
    db.flush()

    create_audit_log(
        db, tenant_id, "pm_schedule", schedule.id, "CREATE",
        actor_id=actor_id, source="api", changes_json={"after": _snapshot(schedule)},
    )
    logger.info(
        "pm_schedule_created",
        tenant_id=str(tenant_id),
        schedule_id=str(schedule.id),
        frequency=frequency.value,
        next_due_date=next_due_date.isoformat(),
    )
    return schedule


def update_schedule(
    db: Session,
    tenant_id: uuid.UUID,
    schedule_id: uuid.UUID,
    data: Dict[str, Any],
    *,
    actor_id: Optional[uuid.UUID] = None,
    now: Optional[datetime] = None,
) -> PMSchedule:
    """
    Apply a partial update. Keys present in `data` are applied, including explicit None.

    Args:
        db: Database session
        tenant_id: Caller's tenant
        schedule_id: Schedule to update
        data: Incoming fields (exclude_unset payload)
        actor_id: User performing the change
        now: Reference instant for recomputation (default: current time)

    Returns:
        Updated schedule
    """
    schedule = require_schedule(db, tenant_id, schedule_id)
    data = dict(data)

    if "name" in data:
        data["name"] = validate_name(data["name"], "Schedule")
    if "description" in data:
        data["description"] = clean_text(data["description"])
    if data.get("template_id"):
        require_template(db, tenant_id, data["template_id"])

    final_asset_id = data["asset_id"] if "asset_id" in data else schedule.asset_id
    final_location_id = data["location_id"] if "location_id" in data else schedule.location_id
    validate_target_shape(final_asset_id, final_location_id)

    merged = {field: data.get(field, getattr(schedule, field)) for field in RECURRENCE_FIELDS}
    frequency = validate_recurrence(**merged)
    if "frequency" in data:
        data["frequency"] = frequency.value
        merged["frequency"] = frequency.value

    ensure_target_exists(
        db, tenant_id,
        asset_id=data.get("asset_id"),
        location_id=data.get("location_id"),
    )

    recurrence_changed = any(merged[field] != getattr(schedule, field) for field in RECURRENCE_FIELDS)
    now = now or utc_now()
    if "next_due_date" not in data and recurrence_changed:
        data["next_due_date"] = compute_next_due_date(
            frequency,
            merged["day_of_week"],
            merged["day_of_month"],
            merged["month_of_year"],
            reference_date=tenant_today(db, tenant_id, now),
        )

    before = _snapshot(schedule)
    for key, value in data.items():
        setattr(schedule, key, value)
    schedule.updated_at = now
    db.flush()

    changes = compute_diff(before, _snapshot(schedule))
    create_audit_log(
        db, tenant_id, "pm_schedule", schedule.id, "UPDATE",
        actor_id=actor_id, source="api", changes_json=changes,
    )
    logger.info(
        "pm_schedule_updated",
        tenant_id=str(tenant_id),
        schedule_id=str(schedule.id),
        fields=sorted(changes),
        recomputed=recurrence_changed and "next_due_date" in changes,
    )
    return schedule


def _set_active(
    db: Session,
    tenant_id: uuid.UUID,
    schedule_id: uuid.UUID,
    is_active: bool,
    actor_id: Optional[uuid.UUID],
) -> PMSchedule:
    schedule = require_schedule(db, tenant_id, schedule_id)
    schedule.is_active = is_active
    schedule.updated_at = utc_now()
    db.flush()
    action = "ACTIVATE" if is_active else "DEACTIVATE"
    create_audit_log(db, tenant_id, "pm_schedule", schedule.id, action, actor_id=actor_id, source="api")
    logger.info(
        "pm_schedule_activated" if is_active else "pm_schedule_deactivated",
        tenant_id=str(tenant_id),
        schedule_id=str(schedule.id),
    )
    return schedule


def activate_schedule(db: Session, tenant_id: uuid.UUID, schedule_id: uuid.UUID, *, actor_id: Optional[uuid.UUID] = None) -> PMSchedule:
    return _set_active(db, tenant_id, schedule_id, True, actor_id)


def deactivate_schedule(db: Session, tenant_id: uuid.UUID, schedule_id: uuid.UUID, *, actor_id: Optional[uuid.UUID] = None) -> PMSchedule:
    return _set_active(db, tenant_id, schedule_id, False, actor_id)


def complete_schedule(
    db: Session,
    tenant_id: uuid.UUID,
    schedule_id: uuid.UUID,
    *,
    ticket_id: Optional[uuid.UUID] = None,
    completed_by: Optional[uuid.UUID] = None,
    checklist_results: Optional[Dict[str, Any]] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PMCompletion:
    """
    Record a completion and advance the schedule in one unit of work.

    The next due date is computed from the completion day, not from the due date
    being fulfilled, so a late completion shifts the cadence forward.
    """
    schedule = require_schedule(db, tenant_id, schedule_id)
    work_order = get_work_order(db, tenant_id, ticket_id) if ticket_id else None

    now = now or utc_now()
    today = tenant_today(db, tenant_id, now)
    fulfilled_date = schedule.next_due_date

    completion = PMCompletion(
        schedule_id=schedule.id,
        ticket_id=ticket_id,
        scheduled_date=fulfilled_date,
        completed_date=today,
        completed_by=completed_by,
        checklist_results=checklist_results or None,
        notes=clean_text(notes),
        created_at=now,
    )
    db.add(completion)

    schedule.next_due_date = compute_next_due_date(
        schedule.frequency,
        schedule.day_of_week,
        schedule.day_of_month,
        schedule.month_of_year,
        reference_date=today,
    )
    schedule.last_generated_at = now
    schedule.updated_at = now

    if work_order is not None:
        close_work_order_for_completion(db, work_order, closed_by_id=completed_by, now=now)

    db.flush()

    create_audit_log(
        db, tenant_id, "pm_schedule", schedule.id, "COMPLETE",
        actor_id=completed_by, source="api",
        changes_json={"next_due_date": {"before": fulfilled_date, "after": schedule.next_due_date}},
        context={"completion_id": completion.id, "ticket_id": ticket_id},
    )
    logger.info(
        "pm_schedule_completed",
        tenant_id=str(tenant_id),
        schedule_id=str(schedule.id),
        completion_id=str(completion.id),
        scheduled_date=fulfilled_date.isoformat(),
        completed_date=today.isoformat(),
        days_late=max(0, (today - fulfilled_date).days),
        next_due_date=schedule.next_due_date.isoformat(),
    )
    return completion


def delete_schedule(
    db: Session,
    tenant_id: uuid.UUID,
    schedule_id: uuid.UUID,
    *,
    actor_id: Optional[uuid.UUID] = None,
) -> None:
    """Soft delete; completions stay in place for history views."""
    schedule = require_schedule(db, tenant_id, schedule_id)
    schedule.deleted_at = utc_now()
    schedule.updated_at = schedule.deleted_at
    db.flush()
    create_audit_log(db, tenant_id, "pm_schedule", schedule.id, "DELETE", actor_id=actor_id, source="api")
    logger.info("pm_schedule_deleted", tenant_id=str(tenant_id), schedule_id=str(schedule.id))
