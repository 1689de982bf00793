"""
Time rules for PM scheduling.
Resolves "now" once at the service boundary and derives the tenant's calendar day from it.
"""
import calendar
from datetime import date, datetime
from typing import Optional
import pytz
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Tenant


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


def tenant_timezone(timezone_str: Optional[str] = None):
    """
    Resolve a pytz timezone, falling back to the deployment default.

    Args:
        timezone_str: Timezone string (e.g., "America/Vancouver") or None

    Returns:
        pytz timezone
    """
    try:
        return pytz.timezone(timezone_str or settings.tz_default)
    except pytz.UnknownTimeZoneError:
        return pytz.timezone(settings.tz_default)


def utc_to_local(utc_datetime: datetime, timezone_str: Optional[str] = None) -> datetime:
    """
    Convert UTC datetime to local timezone.

    Args:
        utc_datetime: UTC datetime (naive values are treated as UTC)
        timezone_str: Timezone string

    Returns:
        Local datetime (timezone-aware)
    """
    if utc_datetime.tzinfo is None:
        utc_datetime = utc_datetime.replace(tzinfo=pytz.UTC)
    return utc_datetime.astimezone(tenant_timezone(timezone_str))


def local_today(now: Optional[datetime] = None, timezone_str: Optional[str] = None) -> date:
    """Calendar date of `now` (default: current instant) in the given timezone."""
    return utc_to_local(now or utc_now(), timezone_str).date()


def tenant_today(db: Session, tenant_id, now: Optional[datetime] = None) -> date:
    """The tenant's current calendar day, using its configured timezone."""
    tenant = db.get(Tenant, tenant_id)
    return local_today(now, tenant.timezone if tenant else None)


def month_bounds(month: int, year: int):
    """First and last calendar day of a month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)
