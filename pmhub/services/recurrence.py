"""
Recurrence calculator for preventive maintenance schedules.

Maps a recurrence description and an explicit reference date to the next due date.
Pure and deterministic: the reference date is always passed in, never read from a clock.
Inputs are assumed well-formed (ranges are validated by the lifecycle service).

Weekdays use 0=Sunday .. 6=Saturday.
"""
import calendar
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Tuple, Union

from dateutil.relativedelta import relativedelta

from ..schemas.pm import PMFrequency


QUARTERLY_STEP = 3
SEMI_ANNUAL_STEP = 6


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_day(year: int, month: int, desired_day: int) -> date:
    """Date in (year, month) on desired_day, clamped to the month's last day."""
    return date(year, month, min(desired_day, days_in_month(year, month)))


def sunday_based_weekday(value: date) -> int:
    return (value.weekday() + 1) % 7


def _next_weekday(reference: date, day_of_week: int) -> date:
    # Same weekday advances a full week, never zero days
    days_until = (day_of_week - sunday_based_weekday(reference)) % 7 or 7
    return reference + timedelta(days=days_until)


def anchor_months(month_of_year: int, step: int) -> Tuple[int, ...]:
    """Months (1-12) sharing the anchor's phase for a given step, ascending."""
    return tuple(sorted(((month_of_year - 1 + offset) % 12) + 1 for offset in range(0, 12, step)))


def _next_anchored_month(reference: date, candidates: Iterable[int]) -> Tuple[int, int]:
    candidates = sorted(candidates)
    for month in candidates:
        if month > reference.month:
            return reference.year, month
    return reference.year + 1, candidates[0]


def _shift_months(reference: date, months: int, day_of_month: Optional[int]) -> date:
    shifted = reference + relativedelta(months=months)
    return clamp_day(shifted.year, shifted.month, day_of_month or reference.day)


def compute_next_due_date(
    frequency: Union[PMFrequency, str],
    day_of_week: Optional[int] = None,
    day_of_month: Optional[int] = None,
    month_of_year: Optional[int] = None,
    *,
    reference_date: Union[date, datetime],
) -> date:
    """
    Next due date strictly after reference_date.

    Args:
        frequency: Recurrence family
        day_of_week: 0-6, used by weekly/biweekly
        day_of_month: 1-31, used by monthly/quarterly/semi_annually/annually, clamped to month length
        month_of_year: 1-12 anchor month, used by quarterly/semi_annually/annually
        reference_date: Date the next occurrence is computed from

    Returns:
        Next due date
    """
    if isinstance(reference_date, datetime):
        reference_date = reference_date.date()
    frequency = PMFrequency(frequency)

    if frequency == PMFrequency.daily:
        return reference_date + timedelta(days=1)

    if frequency == PMFrequency.weekly:
        if day_of_week is not None:
            return _next_weekday(reference_date, day_of_week)
        return reference_date + timedelta(days=7)

    if frequency == PMFrequency.biweekly:
        if day_of_week is not None:
            return _next_weekday(reference_date, day_of_week) + timedelta(days=7)
        return reference_date + timedelta(days=14)

    if frequency == PMFrequency.monthly:
        return _shift_months(reference_date, 1, day_of_month)

    if frequency in (PMFrequency.quarterly, PMFrequency.semi_annually):
        step = QUARTERLY_STEP if frequency == PMFrequency.quarterly else SEMI_ANNUAL_STEP
        if month_of_year is None:
            return _shift_months(reference_date, step, day_of_month)
        year, month = _next_anchored_month(reference_date, anchor_months(month_of_year, step))
        return clamp_day(year, month, day_of_month or reference_date.day)

    # annually
    next_year = reference_date + relativedelta(years=1)
    return clamp_day(
        next_year.year,
        month_of_year or next_year.month,
        day_of_month or reference_date.day,
    )
