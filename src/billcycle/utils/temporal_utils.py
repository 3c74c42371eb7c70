"""
Temporal Utility Functions.

This module provides utility functions for working with dates and calendar
periods, particularly for advancing recurring obligations and bucketing
transaction history by month.
"""

from calendar import monthrange
from datetime import datetime, timedelta, timezone
from typing import Tuple

from billcycle.exceptions import CalendarArithmeticError

MonthKey = Tuple[int, int]


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to timezone-aware UTC.

    Naive datetimes are interpreted as UTC.

    Args:
        dt: Datetime object to normalize

    Returns:
        Timezone-aware datetime in UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def add_days(dt: datetime, days: int) -> datetime:
    """
    Add a number of days to a datetime.

    Raises:
        CalendarArithmeticError: If the result falls outside the supported range
    """
    try:
        return dt + timedelta(days=days)
    except OverflowError as e:
        raise CalendarArithmeticError(f"Cannot add {days} days to {dt.isoformat()}") from e


def add_months(dt: datetime, months: int) -> datetime:
    """
    Add calendar months to a datetime.

    The day of month is clamped to the last day of the target month, so
    January 31 plus one month is February 28 (or 29 in a leap year).

    Args:
        dt: Starting datetime
        months: Number of calendar months to add (may be negative)

    Returns:
        Datetime in the target month with the same time of day

    Raises:
        CalendarArithmeticError: If the target year is out of range
    """
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    try:
        day = min(dt.day, monthrange(year, month)[1])
        return dt.replace(year=year, month=month, day=day)
    except (ValueError, OverflowError) as e:
        raise CalendarArithmeticError(
            f"Cannot add {months} months to {dt.isoformat()}"
        ) from e


def add_years(dt: datetime, years: int) -> datetime:
    """Add calendar years to a datetime (February 29 clamps to February 28)."""
    return add_months(dt, years * 12)


def whole_days_between(start: datetime, end: datetime) -> int:
    """
    Count whole days elapsed from start to end.

    Partial days are truncated; the result is negative when end precedes start.
    """
    delta = ensure_utc(end) - ensure_utc(start)
    return delta.days if delta.days >= 0 else -((-delta).days)


def month_key(dt: datetime) -> MonthKey:
    """Return the (year, month) bucket a datetime belongs to."""
    return (dt.year, dt.month)


def start_of_month(dt: datetime) -> datetime:
    """Return midnight UTC on the first day of the datetime's month."""
    return datetime(dt.year, dt.month, 1, tzinfo=timezone.utc)


def start_of_next_month(dt: datetime) -> datetime:
    """Return midnight UTC on the first day of the month after dt."""
    return add_months(start_of_month(dt), 1)


def to_epoch_ms(dt: datetime) -> int:
    """Convert a datetime to milliseconds since epoch."""
    return int(ensure_utc(dt).timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """Convert milliseconds since epoch to a UTC datetime."""
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
