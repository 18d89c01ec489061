"""Date manipulation utilities"""

from datetime import date, datetime, timedelta, timezone
from typing import Tuple, Union

DateLike = Union[date, datetime]

SECONDS_PER_DAY = 86_400


def to_naive_utc(value: DateLike) -> datetime:
    """Coerce a date or datetime to a naive UTC datetime.

    SQLite hands back naive datetimes while PostgreSQL returns aware ones, so
    both sides of a comparison are normalized before subtracting.
    """
    if not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def days_between(a: DateLike, b: DateLike) -> float:
    """Absolute difference in (fractional) days between two timestamps"""
    delta = to_naive_utc(a) - to_naive_utc(b)
    return abs(delta.total_seconds()) / SECONDS_PER_DAY


def date_window(center: DateLike, days: int) -> Tuple[datetime, datetime]:
    """Inclusive [center - days, center + days] window"""
    anchor = to_naive_utc(center)
    return anchor - timedelta(days=days), anchor + timedelta(days=days)
