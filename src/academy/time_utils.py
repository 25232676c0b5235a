"""UTC helpers shared by the rule evaluators."""

from __future__ import annotations

from datetime import date, datetime, time, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite returns them without tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return as_utc(value).date()
    return value


def start_of_day(value: datetime) -> datetime:
    """Midnight UTC of the given instant's day."""
    return datetime.combine(as_utc(value).date(), time.min, tzinfo=timezone.utc)


def start_of_month(value: datetime) -> datetime:
    return start_of_day(value).replace(day=1)


def days_between(earlier: date | datetime, later: datetime) -> int:
    """Whole days elapsed from ``earlier`` to ``later`` (floored)."""
    if not isinstance(earlier, datetime):
        earlier = datetime.combine(earlier, time.min, tzinfo=timezone.utc)
    return (as_utc(later) - as_utc(earlier)).days
