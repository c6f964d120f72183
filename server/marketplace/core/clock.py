"""Time helpers.

All timestamps are stored as naive UTC so they compare the same way on
PostgreSQL and SQLite.
"""

from datetime import date, datetime, time, timedelta, timezone


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def day_window(value: datetime | date) -> tuple[datetime, datetime]:
    """Return the [start, end) window covering the calendar day of ``value``."""
    if isinstance(value, datetime):
        value = to_naive_utc(value).date()
    start = datetime.combine(value, time.min)
    return start, start + timedelta(days=1)
