"""Time utilities for timezone-aware UTC datetimes."""

from datetime import UTC, date, datetime, time


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime for defaults and onupdate hooks."""
    return datetime.now(UTC)


def ensure_aware(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=UTC)


def at_hour(day: date, hour: int) -> datetime:
    return datetime.combine(day, time(hour=hour), tzinfo=UTC)


def minutes_between(start: datetime | None, end: datetime | None) -> int | None:
    """Whole minutes from ``start`` to ``end``; None unless end is after start."""
    start, end = ensure_aware(start), ensure_aware(end)
    if start is None or end is None or end <= start:
        return None
    return int((end - start).total_seconds() // 60)
