"""UTC-everywhere time handling."""

from datetime import datetime, timedelta, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere. Stored timestamps, invoice
    dates and lock expiries are all UTC.
    """
    return datetime.now(timezone.utc)


def expires_at(minutes: int, start: datetime | None = None) -> datetime:
    """UTC instant `minutes` after `start` (default now). Used for billing lock expiry."""
    if start is not None and start.tzinfo is None:
        raise ValueError("start must be timezone-aware")
    return (start or now_utc()) + timedelta(minutes=minutes)
