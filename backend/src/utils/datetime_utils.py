"""
Datetime utilities for consistent timezone handling across the application.

All timestamps written to the directory store are timezone-aware UTC.
Some drivers (SQLite) hand back naive datetimes; ensure_utc() normalizes
those before any comparison in Python.
"""

from datetime import datetime, timezone, timedelta
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        Current datetime with UTC timezone
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure a datetime is timezone-aware UTC.

    Args:
        dt: Datetime to normalize

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive values come back from the store and were written as UTC
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_after(days: int = 0, hours: int = 0) -> datetime:
    """Get a UTC datetime the given distance in the future."""
    return utc_now() + timedelta(days=days, hours=hours)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Check whether an expiry timestamp has passed. A missing expiry never expires."""
    if expires_at is None:
        return False
    current = now or utc_now()
    normalized = ensure_utc(expires_at)
    assert normalized is not None
    return normalized <= current
