# backend/app/core/timezone_utils.py
"""
UTC helpers.

Every timestamp the platform compares (code expiry, invitation expiry,
registration windows) is timezone-aware UTC. SQLite hands back naive
datetimes for ``DateTime(timezone=True)`` columns, so values read from the
store pass through ``as_utc`` before comparison.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return the current timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to aware UTC; naive values are taken to be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_past(value: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when ``value`` is set and strictly before ``now``."""
    moment = as_utc(value)
    if moment is None:
        return False
    return moment < (now or utc_now())
