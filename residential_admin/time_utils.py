"""
Residential Admin - Time Helpers

All persisted timestamps are naive UTC.
"""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to naive UTC.

    Naive values are interpreted as UTC already; aware values are converted.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime as ISO-8601 with a trailing 'Z'."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
