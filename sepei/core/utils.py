"""General utility functions."""
from datetime import datetime, timezone
from typing import Optional

from sepei.core.constants import STATUS_ACTIVE, STATUS_CLOSED, STATUS_SCHEDULED


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC timezone."""
    if dt.tzinfo is None:
        # Assume UTC if no timezone
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def poll_status(start_time: datetime, end_time: datetime, now: Optional[datetime] = None) -> str:
    """Derive scheduled/active/closed from a poll window."""
    now = to_utc(now) if now is not None else utcnow()
    if now < to_utc(start_time):
        return STATUS_SCHEDULED
    if now > to_utc(end_time):
        return STATUS_CLOSED
    return STATUS_ACTIVE
