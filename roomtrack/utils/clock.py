# =======================================================================================
# roomtrack/utils/clock.py - Time Helpers
# =======================================================================================
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every timestamp column is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware datetime to naive UTC; naive values are taken as UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
