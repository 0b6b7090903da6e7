from __future__ import annotations
from datetime import datetime, UTC
from typing import Optional

__all__ = ["utc_now", "ensure_aware_utc", "to_naive_utc", "hours_between"]

def utc_now() -> datetime:
    """Return timezone-aware UTC now."""
    return datetime.now(UTC)

def ensure_aware_utc(dt: datetime | None) -> Optional[datetime]:
    """Attach UTC to naive values read back from SQLite; convert aware ones."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)

def to_naive_utc(dt: datetime | None) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)

def hours_between(start: datetime, end: datetime) -> float:
    """Elapsed hours between two instants, rounded to 2 decimals (never negative)."""
    delta = ensure_aware_utc(end) - ensure_aware_utc(start)
    return max(round(delta.total_seconds() / 3600, 2), 0.0)
