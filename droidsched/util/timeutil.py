"""Utility functions for time operations."""

import time
from datetime import datetime, timedelta, timezone
from typing import Optional


def now_iso() -> str:
    """Get current timestamp in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat()


def current_millis() -> int:
    """Current wall clock time in milliseconds."""
    return int(time.time() * 1000)


def session_name(moment: Optional[datetime] = None) -> str:
    """Directory name for a backup taken at ``moment`` (defaults to now)."""
    if moment is None:
        moment = datetime.now()
    return moment.strftime("%Y%m%d_%H%M%S")


def next_occurrence(after: datetime, hour: int, interval_days: int) -> datetime:
    """Time at ``hour`` o'clock on the day ``interval_days`` days after ``after``."""
    target = (after + timedelta(days=interval_days)).replace(
        hour=hour, minute=0, second=0, microsecond=0
    )
    return target
