"""
Date/Time Handling Utilities

RULES:
- Timestamps handled by the engine are timezone-aware UTC
- Calendar-day decisions (streaks) convert to the streak timezone first
- Never mix naive and aware datetimes
"""

import logging
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is in UTC

    Args:
        dt: Datetime (can be None, naive, or aware)

    Returns:
        Datetime in UTC, or None if input was None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Assume UTC for naive datetimes
        logger.warning(f"Received naive datetime, assuming UTC: {dt}")
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)

