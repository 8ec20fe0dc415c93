"""
Daily Streak Tracking System

Tracks consecutive calendar days with at least one qualifying activity.
Days are compared by local date (year, month, day) in the configured
streak timezone, not by elapsed hours.

Logic:
- First activity ever: streak starts at 1
- Activity on the same day: no change
- Activity on the next day: streak continues (+1)
- Gap of more than one day: streak resets to 1
- Best streak never decreases and is never below the current streak
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo
import logging

from lms_gamification import config
from lms_gamification.models.gamification import CourseProgress, UserStats

logger = logging.getLogger(__name__)


class StreakTransition(str, Enum):
    """Outcome of a single streak evaluation"""
    STARTED = "started"
    SAME_DAY = "same_day"
    CONTINUED = "continued"
    RESET = "reset"


@dataclass(frozen=True)
class StreakUpdate:
    current_streak: int
    longest_streak: int
    last_activity_date: datetime
    transition: StreakTransition


def get_streak_timezone() -> ZoneInfo:
    return ZoneInfo(config.STREAK_TIMEZONE)


def local_date(moment: datetime, tz: Optional[tzinfo] = None) -> date:
    """Calendar date of a moment in the streak timezone. Naive datetimes are taken as local already."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(tz or get_streak_timezone()).date()


def compute_streak(
    current_streak: int,
    longest_streak: int,
    last_activity: Optional[datetime],
    now: datetime,
    tz: Optional[tzinfo] = None,
) -> StreakUpdate:
    """
    Pure streak transition

    Args:
        current_streak: Streak before this activity
        longest_streak: Best streak before this activity
        last_activity: Timestamp of the previous qualifying activity, if any
        now: Timestamp of this activity
        tz: Timezone used for calendar comparison (defaults to STREAK_TIMEZONE)

    Returns:
        StreakUpdate with the new counters
    """
    if last_activity is None:
        new_streak = 1
        transition = StreakTransition.STARTED
        last_seen = now
    else:
        today = local_date(now, tz)
        last_day = local_date(last_activity, tz)

        if today <= last_day:
            # Same day, or a clock earlier than the last recorded activity
            new_streak = max(current_streak, 1)
            transition = StreakTransition.SAME_DAY
            last_seen = max(now, last_activity) if _comparable(now, last_activity) else last_activity
        elif last_day == today - timedelta(days=1):
            new_streak = current_streak + 1
            transition = StreakTransition.CONTINUED
            last_seen = now
        else:
            new_streak = 1
            transition = StreakTransition.RESET
            last_seen = now

    return StreakUpdate(
        current_streak=new_streak,
        longest_streak=max(longest_streak, new_streak),
        last_activity_date=last_seen,
        transition=transition,
    )


def _comparable(a: datetime, b: datetime) -> bool:
    return (a.tzinfo is None) == (b.tzinfo is None)


def update_streak(stats: UserStats, now: datetime, tz: Optional[tzinfo] = None) -> StreakUpdate:
    """
    Update the user's streak in place for an activity at `now`

    Returns:
        The applied StreakUpdate
    """
    old_streak = stats.current_streak
    update = compute_streak(
        stats.current_streak, stats.longest_streak, stats.last_activity_date, now, tz
    )

    stats.current_streak = update.current_streak
    stats.longest_streak = update.longest_streak
    stats.last_activity_date = update.last_activity_date

    if update.transition == StreakTransition.RESET:
        logger.info(f"User {stats.user_id} streak broken. Was {old_streak}, starting fresh")
    elif update.transition != StreakTransition.SAME_DAY:
        logger.debug(f"Updated streak for user {stats.user_id}: {old_streak} → {update.current_streak} days")

    return update


def update_course_streak(
    progress: CourseProgress, now: datetime, tz: Optional[tzinfo] = None
) -> StreakUpdate:
    """Same transition for a single course. Course progress keeps no best streak."""
    update = compute_streak(
        progress.current_streak, progress.current_streak, progress.last_activity_date, now, tz
    )
    progress.current_streak = update.current_streak
    progress.last_activity_date = update.last_activity_date
    return update
