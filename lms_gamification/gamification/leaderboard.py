"""
Leaderboard Ranker

Builds ranked leaderboards from a snapshot of user stats.

Scopes:
- global: ranked by lifetime total XP
- course: users with progress in the course, ranked by course XP
- weekly: users with XP in the trailing window, ranked by XP earned in it

Ranking is a stable descending sort on XP, so exact ties keep the order of
the snapshot and rebuilding an unchanged snapshot yields identical ranks.
"""

from datetime import datetime
from typing import Iterable, List, Mapping, Optional
import logging

from lms_gamification.exceptions import InvalidArgumentError
from lms_gamification.models.gamification import (
    Leaderboard,
    LeaderboardEntry,
    LeaderboardScope,
    LeaderboardType,
    UserIdentity,
    UserStats,
)

logger = logging.getLogger(__name__)


def _entry(stats: UserStats, xp: int, identities: Mapping[str, UserIdentity]) -> LeaderboardEntry:
    identity = identities.get(stats.user_id)
    return LeaderboardEntry(
        user_id=stats.user_id,
        username=identity.username if identity else stats.user_id,
        avatar_url=identity.avatar_url if identity else None,
        xp=xp,
        streak=stats.current_streak,
        achievements=stats.unlocked_achievement_count,
    )


def build_entries(
    scope: LeaderboardScope,
    snapshot: Iterable[UserStats],
    identities: Optional[Mapping[str, UserIdentity]] = None,
    weekly_xp: Optional[Mapping[str, int]] = None,
) -> List[LeaderboardEntry]:
    """Map a snapshot to unranked entries for the given scope"""
    if scope.type == LeaderboardType.WEEKLY and weekly_xp is None:
        raise InvalidArgumentError(
            "Weekly leaderboard needs windowed XP totals",
            field="weekly_xp",
            value=None,
        )

    identities = identities or {}
    entries = []

    for stats in snapshot:
        if scope.type == LeaderboardType.GLOBAL:
            entries.append(_entry(stats, stats.total_xp, identities))

        elif scope.type == LeaderboardType.COURSE:
            progress = stats.course_progress.get(scope.course_id)
            if progress is not None:
                entries.append(_entry(stats, progress.xp, identities))

        elif scope.type == LeaderboardType.WEEKLY:
            if stats.user_id in weekly_xp:
                entries.append(_entry(stats, weekly_xp[stats.user_id], identities))

    return entries


def rank_entries(entries: List[LeaderboardEntry]) -> List[LeaderboardEntry]:
    """Stable sort by XP (descending) and assign 1-based ranks"""
    for entry in entries:
        if entry.xp < 0:
            raise InvalidArgumentError(
                f"Negative XP for user {entry.user_id}", field="xp", value=entry.xp
            )

    ranked = sorted(entries, key=lambda entry: entry.xp, reverse=True)
    for index, entry in enumerate(ranked):
        entry.rank = index + 1
    return ranked


def rebuild(
    scope: LeaderboardScope,
    snapshot: Iterable[UserStats],
    now: Optional[datetime] = None,
    identities: Optional[Mapping[str, UserIdentity]] = None,
    weekly_xp: Optional[Mapping[str, int]] = None,
    limit: Optional[int] = None,
) -> Leaderboard:
    """
    Build a leaderboard for one scope

    Args:
        scope: Leaderboard partition
        snapshot: Consistent copies of user stats, in a stable order
        now: Rebuild time recorded as last_updated
        identities: Display names per user (user id is used when missing)
        weekly_xp: XP per user in the trailing window (required for weekly)
        limit: Keep only the top N entries after ranking

    Returns:
        Freshly ranked Leaderboard

    Raises:
        InvalidArgumentError: Negative limit, missing weekly totals, negative XP
    """
    if limit is not None and limit < 0:
        raise InvalidArgumentError("Limit must not be negative", field="limit", value=limit)

    ranked = rank_entries(build_entries(scope, snapshot, identities, weekly_xp))
    if limit is not None:
        ranked = ranked[:limit]

    leaderboard = Leaderboard(
        id=scope.key,
        type=scope.type,
        course_id=scope.course_id,
        entries=ranked,
        last_updated=now or datetime.now(),
    )

    logger.debug(f"Rebuilt leaderboard {scope.key} with {len(ranked)} entries")
    return leaderboard
