"""
Gamification Stores

Persistence boundary for user stats and built leaderboards. The in-memory
implementations keep everything for the process lifetime; a durable store
must implement the same protocols.

Records are copied on the way in and on the way out, so callers never hold
a reference to stored state and readers always see complete records.
"""

from typing import Dict, List, Optional, Protocol
import logging

from lms_gamification.exceptions import ConcurrencyConflictError
from lms_gamification.models.gamification import Leaderboard, LeaderboardScope, UserStats

logger = logging.getLogger(__name__)


class UserStatsStore(Protocol):
    async def load(self, user_id: str) -> Optional[UserStats]: ...

    async def save(self, stats: UserStats) -> UserStats: ...

    async def list_all(self) -> List[UserStats]: ...


class LeaderboardStore(Protocol):
    async def get(self, scope: LeaderboardScope) -> Optional[Leaderboard]: ...

    async def put(self, leaderboard: Leaderboard) -> None: ...


class InMemoryUserStatsStore:
    """In-memory user stats store with optimistic version checks"""

    def __init__(self):
        self._stats: Dict[str, UserStats] = {}
        logger.warning(
            "InMemoryUserStatsStore initialized - user stats are NOT persisted "
            "across restarts"
        )

    async def load(self, user_id: str) -> Optional[UserStats]:
        stats = self._stats.get(user_id)
        return stats.model_copy(deep=True) if stats is not None else None

    async def save(self, stats: UserStats) -> UserStats:
        """
        Store a copy of `stats` and return it with its version bumped

        Raises:
            ConcurrencyConflictError: If the stored version moved on since `stats` was loaded
        """
        current = self._stats.get(stats.user_id)
        current_version = current.version if current is not None else 0
        if stats.version != current_version:
            raise ConcurrencyConflictError(
                f"Stale save for user {stats.user_id}",
                expected_version=stats.version,
                actual_version=current_version,
                user_id=stats.user_id,
                operation="save_user_stats",
            )

        saved = stats.model_copy(deep=True)
        saved.version = current_version + 1
        self._stats[stats.user_id] = saved
        logger.debug(f"Saved stats for user {stats.user_id} (version {saved.version})")
        return saved.model_copy(deep=True)

    async def list_all(self) -> List[UserStats]:
        """Snapshot of every user, in order of first save"""
        return [stats.model_copy(deep=True) for stats in self._stats.values()]


class InMemoryLeaderboardStore:
    """In-memory store of the most recently built leaderboard per scope"""

    def __init__(self):
        self._leaderboards: Dict[str, Leaderboard] = {}

    async def get(self, scope: LeaderboardScope) -> Optional[Leaderboard]:
        leaderboard = self._leaderboards.get(scope.key)
        return leaderboard.model_copy(deep=True) if leaderboard is not None else None

    async def put(self, leaderboard: Leaderboard) -> None:
        self._leaderboards[leaderboard.id] = leaderboard.model_copy(deep=True)
        logger.debug(f"Stored leaderboard {leaderboard.id} ({len(leaderboard.entries)} entries)")
