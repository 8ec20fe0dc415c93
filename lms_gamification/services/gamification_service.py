"""
GamificationService - Gamification Business Logic

Sequences the XP formula, streak tracker, achievement evaluator and
leaderboard ranker for each learning event, and owns access to the stores.

Concurrency:
- One asyncio.Lock per user serializes load → mutate → save for that user;
  the lock is discarded once no coroutine holds or awaits it
- Different users proceed concurrently
- Leaderboards are rebuilt after the user's lock is released, from copies
  returned by the store, under a single rebuild lock
"""

import asyncio
import logging
import time
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, tzinfo
from typing import Callable, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from lms_gamification import config
from lms_gamification.exceptions import InvalidArgumentError, NotFoundError
from lms_gamification.gamification import leaderboard as ranker
from lms_gamification.gamification.achievement_system import (
    check_achievements,
    default_achievement_catalog,
    ensure_catalog,
)
from lms_gamification.gamification.store import LeaderboardStore, UserStatsStore
from lms_gamification.gamification.streak_system import update_course_streak, update_streak
from lms_gamification.gamification.xp_ledger import InMemoryXpLedger, XpTransaction, window_start
from lms_gamification.gamification.xp_system import (
    XP_CONSTANTS,
    XpConstants,
    build_achievement_rewards,
    build_lesson_rewards,
    validate_base_score,
)
from lms_gamification.models.gamification import (
    Leaderboard,
    LeaderboardScope,
    LeaderboardType,
    LessonCompletionResult,
    UserStats,
    XpRewardType,
)
from lms_gamification.observability import metrics
from lms_gamification.services.collaborators import CourseCatalog, IdentityProvider
from lms_gamification.utils.datetime_helpers import ensure_utc, now_utc

logger = logging.getLogger(__name__)


class GamificationService:
    """
    Service for gamification features.

    Responsibilities:
    - XP calculation and awarding for lesson completions
    - Streak tracking (overall and per course)
    - Achievement checking and unlocking
    - Leaderboard rebuilding and lookup
    """

    def __init__(
        self,
        stats_store: UserStatsStore,
        leaderboard_store: LeaderboardStore,
        ledger: InMemoryXpLedger,
        identity_provider: IdentityProvider,
        course_catalog: CourseCatalog,
        constants: XpConstants = XP_CONSTANTS,
        clock: Callable[[], datetime] = now_utc,
        streak_timezone: Optional[tzinfo] = None,
        weekly_window_days: int = config.WEEKLY_WINDOW_DAYS,
        leaderboard_limit: Optional[int] = config.LEADERBOARD_MAX_ENTRIES,
    ):
        """
        Initialize GamificationService.

        Args:
            stats_store: Persistence for UserStats
            leaderboard_store: Persistence for built leaderboards
            ledger: XP transaction log backing the weekly window
            identity_provider: Display names for leaderboard entries
            course_catalog: Lesson counts for course completion
            constants: XP formula parameters
            clock: Source of "now" (naive values are taken as UTC)
            streak_timezone: Timezone for calendar-day comparison
            weekly_window_days: Length of the weekly leaderboard window
            leaderboard_limit: Maximum entries kept per leaderboard (None = all)
        """
        self.stats_store = stats_store
        self.leaderboard_store = leaderboard_store
        self.ledger = ledger
        self.identity_provider = identity_provider
        self.course_catalog = course_catalog
        self.constants = constants
        self.clock = clock
        self.streak_timezone = streak_timezone or ZoneInfo(config.STREAK_TIMEZONE)
        self.weekly_window_days = weekly_window_days
        self.leaderboard_limit = leaderboard_limit

        self._user_locks: Dict[str, asyncio.Lock] = {}
        self._lock_waiters: Dict[str, int] = defaultdict(int)
        self._rebuild_lock = asyncio.Lock()
        logger.debug("GamificationService initialized")

    # =========================================================================
    # Public operations
    # =========================================================================

    async def report_lesson_completion(
        self,
        user_id: str,
        course_id: str,
        lesson_id: str,
        score: float,
        is_perfect: bool,
    ) -> LessonCompletionResult:
        """
        Process gamification for a completed lesson.

        Steps (under the user's lock): streak update, lesson marked as
        completed, achievements evaluated, XP computed and committed, stats
        saved. Then the global, course and weekly leaderboards are rebuilt.

        A repeated lesson_id still counts as activity for streaks and
        achievements but earns no lesson, streak or perfect-score XP.

        Args:
            user_id: Learner identifier
            course_id: Course identifier (unknown courses are created)
            lesson_id: Lesson identifier
            score: Lesson weight, 1.0 for a standard lesson
            is_perfect: Whether the lesson was completed with a perfect score

        Returns:
            LessonCompletionResult with labelled rewards and unlocked achievements

        Raises:
            InvalidArgumentError: Missing identifiers or invalid score
        """
        self._require_id("user_id", user_id)
        self._require_id("course_id", course_id)
        self._require_id("lesson_id", lesson_id)
        validate_base_score(score)

        async with self._user_lock(user_id):
            now = self._now()
            stats = await self._load_or_create(user_id)
            course_targets = await self._course_targets(list(stats.course_progress) + [course_id])

            streak = update_streak(stats, now, self.streak_timezone)
            metrics.streak_transitions_total.labels(transition=streak.transition.value).inc()

            progress = stats.get_or_create_course(course_id)
            update_course_streak(progress, now, self.streak_timezone)
            is_new_lesson = progress.mark_lesson_completed(lesson_id)

            unlocked = check_achievements(stats, now, course_targets)

            if is_new_lesson:
                rewards = build_lesson_rewards(
                    score, stats.current_streak, is_perfect, unlocked, now, self.constants
                )
            else:
                rewards = build_achievement_rewards(unlocked, now)

            total_awarded = sum(reward.amount for reward in rewards)
            course_awarded = sum(
                reward.amount for reward in rewards if reward.type != XpRewardType.ACHIEVEMENT
            )
            stats.total_xp += total_awarded
            progress.xp += course_awarded

            await self.stats_store.save(stats)

            for reward in rewards:
                if reward.amount > 0:
                    await self.ledger.record(XpTransaction(
                        user_id=user_id,
                        amount=reward.amount,
                        source_type=reward.type,
                        awarded_at=now,
                        course_id=course_id,
                        reason=reward.description,
                    ))
                metrics.xp_awarded_total.labels(reward_type=reward.type.value).inc(reward.amount)

        metrics.lessons_completed_total.labels(outcome="new" if is_new_lesson else "repeat").inc()
        for achievement in unlocked:
            metrics.achievements_unlocked_total.labels(achievement_type=achievement.type.value).inc()

        logger.info(
            f"Lesson completion processed: user={user_id}, course={course_id}, "
            f"lesson={lesson_id}, xp={total_awarded}, streak={stats.current_streak}, "
            f"achievements={len(unlocked)}, repeat={not is_new_lesson}"
        )

        await self._rebuild_scopes([
            LeaderboardScope(type=LeaderboardType.GLOBAL),
            LeaderboardScope(type=LeaderboardType.COURSE, course_id=course_id),
            LeaderboardScope(type=LeaderboardType.WEEKLY),
        ])

        return LessonCompletionResult(
            rewards=rewards,
            unlocked_achievements=[achievement.model_copy(deep=True) for achievement in unlocked],
            total_xp_awarded=total_awarded,
            repeat_completion=not is_new_lesson,
        )

    async def get_user_stats(self, user_id: str) -> UserStats:
        """
        Get a copy of the user's stats, creating the default record on first access.

        Returns:
            UserStats snapshot (mutating it has no effect on stored state)
        """
        self._require_id("user_id", user_id)
        async with self._user_lock(user_id):
            return await self._load_or_create(user_id, persist=True)

    async def get_leaderboard(self, scope: LeaderboardScope) -> Leaderboard:
        """
        Get the most recently built leaderboard for a scope. Never rebuilds.

        Raises:
            NotFoundError: If the scope has never been built
        """
        leaderboard = await self.leaderboard_store.get(scope)
        if leaderboard is None:
            raise NotFoundError(
                f"Leaderboard {scope.key} has not been built yet",
                record_type="Leaderboard",
                record_id=scope.key,
                operation="get_leaderboard",
            )
        return leaderboard

    async def rebuild_leaderboard(self, scope: LeaderboardScope) -> Leaderboard:
        """Rebuild one leaderboard now from the current stats snapshot"""
        boards = await self._rebuild_scopes([scope])
        return boards[0]

    async def get_xp_history(self, user_id: str, days: int = 7) -> List[XpTransaction]:
        """
        Get recent XP transactions for a user

        Args:
            user_id: Learner identifier
            days: Number of days of history to retrieve

        Returns:
            Transactions newest first

        Raises:
            InvalidArgumentError: days is not positive or reaches past the
                ledger's retention
        """
        self._require_id("user_id", user_id)
        if days <= 0:
            raise InvalidArgumentError("days must be positive", field="days", value=days)
        if timedelta(days=days) > self.ledger.retention:
            raise InvalidArgumentError(
                f"days must not exceed the {self.ledger.retention.days}-day XP history retention",
                field="days",
                value=days,
            )
        return await self.ledger.history(user_id, window_start(self._now(), days))

    # =========================================================================
    # Helpers
    # =========================================================================

    def _now(self) -> datetime:
        return ensure_utc(self.clock())

    @asynccontextmanager
    async def _user_lock(self, user_id: str):
        """Hold the user's lock; it is dropped once nobody holds or awaits it"""
        lock = self._user_locks.setdefault(user_id, asyncio.Lock())
        self._lock_waiters[user_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_waiters[user_id] -= 1
            if self._lock_waiters[user_id] == 0:
                del self._lock_waiters[user_id]
                del self._user_locks[user_id]

    @staticmethod
    def _require_id(field: str, value: str) -> None:
        if not isinstance(value, str) or not value.strip():
            raise InvalidArgumentError(f"{field} is required", field=field, value=value)

    async def _load_or_create(self, user_id: str, persist: bool = False) -> UserStats:
        """Load stats, or build a fresh record with a locked achievement catalog"""
        stats = await self.stats_store.load(user_id)
        if stats is None:
            stats = UserStats(
                user_id=user_id,
                achievements=default_achievement_catalog(self.constants),
            )
            logger.info(f"Created gamification stats for user {user_id}")
            if persist:
                stats = await self.stats_store.save(stats)
        else:
            added = ensure_catalog(stats, default_achievement_catalog(self.constants))
            if added and persist:
                stats = await self.stats_store.save(stats)
        return stats

    async def _course_targets(self, course_ids: Iterable[str]) -> Dict[str, int]:
        targets = {}
        for course_id in dict.fromkeys(course_ids):
            lesson_count = await self.course_catalog.get_lesson_count(course_id)
            if lesson_count:
                targets[course_id] = lesson_count
        return targets

    async def _rebuild_scopes(self, scopes: List[LeaderboardScope]) -> List[Leaderboard]:
        """Rebuild several scopes from one consistent snapshot"""
        async with self._rebuild_lock:
            now = self._now()
            snapshot = await self.stats_store.list_all()
            identities = await self.identity_provider.resolve(stats.user_id for stats in snapshot)

            weekly_xp = None
            if any(scope.type == LeaderboardType.WEEKLY for scope in scopes):
                weekly_xp = await self.ledger.window_totals(
                    window_start(now, self.weekly_window_days), now
                )

            boards = []
            for scope in scopes:
                started = time.perf_counter()
                board = ranker.rebuild(
                    scope,
                    snapshot,
                    now=now,
                    identities=identities,
                    weekly_xp=weekly_xp,
                    limit=self.leaderboard_limit,
                )
                await self.leaderboard_store.put(board)
                metrics.leaderboard_rebuild_duration_seconds.labels(
                    leaderboard_type=scope.type.value
                ).observe(time.perf_counter() - started)
                metrics.leaderboard_entries.labels(leaderboard_type=scope.type.value).set(
                    len(board.entries)
                )
                boards.append(board)

            return boards

