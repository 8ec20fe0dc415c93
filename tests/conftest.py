"""Global test fixtures and utilities for gamification engine tests"""
import os

# Must be set before lms_gamification modules read their configuration
os.environ["RATE_LIMIT_ENABLED"] = "false"

import pytest
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from lms_gamification.gamification.achievement_system import default_achievement_catalog
from lms_gamification.gamification.store import InMemoryLeaderboardStore, InMemoryUserStatsStore
from lms_gamification.gamification.xp_ledger import InMemoryXpLedger
from lms_gamification.gamification.xp_system import XpConstants
from lms_gamification.models.gamification import CourseProgress, UserStats
from lms_gamification.services.collaborators import StaticCourseCatalog, StaticIdentityProvider
from lms_gamification.services.gamification_service import GamificationService


class ManualClock:
    """Clock that only moves when told to"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ============================================================================
# Time Fixtures
# ============================================================================

@pytest.fixture
def frozen_time():
    """Fixed moment for deterministic testing"""
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(frozen_time):
    """Manually advanced clock starting at frozen_time"""
    return ManualClock(frozen_time)


@pytest.fixture
def utc():
    return ZoneInfo("UTC")


# ============================================================================
# Gamification Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "learner-1"


@pytest.fixture
def xp_constants():
    """Default XP formula constants"""
    return XpConstants()


@pytest.fixture
def stats_factory(xp_constants):
    """Build UserStats with the default catalog"""
    def _create(user_id="learner-1", **kwargs):
        kwargs.setdefault("achievements", default_achievement_catalog(xp_constants))
        return UserStats(user_id=user_id, **kwargs)
    return _create


@pytest.fixture
def course_factory():
    """Build CourseProgress with N completed lessons"""
    def _create(course_id="python-101", lessons=0, xp=0):
        return CourseProgress(
            course_id=course_id,
            xp=xp,
            completed_lessons=[f"lesson-{i}" for i in range(lessons)],
        )
    return _create


@pytest.fixture
def course_catalog():
    return StaticCourseCatalog()


@pytest.fixture
def identity_provider():
    return StaticIdentityProvider()


@pytest.fixture
def stats_store():
    return InMemoryUserStatsStore()


@pytest.fixture
def leaderboard_store():
    return InMemoryLeaderboardStore()


@pytest.fixture
def ledger():
    return InMemoryXpLedger()


@pytest.fixture
def service(stats_store, leaderboard_store, ledger, identity_provider, course_catalog, clock, utc):
    """GamificationService wired to in-memory stores and a manual clock"""
    return GamificationService(
        stats_store=stats_store,
        leaderboard_store=leaderboard_store,
        ledger=ledger,
        identity_provider=identity_provider,
        course_catalog=course_catalog,
        clock=clock,
        streak_timezone=utc,
        leaderboard_limit=None,
    )
