"""
Unit tests for GamificationService

Exercises the full lesson-completion flow against in-memory stores with a
manually advanced clock.
"""
import asyncio
from datetime import datetime, timedelta
import math
import pytest

from lms_gamification.exceptions import InvalidArgumentError, NotFoundError
from lms_gamification.models.gamification import (
    AchievementType,
    LeaderboardScope,
    LeaderboardType,
    UserIdentity,
    XpRewardType,
)
from lms_gamification.services.gamification_service import GamificationService

GLOBAL = LeaderboardScope(type=LeaderboardType.GLOBAL)
WEEKLY = LeaderboardScope(type=LeaderboardType.WEEKLY)
COURSE = LeaderboardScope(type=LeaderboardType.COURSE, course_id="python-101")


@pytest.fixture(autouse=True)
def ten_lesson_course(course_catalog):
    """python-101 has ten lessons unless a test says otherwise"""
    course_catalog.set_lesson_count("python-101", 10)


# ============================================================================
# Lesson Completion Tests
# ============================================================================

@pytest.mark.asyncio
async def test_first_lesson_completion(service, test_user_id):
    """First lesson: streak starts, first_lesson unlocks, rewards are itemised"""
    result = await service.report_lesson_completion(test_user_id, "python-101", "lesson-1", 1.0, False)

    assert [(r.type, r.amount) for r in result.rewards] == [
        (XpRewardType.LESSON_COMPLETE, 100),
        (XpRewardType.STREAK_BONUS, 10),
        (XpRewardType.ACHIEVEMENT, 200),
    ]
    assert result.total_xp_awarded == 310
    assert [a.type for a in result.unlocked_achievements] == [AchievementType.FIRST_LESSON]
    assert result.repeat_completion is False

    stats = await service.get_user_stats(test_user_id)
    assert stats.total_xp == 310
    assert stats.current_streak == 1
    assert stats.longest_streak == 1
    assert stats.course_progress["python-101"].xp == 110
    assert stats.course_progress["python-101"].completed_lessons == ["lesson-1"]
    assert stats.course_progress["python-101"].current_streak == 1


@pytest.mark.asyncio
async def test_perfect_score_completion(service, test_user_id):
    result = await service.report_lesson_completion(test_user_id, "python-101", "lesson-1", 1.0, True)

    assert XpRewardType.PERFECT_SCORE in [r.type for r in result.rewards]
    assert result.total_xp_awarded == 360


@pytest.mark.asyncio
async def test_total_xp_equals_sum_of_awards(service, clock, test_user_id):
    """Stored total is exactly the sum of every award returned"""
    awarded = 0
    for day in range(5):
        for lesson in range(2):
            result = await service.report_lesson_completion(
                test_user_id, "python-101", f"lesson-{day}-{lesson}", 1.0, lesson == 1
            )
            awarded += result.total_xp_awarded
        clock.advance(days=1)

    stats = await service.get_user_stats(test_user_id)
    assert stats.total_xp == awarded
    assert stats.current_streak == 5
    assert all(a.unlocked_at is not None for a in stats.achievements
               if a.type in (AchievementType.STREAK_3, AchievementType.PERFECT_SCORE))


@pytest.mark.asyncio
async def test_repeat_completion_grants_no_lesson_xp(service, test_user_id):
    """Completing the same lesson twice earns nothing the second time"""
    await service.report_lesson_completion(test_user_id, "python-101", "lesson-1", 0.5, False)

    result = await service.report_lesson_completion(test_user_id, "python-101", "lesson-1", 1.0, True)

    assert result.repeat_completion is True
    assert result.rewards == []
    assert result.total_xp_awarded == 0
    stats = await service.get_user_stats(test_user_id)
    assert stats.total_xp == 255
    assert stats.course_progress["python-101"].xp == 55
    assert stats.course_progress["python-101"].completed_lessons == ["lesson-1"]


@pytest.mark.asyncio
async def test_repeat_completion_still_counts_for_streak(service, clock, test_user_id):
    """A repeated lesson on a new day keeps the streak alive and can unlock achievements"""
    await service.report_lesson_completion(test_user_id, "python-101", "lesson-1", 1.0, False)
    clock.advance(days=1)
    await service.report_lesson_completion(test_user_id, "python-101", "lesson-2", 1.0, False)
    clock.advance(days=1)

    result = await service.report_lesson_completion(test_user_id, "python-101", "lesson-1", 1.0, False)

    assert result.repeat_completion is True
    assert [a.type for a in result.unlocked_achievements] == [AchievementType.STREAK_3]
    assert [(r.type, r.amount) for r in result.rewards] == [(XpRewardType.ACHIEVEMENT, 200)]
    assert (await service.get_user_stats(test_user_id)).current_streak == 3


@pytest.mark.asyncio
async def test_unknown_course_is_created(service, test_user_id):
    """A course with no known lesson count completes at its first lesson"""
    result = await service.report_lesson_completion(test_user_id, "brand-new", "intro", 1.0, False)

    assert {a.type for a in result.unlocked_achievements} == {
        AchievementType.FIRST_LESSON,
        AchievementType.COURSE_COMPLETE,
    }
    assert result.total_xp_awarded == 510
    stats = await service.get_user_stats(test_user_id)
    assert "brand-new" in stats.course_progress


@pytest.mark.asyncio
async def test_zero_score_lesson(service, test_user_id):
    """A zero-weight lesson counts as activity but earns only achievement XP"""
    result = await service.report_lesson_completion(test_user_id, "python-101", "lesson-1", 0, False)

    assert result.total_xp_awarded == 200
    assert (await service.get_user_stats(test_user_id)).course_progress["python-101"].xp == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [
    {"user_id": ""},
    {"course_id": "   "},
    {"lesson_id": ""},
    {"score": -1.0},
    {"score": math.nan},
])
async def test_invalid_input_changes_nothing(service, stats_store, leaderboard_store, kwargs):
    """Rejected calls leave no trace in the stores"""
    call = {
        "user_id": "learner-1",
        "course_id": "python-101",
        "lesson_id": "lesson-1",
        "score": 1.0,
        "is_perfect": False,
    }
    call.update(kwargs)

    with pytest.raises(InvalidArgumentError):
        await service.report_lesson_completion(**call)

    assert await stats_store.list_all() == []
    assert await leaderboard_store.get(GLOBAL) is None


# ============================================================================
# Concurrency Tests
# ============================================================================

@pytest.mark.asyncio
async def test_concurrent_completions_same_user_are_serialized(service, stats_store, test_user_id):
    """Parallel events for one user never lose an update"""
    results = await asyncio.gather(*[
        service.report_lesson_completion(test_user_id, "python-101", f"lesson-{i}", 1.0, False)
        for i in range(8)
    ])

    stats = await stats_store.load(test_user_id)
    assert stats.total_xp == sum(r.total_xp_awarded for r in results)
    assert sorted(stats.course_progress["python-101"].completed_lessons) == sorted(
        f"lesson-{i}" for i in range(8)
    )
    assert stats.version == 8
    assert stats.current_streak == 1

    unlocked = [a.id for r in results for a in r.unlocked_achievements]
    assert len(unlocked) == len(set(unlocked))


@pytest.mark.asyncio
async def test_concurrent_completions_different_users(service):
    await asyncio.gather(*[
        service.report_lesson_completion(f"user-{i}", "python-101", "lesson-1", 1.0, False)
        for i in range(5)
    ])

    board = await service.get_leaderboard(GLOBAL)
    assert sorted(e.user_id for e in board.entries) == [f"user-{i}" for i in range(5)]
    assert [e.rank for e in board.entries] == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_user_locks_are_released_after_use(service, test_user_id):
    """Per-user locks do not accumulate once a user goes idle"""
    await asyncio.gather(*[
        service.report_lesson_completion(user_id, "python-101", f"lesson-{i}", 1.0, False)
        for user_id in (test_user_id, "learner-2")
        for i in range(3)
    ])
    await service.get_user_stats("learner-3")

    assert service._user_locks == {}
    assert service._lock_waiters == {}


@pytest.mark.asyncio
async def test_user_lock_released_when_operation_fails(service, stats_store, monkeypatch, test_user_id):
    async def failing_save(stats):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(stats_store, "save", failing_save)

    with pytest.raises(RuntimeError):
        await service.report_lesson_completion(test_user_id, "python-101", "lesson-1", 1.0, False)

    assert service._user_locks == {}


# ============================================================================
# Leaderboard Tests
# ============================================================================

@pytest.mark.asyncio
async def test_completion_rebuilds_affected_leaderboards(service, test_user_id):
    await service.report_lesson_completion(test_user_id, "python-101", "lesson-1", 1.0, False)

    global_board = await service.get_leaderboard(GLOBAL)
    course_board = await service.get_leaderboard(COURSE)
    weekly_board = await service.get_leaderboard(WEEKLY)

    assert global_board.entries[0].xp == 310
    assert course_board.entries[0].xp == 110
    assert weekly_board.entries[0].xp == 310
    assert global_board.entries[0].achievements == 1


@pytest.mark.asyncio
async def test_get_leaderboard_never_built(service):
    """Unbuilt scope raises, it does not return an empty board"""
    with pytest.raises(NotFoundError):
        await service.get_leaderboard(GLOBAL)


@pytest.mark.asyncio
async def test_rebuild_with_no_users_gives_empty_board(service):
    board = await service.rebuild_leaderboard(GLOBAL)

    assert board.entries == []
    assert (await service.get_leaderboard(GLOBAL)).entries == []


@pytest.mark.asyncio
async def test_leaderboard_ranking_and_identity(service, identity_provider):
    identity_provider.register(UserIdentity(user_id="bob", username="Bob", avatar_url="https://cdn/bob.png"))

    await service.report_lesson_completion("alice", "python-101", "lesson-1", 1.0, False)
    await service.report_lesson_completion("bob", "python-101", "lesson-1", 1.0, True)

    board = await service.get_leaderboard(GLOBAL)

    assert [(e.user_id, e.rank) for e in board.entries] == [("bob", 1), ("alice", 2)]
    assert board.entries[0].username == "Bob"
    assert board.entries[0].avatar_url == "https://cdn/bob.png"
    assert board.entries[1].username == "alice"


@pytest.mark.asyncio
async def test_weekly_leaderboard_window(service, clock):
    """Users whose XP fell out of the window drop off the weekly board only"""
    await service.report_lesson_completion("early", "python-101", "lesson-1", 1.0, False)
    clock.advance(days=8)
    await service.report_lesson_completion("recent", "python-101", "lesson-1", 1.0, False)

    weekly = await service.get_leaderboard(WEEKLY)
    global_board = await service.get_leaderboard(GLOBAL)

    assert [e.user_id for e in weekly.entries] == ["recent"]
    assert {e.user_id for e in global_board.entries} == {"early", "recent"}


@pytest.mark.asyncio
async def test_leaderboard_limit(stats_store, leaderboard_store, ledger, identity_provider,
                                 course_catalog, clock, utc):
    service = GamificationService(
        stats_store=stats_store,
        leaderboard_store=leaderboard_store,
        ledger=ledger,
        identity_provider=identity_provider,
        course_catalog=course_catalog,
        clock=clock,
        streak_timezone=utc,
        leaderboard_limit=2,
    )
    for i in range(4):
        await service.report_lesson_completion(f"user-{i}", "python-101", "lesson-1", float(i + 1), False)

    board = await service.get_leaderboard(GLOBAL)
    assert [e.user_id for e in board.entries] == ["user-3", "user-2"]


# ============================================================================
# Stats & History Tests
# ============================================================================

@pytest.mark.asyncio
async def test_get_user_stats_creates_default_record(service, stats_store):
    stats = await service.get_user_stats("newcomer")

    assert stats.total_xp == 0
    assert stats.current_streak == 0
    assert stats.last_activity_date is None
    assert len(stats.achievements) == len(AchievementType)
    assert not any(a.is_unlocked for a in stats.achievements)
    assert await stats_store.load("newcomer") is not None


@pytest.mark.asyncio
async def test_get_user_stats_returns_copy(service, test_user_id):
    await service.report_lesson_completion(test_user_id, "python-101", "lesson-1", 1.0, False)

    stats = await service.get_user_stats(test_user_id)
    stats.total_xp = 0
    stats.achievements.clear()

    fresh = await service.get_user_stats(test_user_id)
    assert fresh.total_xp == 310
    assert len(fresh.achievements) == len(AchievementType)


@pytest.mark.asyncio
async def test_get_xp_history(service, clock, test_user_id):
    await service.report_lesson_completion(test_user_id, "python-101", "lesson-1", 1.0, False)
    clock.advance(days=10)
    await service.report_lesson_completion(test_user_id, "python-101", "lesson-2", 1.0, False)

    history = await service.get_xp_history(test_user_id, days=7)

    # Second lesson also unlocks perfect_score (course XP reached 100 on the first)
    assert [t.source_type for t in history] == [
        XpRewardType.LESSON_COMPLETE,
        XpRewardType.STREAK_BONUS,
        XpRewardType.ACHIEVEMENT,
    ]
    assert all(t.course_id == "python-101" for t in history)

    full = await service.get_xp_history(test_user_id, days=30)
    assert len(full) == 6
    assert full[0].awarded_at > full[-1].awarded_at


@pytest.mark.asyncio
async def test_get_xp_history_rejects_non_positive_days(service, test_user_id):
    with pytest.raises(InvalidArgumentError):
        await service.get_xp_history(test_user_id, days=0)


@pytest.mark.asyncio
async def test_get_xp_history_rejects_window_beyond_retention(service, clock, ledger, test_user_id):
    """Asking for more history than the ledger keeps fails instead of truncating"""
    await service.report_lesson_completion(test_user_id, "python-101", "lesson-1", 1.0, False)
    clock.advance(days=40)
    await service.report_lesson_completion(test_user_id, "python-101", "lesson-2", 1.0, False)

    with pytest.raises(InvalidArgumentError) as exc_info:
        await service.get_xp_history(test_user_id, days=60)
    assert exc_info.value.field == "days"

    retained = await service.get_xp_history(test_user_id, days=ledger.retention.days)
    assert len(retained) == 3
    assert all(t.awarded_at == clock.now for t in retained)


# ============================================================================
# Clock Tests
# ============================================================================

@pytest.mark.asyncio
async def test_naive_clock_readings_are_stored_as_utc(stats_store, leaderboard_store, ledger,
                                                      identity_provider, course_catalog, utc,
                                                      test_user_id):
    service = GamificationService(
        stats_store=stats_store,
        leaderboard_store=leaderboard_store,
        ledger=ledger,
        identity_provider=identity_provider,
        course_catalog=course_catalog,
        clock=lambda: datetime(2024, 1, 15, 12, 0),
        streak_timezone=utc,
    )

    await service.report_lesson_completion(test_user_id, "python-101", "lesson-1", 1.0, False)

    stats = await service.get_user_stats(test_user_id)
    assert stats.last_activity_date.utcoffset() == timedelta(0)
    assert stats.last_activity_date.hour == 12
    board = await service.get_leaderboard(GLOBAL)
    assert board.last_updated.utcoffset() == timedelta(0)
