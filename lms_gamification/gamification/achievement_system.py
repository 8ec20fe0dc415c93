"""
Achievement System

Evaluates the per-user achievement list against current stats:
- Consistency (3, 7 and 30 day streaks)
- Milestones (first lesson, course completion, course XP)
- Time-of-day and social achievements (reserved, never unlock yet)

Features:
- One evaluator per achievement type, checked for completeness at import
- Progress tracking for locked achievements
- Unlocking is terminal: unlocked_at is set once and never changed
"""

from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional
import logging

from lms_gamification.gamification.xp_system import XP_CONSTANTS, XpConstants
from lms_gamification.models.gamification import Achievement, AchievementType, UserStats

logger = logging.getLogger(__name__)

# Per-course lesson counts supplied by the course catalog
CourseTargets = Mapping[str, int]

Evaluator = Callable[[UserStats, Achievement, CourseTargets], int]


def default_achievement_catalog(constants: XpConstants = XP_CONSTANTS) -> List[Achievement]:
    """Fresh, fully locked achievement list for a new user"""
    reward = constants.ACHIEVEMENT_BASE
    return [
        Achievement(
            id="first-lesson",
            title="First Steps",
            description="Complete your first lesson",
            icon="🎯",
            type=AchievementType.FIRST_LESSON,
            xp_reward=reward,
            target=1,
        ),
        Achievement(
            id="streak-3",
            title="Getting Started",
            description="Maintain a 3-day streak",
            icon="🔥",
            type=AchievementType.STREAK_3,
            xp_reward=reward,
            target=3,
        ),
        Achievement(
            id="streak-7",
            title="On Fire",
            description="Maintain a 7-day streak",
            icon="🔥🔥",
            type=AchievementType.STREAK_7,
            xp_reward=reward,
            target=7,
        ),
        Achievement(
            id="streak-30",
            title="Unstoppable",
            description="Maintain a 30-day streak",
            icon="🔥🔥🔥",
            type=AchievementType.STREAK_30,
            xp_reward=reward,
            target=30,
        ),
        Achievement(
            id="course-complete",
            title="Course Master",
            description="Complete a course",
            icon="🎓",
            type=AchievementType.COURSE_COMPLETE,
            xp_reward=reward,
            target=1,
        ),
        Achievement(
            id="perfect-score",
            title="Perfect Score",
            description="Earn 100 XP in a single course",
            icon="⭐",
            type=AchievementType.PERFECT_SCORE,
            xp_reward=reward,
            target=100,
        ),
        Achievement(
            id="early-bird",
            title="Early Bird",
            description="Study before 7 AM",
            icon="🌅",
            type=AchievementType.EARLY_BIRD,
            xp_reward=reward,
            target=1,
        ),
        Achievement(
            id="night-owl",
            title="Night Owl",
            description="Study after 11 PM",
            icon="🦉",
            type=AchievementType.NIGHT_OWL,
            xp_reward=reward,
            target=1,
        ),
        Achievement(
            id="social-butterfly",
            title="Social Butterfly",
            description="Learn together with friends",
            icon="🦋",
            type=AchievementType.SOCIAL_BUTTERFLY,
            xp_reward=reward,
            target=1,
        ),
    ]


# ============================================
# Evaluators
#
# Each returns the current progress value; the achievement unlocks once the
# value reaches its threshold (see _threshold).
# ============================================

def _progress_first_lesson(stats: UserStats, achievement: Achievement, targets: CourseTargets) -> int:
    return stats.completed_lesson_count


def _progress_streak(stats: UserStats, achievement: Achievement, targets: CourseTargets) -> int:
    return stats.current_streak


def _progress_course_complete(stats: UserStats, achievement: Achievement, targets: CourseTargets) -> int:
    """Best completion ratio across courses, scaled to the achievement target"""
    best = 0
    for course_id, progress in stats.course_progress.items():
        completed = len(progress.completed_lessons)
        lesson_count = targets.get(course_id)
        if lesson_count:
            if completed >= lesson_count:
                return achievement.target
            best = max(best, completed * achievement.target // lesson_count)
        else:
            best = max(best, completed)
    return best


def _progress_course_xp(stats: UserStats, achievement: Achievement, targets: CourseTargets) -> int:
    return max((progress.xp for progress in stats.course_progress.values()), default=0)


def _progress_reserved(stats: UserStats, achievement: Achievement, targets: CourseTargets) -> int:
    # No time-of-day or collaboration signal is wired in yet
    return 0


EVALUATORS: Dict[AchievementType, Evaluator] = {
    AchievementType.FIRST_LESSON: _progress_first_lesson,
    AchievementType.STREAK_3: _progress_streak,
    AchievementType.STREAK_7: _progress_streak,
    AchievementType.STREAK_30: _progress_streak,
    AchievementType.COURSE_COMPLETE: _progress_course_complete,
    AchievementType.PERFECT_SCORE: _progress_course_xp,
    AchievementType.EARLY_BIRD: _progress_reserved,
    AchievementType.NIGHT_OWL: _progress_reserved,
    AchievementType.SOCIAL_BUTTERFLY: _progress_reserved,
}

_missing = set(AchievementType) - set(EVALUATORS)
if _missing:
    raise RuntimeError(f"No evaluator for achievement types: {sorted(t.value for t in _missing)}")

STREAK_THRESHOLDS = {
    AchievementType.STREAK_3: 3,
    AchievementType.STREAK_7: 7,
    AchievementType.STREAK_30: 30,
}


def _threshold(achievement: Achievement) -> Optional[int]:
    """Progress value that unlocks the achievement; None for reserved types"""
    if achievement.type in (
        AchievementType.EARLY_BIRD,
        AchievementType.NIGHT_OWL,
        AchievementType.SOCIAL_BUTTERFLY,
    ):
        return None
    return STREAK_THRESHOLDS.get(achievement.type, achievement.target)


def is_unlocked_by(
    stats: UserStats, achievement: Achievement, course_targets: Optional[CourseTargets] = None
) -> bool:
    """Check one achievement's condition without mutating anything"""
    threshold = _threshold(achievement)
    if threshold is None:
        return False
    progress = EVALUATORS[achievement.type](stats, achievement, course_targets or {})
    return progress >= threshold


def check_achievements(
    stats: UserStats,
    now: Optional[datetime] = None,
    course_targets: Optional[CourseTargets] = None,
) -> List[Achievement]:
    """
    Unlock every achievement whose condition is now met

    Mutates stats.achievements in place. Already unlocked achievements are
    skipped, so each one is returned at most once over the user's lifetime.

    Args:
        stats: User stats after the current event was applied
        now: Unlock timestamp (defaults to datetime.now())
        course_targets: Lesson count per course from the course catalog

    Returns:
        Newly unlocked achievements, in catalog order
    """
    now = now or datetime.now()
    targets = course_targets or {}
    newly_unlocked = []

    for achievement in stats.achievements:
        if achievement.is_unlocked:
            continue

        progress = EVALUATORS[achievement.type](stats, achievement, targets)
        achievement.progress = min(progress, achievement.target)

        threshold = _threshold(achievement)
        if threshold is not None and progress >= threshold:
            achievement.unlocked_at = now
            achievement.progress = achievement.target
            newly_unlocked.append(achievement)

            logger.info(
                f"User {stats.user_id} unlocked achievement: {achievement.id} "
                f"({achievement.title}) +{achievement.xp_reward} XP"
            )

    return newly_unlocked


def ensure_catalog(stats: UserStats, catalog: List[Achievement]) -> int:
    """
    Add catalog entries the user does not have yet (e.g. after a catalog update)

    Returns:
        Number of achievements added
    """
    known = {achievement.id for achievement in stats.achievements}
    added = 0
    for entry in catalog:
        if entry.id not in known:
            stats.achievements.append(entry.model_copy(deep=True))
            added += 1
    return added
