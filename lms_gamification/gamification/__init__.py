"""
Gamification core for the LMS

Pure building blocks used by GamificationService:
- XP formula and leveling
- Daily streak tracking
- Achievement evaluation
- Leaderboard ranking (global, course, weekly)
- Stores and the XP ledger behind them
"""

from lms_gamification.gamification.xp_system import (
    XP_CONSTANTS,
    XpConstants,
    compute_lesson_xp,
    build_lesson_rewards,
    calculate_level_from_xp,
)
from lms_gamification.gamification.streak_system import update_streak, compute_streak
from lms_gamification.gamification.achievement_system import (
    check_achievements,
    default_achievement_catalog,
)
from lms_gamification.gamification.leaderboard import rebuild

__all__ = [
    "XP_CONSTANTS",
    "XpConstants",
    "compute_lesson_xp",
    "build_lesson_rewards",
    "calculate_level_from_xp",
    "update_streak",
    "compute_streak",
    "check_achievements",
    "default_achievement_catalog",
    "rebuild",
]
