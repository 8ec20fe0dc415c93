"""
XP and Leveling System

Pure XP calculations for learning events. No state, no I/O.

XP Award Rules (defaults, see XpConstants):
- Lesson completion: 100 XP scaled by the lesson's base score
- Streak bonus: +10% of the lesson award per streak day, capped at +200%
- Perfect score: +50 XP flat
- Achievement unlocks: +200 XP each

Leveling Curve:
- Level 1 below 1000 XP
- Each further level needs 1.5x the previous threshold (1000, 1500, 2250, ...)
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Sequence
import logging
import math

from lms_gamification import config
from lms_gamification.exceptions import InvalidArgumentError
from lms_gamification.models.gamification import Achievement, XpReward, XpRewardType

logger = logging.getLogger(__name__)

LEVEL_BASE_XP = 1000
LEVEL_MULTIPLIER = 1.5


@dataclass(frozen=True)
class XpConstants:
    """XP formula parameters, fixed for the process lifetime"""
    LESSON_COMPLETE: int = 100
    PERFECT_SCORE_BONUS: int = 50
    STREAK_MULTIPLIER: float = 0.1
    MAX_STREAK_BONUS: float = 2
    ACHIEVEMENT_BASE: int = 200


XP_CONSTANTS = XpConstants(
    LESSON_COMPLETE=config.XP_LESSON_COMPLETE,
    PERFECT_SCORE_BONUS=config.XP_PERFECT_SCORE_BONUS,
    STREAK_MULTIPLIER=config.XP_STREAK_MULTIPLIER,
    MAX_STREAK_BONUS=config.XP_MAX_STREAK_BONUS,
    ACHIEVEMENT_BASE=config.XP_ACHIEVEMENT_BASE,
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero"""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_base_score(base_score: float) -> None:
    """Reject scores that are not finite, non-negative numbers"""
    if not isinstance(base_score, (int, float)) or isinstance(base_score, bool):
        raise InvalidArgumentError("Score must be a number", field="base_score", value=base_score)
    if math.isnan(base_score) or math.isinf(base_score):
        raise InvalidArgumentError("Score must be finite", field="base_score", value=base_score)
    if base_score < 0:
        raise InvalidArgumentError("Score must not be negative", field="base_score", value=base_score)


def _validate_inputs(base_score: float, current_streak: int, achievements_unlocked: int) -> None:
    validate_base_score(base_score)
    if current_streak < 0:
        raise InvalidArgumentError(
            "Streak must not be negative", field="current_streak", value=current_streak
        )
    if achievements_unlocked < 0:
        raise InvalidArgumentError(
            "Achievement count must not be negative",
            field="achievements_unlocked_this_call",
            value=achievements_unlocked,
        )


def _streak_ratio(current_streak: int, constants: XpConstants) -> float:
    return min(current_streak * constants.STREAK_MULTIPLIER, constants.MAX_STREAK_BONUS)


def compute_lesson_xp(
    base_score: float,
    current_streak: int,
    is_perfect_score: bool,
    achievements_unlocked_this_call: int,
    constants: XpConstants = XP_CONSTANTS,
) -> int:
    """
    Calculate the XP award for a completed lesson

    Args:
        base_score: Lesson weight (1.0 for a standard lesson); 0 disables the base award
        current_streak: User's streak after today's activity was counted
        is_perfect_score: Whether the lesson was completed with a perfect score
        achievements_unlocked_this_call: Achievements unlocked by the same event
        constants: Formula parameters

    Returns:
        Total XP, rounded half-up

    Raises:
        InvalidArgumentError: Negative/NaN score, negative streak or count
    """
    _validate_inputs(base_score, current_streak, achievements_unlocked_this_call)

    xp = constants.LESSON_COMPLETE * base_score
    xp += xp * _streak_ratio(current_streak, constants)

    if is_perfect_score:
        xp += constants.PERFECT_SCORE_BONUS

    xp += achievements_unlocked_this_call * constants.ACHIEVEMENT_BASE

    return round_half_up(xp)


def build_lesson_rewards(
    base_score: float,
    current_streak: int,
    is_perfect_score: bool,
    unlocked_achievements: Sequence[Achievement] = (),
    timestamp: Optional[datetime] = None,
    constants: XpConstants = XP_CONSTANTS,
) -> List[XpReward]:
    """
    Split a lesson award into labelled rewards so callers can show why XP was earned

    The lesson, streak and perfect-score rewards always add up to
    compute_lesson_xp(..., achievements_unlocked_this_call=0). Each unlocked
    achievement adds one reward carrying its own xp_reward.

    Returns:
        List of XpReward in display order
    """
    _validate_inputs(base_score, current_streak, len(unlocked_achievements))
    timestamp = timestamp or datetime.now()

    base = constants.LESSON_COMPLETE * base_score
    base_amount = round_half_up(base)
    with_streak = round_half_up(base + base * _streak_ratio(current_streak, constants))
    streak_amount = with_streak - base_amount

    rewards = [
        XpReward(
            type=XpRewardType.LESSON_COMPLETE,
            amount=base_amount,
            description="Completed lesson",
            timestamp=timestamp,
        )
    ]

    if streak_amount > 0:
        rewards.append(XpReward(
            type=XpRewardType.STREAK_BONUS,
            amount=streak_amount,
            description=f"{current_streak} day streak bonus",
            timestamp=timestamp,
        ))

    if is_perfect_score:
        rewards.append(XpReward(
            type=XpRewardType.PERFECT_SCORE,
            amount=constants.PERFECT_SCORE_BONUS,
            description="Perfect score bonus",
            timestamp=timestamp,
        ))

    rewards.extend(build_achievement_rewards(unlocked_achievements, timestamp))
    return rewards


def build_achievement_rewards(
    unlocked_achievements: Sequence[Achievement],
    timestamp: Optional[datetime] = None,
) -> List[XpReward]:
    """One achievement reward per newly unlocked achievement"""
    timestamp = timestamp or datetime.now()
    return [
        XpReward(
            type=XpRewardType.ACHIEVEMENT,
            amount=achievement.xp_reward,
            description=f"Achievement unlocked: {achievement.title}",
            timestamp=timestamp,
        )
        for achievement in unlocked_achievements
    ]


def calculate_level_from_xp(total_xp: int) -> Dict[str, int]:
    """
    Calculate level from total XP

    Returns:
        {
            'current_level': int,
            'next_level_xp': int,   # XP threshold of the next level
            'xp_to_next_level': int
        }
    """
    level = 1
    while total_xp >= LEVEL_BASE_XP * LEVEL_MULTIPLIER ** (level - 1):
        level += 1

    next_level_xp = math.ceil(LEVEL_BASE_XP * LEVEL_MULTIPLIER ** (level - 1))

    return {
        "current_level": level,
        "next_level_xp": next_level_xp,
        "xp_to_next_level": next_level_xp - max(total_xp, 0),
    }
