"""Gamification models: user stats, achievements, rewards and leaderboards"""
from enum import Enum
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from lms_gamification.exceptions import InvalidArgumentError


class AchievementType(str, Enum):
    """Closed set of achievement kinds"""
    FIRST_LESSON = "first_lesson"
    STREAK_3 = "streak_3"
    STREAK_7 = "streak_7"
    STREAK_30 = "streak_30"
    COURSE_COMPLETE = "course_complete"
    PERFECT_SCORE = "perfect_score"
    EARLY_BIRD = "early_bird"
    NIGHT_OWL = "night_owl"
    SOCIAL_BUTTERFLY = "social_butterfly"


class XpRewardType(str, Enum):
    """Reason an XP grant was made"""
    LESSON_COMPLETE = "lesson_complete"
    STREAK_BONUS = "streak_bonus"
    ACHIEVEMENT = "achievement"
    PERFECT_SCORE = "perfect_score"


class LeaderboardType(str, Enum):
    """Leaderboard partitions"""
    GLOBAL = "global"
    COURSE = "course"
    WEEKLY = "weekly"


class Achievement(BaseModel):
    """Catalog entry instantiated per user"""
    id: str
    title: str
    description: str
    icon: str
    type: AchievementType
    xp_reward: int = Field(..., ge=0)
    progress: int = 0
    target: int = 1
    unlocked_at: Optional[datetime] = None

    @property
    def is_unlocked(self) -> bool:
        return self.unlocked_at is not None


class CourseProgress(BaseModel):
    """Progress of one user in one course"""
    course_id: str
    xp: int = Field(default=0, ge=0)
    completed_lessons: list[str] = Field(default_factory=list)
    current_streak: int = Field(default=0, ge=0)
    last_activity_date: Optional[datetime] = None

    def mark_lesson_completed(self, lesson_id: str) -> bool:
        """Add lesson to the completed set. Returns False if it was already there."""
        if lesson_id in self.completed_lessons:
            return False
        self.completed_lessons.append(lesson_id)
        return True


class UserStats(BaseModel):
    """Gamification state of a single user"""
    user_id: str
    total_xp: int = Field(default=0, ge=0)
    current_streak: int = Field(default=0, ge=0)
    longest_streak: int = Field(default=0, ge=0)
    last_activity_date: Optional[datetime] = None
    achievements: list[Achievement] = Field(default_factory=list)
    course_progress: dict[str, CourseProgress] = Field(default_factory=dict)
    version: int = 0

    @property
    def unlocked_achievement_count(self) -> int:
        return sum(1 for achievement in self.achievements if achievement.is_unlocked)

    @property
    def completed_lesson_count(self) -> int:
        return sum(len(progress.completed_lessons) for progress in self.course_progress.values())

    def get_or_create_course(self, course_id: str) -> CourseProgress:
        """Return the progress record for a course, creating it on first use"""
        progress = self.course_progress.get(course_id)
        if progress is None:
            progress = CourseProgress(course_id=course_id)
            self.course_progress[course_id] = progress
        return progress


class XpReward(BaseModel):
    """One labelled, timestamped XP grant"""
    model_config = ConfigDict(frozen=True)

    type: XpRewardType
    amount: int = Field(..., ge=0)
    description: str
    timestamp: datetime


class LeaderboardScope(BaseModel):
    """Partition key of a leaderboard; course_id is required iff type is course"""
    model_config = ConfigDict(frozen=True)

    type: LeaderboardType
    course_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_course_id(self) -> "LeaderboardScope":
        if self.type == LeaderboardType.COURSE and not self.course_id:
            raise InvalidArgumentError(
                "course_id is required for a course leaderboard",
                field="course_id",
                value=self.course_id,
            )
        if self.type != LeaderboardType.COURSE and self.course_id is not None:
            raise InvalidArgumentError(
                f"course_id is only allowed for course leaderboards, not '{self.type.value}'",
                field="course_id",
                value=self.course_id,
            )
        return self

    @property
    def key(self) -> str:
        if self.type == LeaderboardType.COURSE:
            return f"course:{self.course_id}"
        return self.type.value


class UserIdentity(BaseModel):
    """Display identity supplied by the account service"""
    user_id: str
    username: str
    avatar_url: Optional[str] = None


class LeaderboardEntry(BaseModel):
    """Ranked row of a leaderboard"""
    user_id: str
    username: str
    avatar_url: Optional[str] = None
    xp: int
    streak: int
    achievements: int
    rank: int = 0


class Leaderboard(BaseModel):
    """Ranked view of one scope"""
    id: str
    type: LeaderboardType
    course_id: Optional[str] = None
    entries: list[LeaderboardEntry] = Field(default_factory=list)
    last_updated: datetime

    @property
    def scope(self) -> LeaderboardScope:
        return LeaderboardScope(type=self.type, course_id=self.course_id)


class LessonCompletionResult(BaseModel):
    """Outcome of a reported lesson completion"""
    rewards: list[XpReward] = Field(default_factory=list)
    unlocked_achievements: list[Achievement] = Field(default_factory=list)
    total_xp_awarded: int = 0
    repeat_completion: bool = False
