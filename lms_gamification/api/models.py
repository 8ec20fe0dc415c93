"""Pydantic models for API request/response validation"""
from typing import Optional, List, Dict
from pydantic import BaseModel, Field
from datetime import datetime

from lms_gamification.models.gamification import (
    Achievement,
    CourseProgress,
    XpReward,
    XpRewardType,
)


class LessonCompletionRequest(BaseModel):
    """Request to report a completed lesson"""
    course_id: str = Field(..., description="Course identifier")
    lesson_id: str = Field(..., description="Lesson identifier")
    score: float = Field(default=1.0, description="Lesson weight, 1.0 for a standard lesson")
    is_perfect: bool = Field(default=False, description="Completed with a perfect score")


class LessonCompletionResponse(BaseModel):
    """XP rewards and achievements produced by a lesson completion"""
    user_id: str
    rewards: List[XpReward]
    unlocked_achievements: List[Achievement]
    total_xp_awarded: int
    repeat_completion: bool


class UserStatsResponse(BaseModel):
    """Response with a user's gamification stats"""
    user_id: str
    total_xp: int
    level: int
    next_level_xp: int
    xp_to_next_level: int
    current_streak: int
    longest_streak: int
    last_activity_date: Optional[datetime] = None
    achievements: List[Achievement]
    course_progress: Dict[str, CourseProgress]


class XpTransactionResponse(BaseModel):
    """Single XP grant from the ledger"""
    amount: int
    source_type: XpRewardType
    awarded_at: datetime
    course_id: Optional[str] = None
    reason: str = ""


class XpHistoryResponse(BaseModel):
    """Recent XP grants for a user"""
    user_id: str
    days: int
    transactions: List[XpTransactionResponse]


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Check timestamp")


class ErrorResponse(BaseModel):
    """Error response model"""
    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    user_message: Optional[str] = Field(None, description="Message safe to show to users")
    request_id: Optional[str] = Field(None, description="Request identifier for tracing")
    timestamp: datetime = Field(default_factory=datetime.now)
