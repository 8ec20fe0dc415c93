"""API routes for the gamification engine"""
import logging
from dataclasses import asdict
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from lms_gamification.api.middleware import limiter
from lms_gamification.api.models import (
    LessonCompletionRequest, LessonCompletionResponse,
    UserStatsResponse,
    XpHistoryResponse, XpTransactionResponse,
    HealthCheckResponse,
)
from lms_gamification.exceptions import GamificationError
from lms_gamification.gamification.xp_system import calculate_level_from_xp
from lms_gamification.models.gamification import Leaderboard, LeaderboardScope, LeaderboardType
from lms_gamification.observability.metrics import errors_total
from lms_gamification.services.container import get_container
from lms_gamification.services.gamification_service import GamificationService
from lms_gamification.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)

router = APIRouter()


def get_gamification_service() -> GamificationService:
    """Dependency returning the process-wide service instance"""
    return get_container().gamification_service


def _internal_error(operation: str, e: Exception) -> HTTPException:
    logger.error(f"Error in {operation}: {e}", exc_info=True)
    errors_total.labels(error_type=type(e).__name__, component="api").inc()
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(e)
    )


@router.post(
    "/api/v1/users/{user_id}/lessons/complete",
    response_model=LessonCompletionResponse,
)
@limiter.limit("60/minute")
async def complete_lesson(
    request: Request,
    user_id: str,
    payload: LessonCompletionRequest,
    service: GamificationService = Depends(get_gamification_service),
):
    """Report a completed lesson and return the XP it earned (Rate limit: 60/minute)"""
    try:
        result = await service.report_lesson_completion(
            user_id=user_id,
            course_id=payload.course_id,
            lesson_id=payload.lesson_id,
            score=payload.score,
            is_perfect=payload.is_perfect,
        )

        return LessonCompletionResponse(
            user_id=user_id,
            rewards=result.rewards,
            unlocked_achievements=result.unlocked_achievements,
            total_xp_awarded=result.total_xp_awarded,
            repeat_completion=result.repeat_completion,
        )

    except (HTTPException, GamificationError):
        raise
    except Exception as e:
        raise _internal_error("complete_lesson", e)


@router.get("/api/v1/users/{user_id}/stats", response_model=UserStatsResponse)
@limiter.limit("30/minute")
async def get_user_stats_endpoint(
    request: Request,
    user_id: str,
    service: GamificationService = Depends(get_gamification_service),
):
    """Get user XP, level, streaks and achievements (Rate limit: 30/minute)"""
    try:
        stats = await service.get_user_stats(user_id)
        level_info = calculate_level_from_xp(stats.total_xp)

        return UserStatsResponse(
            user_id=stats.user_id,
            total_xp=stats.total_xp,
            level=level_info["current_level"],
            next_level_xp=level_info["next_level_xp"],
            xp_to_next_level=level_info["xp_to_next_level"],
            current_streak=stats.current_streak,
            longest_streak=stats.longest_streak,
            last_activity_date=stats.last_activity_date,
            achievements=stats.achievements,
            course_progress=stats.course_progress,
        )

    except (HTTPException, GamificationError):
        raise
    except Exception as e:
        raise _internal_error("get_user_stats", e)


@router.get("/api/v1/users/{user_id}/xp/history", response_model=XpHistoryResponse)
@limiter.limit("30/minute")
async def get_xp_history_endpoint(
    request: Request,
    user_id: str,
    days: int = Query(default=7, description="Number of days of history"),
    service: GamificationService = Depends(get_gamification_service),
):
    """Get recent XP grants (Rate limit: 30/minute)"""
    try:
        transactions = await service.get_xp_history(user_id, days=days)

        return XpHistoryResponse(
            user_id=user_id,
            days=days,
            transactions=[
                XpTransactionResponse(**{k: v for k, v in asdict(t).items() if k != "user_id"})
                for t in transactions
            ],
        )

    except (HTTPException, GamificationError):
        raise
    except Exception as e:
        raise _internal_error("get_xp_history", e)


@router.get("/api/v1/leaderboards/{leaderboard_type}", response_model=Leaderboard)
@limiter.limit("60/minute")
async def get_leaderboard_endpoint(
    request: Request,
    leaderboard_type: LeaderboardType,
    course_id: Optional[str] = Query(default=None, description="Required for course leaderboards"),
    service: GamificationService = Depends(get_gamification_service),
):
    """Get the most recently built leaderboard (Rate limit: 60/minute)"""
    try:
        scope = LeaderboardScope(type=leaderboard_type, course_id=course_id)
        return await service.get_leaderboard(scope)

    except (HTTPException, GamificationError):
        raise
    except Exception as e:
        raise _internal_error("get_leaderboard", e)


@router.post("/api/v1/leaderboards/{leaderboard_type}/rebuild", response_model=Leaderboard)
@limiter.limit("10/minute")
async def rebuild_leaderboard_endpoint(
    request: Request,
    leaderboard_type: LeaderboardType,
    course_id: Optional[str] = Query(default=None, description="Required for course leaderboards"),
    service: GamificationService = Depends(get_gamification_service),
):
    """Rebuild a leaderboard from current stats (Rate limit: 10/minute)"""
    try:
        scope = LeaderboardScope(type=leaderboard_type, course_id=course_id)
        return await service.rebuild_leaderboard(scope)

    except (HTTPException, GamificationError):
        raise
    except Exception as e:
        raise _internal_error("rebuild_leaderboard", e)


@router.get("/api/health", response_model=HealthCheckResponse)
@limiter.limit("60/minute")
async def health_check(request: Request):
    """Health check endpoint (Rate limit: 60/minute for monitoring systems)"""
    return HealthCheckResponse(status="healthy", timestamp=now_utc())
