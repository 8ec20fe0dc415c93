"""Configuration management"""
import os
from dotenv import load_dotenv

from lms_gamification.exceptions import ConfigurationError

load_dotenv()

# Logging
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# API server
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8080"))
RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# Observability
ENABLE_METRICS: bool = os.getenv("ENABLE_METRICS", "true").lower() == "true"

# Streaks are compared by calendar date in this timezone
STREAK_TIMEZONE: str = os.getenv("STREAK_TIMEZONE", "UTC")

# Leaderboards
WEEKLY_WINDOW_DAYS: int = int(os.getenv("WEEKLY_WINDOW_DAYS", "7"))
LEADERBOARD_MAX_ENTRIES: int = int(os.getenv("LEADERBOARD_MAX_ENTRIES", "20"))

# XP ledger keeps this many days; longer history queries are rejected
XP_HISTORY_RETENTION_DAYS: int = int(os.getenv("XP_HISTORY_RETENTION_DAYS", "35"))

# XP formula (fixed for the process lifetime)
XP_LESSON_COMPLETE: int = int(os.getenv("XP_LESSON_COMPLETE", "100"))
XP_PERFECT_SCORE_BONUS: int = int(os.getenv("XP_PERFECT_SCORE_BONUS", "50"))
XP_STREAK_MULTIPLIER: float = float(os.getenv("XP_STREAK_MULTIPLIER", "0.1"))
XP_MAX_STREAK_BONUS: float = float(os.getenv("XP_MAX_STREAK_BONUS", "2"))
XP_ACHIEVEMENT_BASE: int = int(os.getenv("XP_ACHIEVEMENT_BASE", "200"))


# Validation
def validate_config() -> None:
    """Validate configuration values"""
    if WEEKLY_WINDOW_DAYS <= 0:
        raise ConfigurationError(
            "WEEKLY_WINDOW_DAYS must be positive", config_key="WEEKLY_WINDOW_DAYS"
        )
    if LEADERBOARD_MAX_ENTRIES <= 0:
        raise ConfigurationError(
            "LEADERBOARD_MAX_ENTRIES must be positive", config_key="LEADERBOARD_MAX_ENTRIES"
        )
    if XP_HISTORY_RETENTION_DAYS < WEEKLY_WINDOW_DAYS:
        raise ConfigurationError(
            "XP_HISTORY_RETENTION_DAYS must cover the weekly window",
            config_key="XP_HISTORY_RETENTION_DAYS",
        )
    for key, value in (
        ("XP_LESSON_COMPLETE", XP_LESSON_COMPLETE),
        ("XP_PERFECT_SCORE_BONUS", XP_PERFECT_SCORE_BONUS),
        ("XP_STREAK_MULTIPLIER", XP_STREAK_MULTIPLIER),
        ("XP_MAX_STREAK_BONUS", XP_MAX_STREAK_BONUS),
        ("XP_ACHIEVEMENT_BASE", XP_ACHIEVEMENT_BASE),
    ):
        if value < 0:
            raise ConfigurationError(f"{key} must not be negative", config_key=key)

    try:
        from zoneinfo import ZoneInfo
        ZoneInfo(STREAK_TIMEZONE)
    except Exception as e:
        raise ConfigurationError(
            f"Unknown STREAK_TIMEZONE '{STREAK_TIMEZONE}'",
            config_key="STREAK_TIMEZONE",
            cause=e,
        )
