"""
Prometheus metrics definitions for the gamification engine.

This module defines all metrics collected by the application, organized by category:
- HTTP/API metrics: Request counts, latency
- Gamification metrics: XP awarded, lessons completed, achievements unlocked
- Leaderboard metrics: Rebuild latency and size
- Error metrics: Errors by type

Metrics are exposed at the /metrics endpoint for Prometheus scraping.
"""

import logging
from prometheus_client import Counter, Gauge, Histogram

logger = logging.getLogger(__name__)

# =============================================================================
# HTTP/API Metrics
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests received",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method", "endpoint"],
)

# =============================================================================
# Gamification Metrics
# =============================================================================

xp_awarded_total = Counter(
    "xp_awarded_total",
    "Total XP awarded",
    ["reward_type"],  # lesson_complete/streak_bonus/perfect_score/achievement
)

lessons_completed_total = Counter(
    "lessons_completed_total",
    "Lesson completions reported",
    ["outcome"],  # new/repeat
)

achievements_unlocked_total = Counter(
    "achievements_unlocked_total",
    "Achievements unlocked",
    ["achievement_type"],
)

streak_transitions_total = Counter(
    "streak_transitions_total",
    "Streak evaluations by outcome",
    ["transition"],  # started/same_day/continued/reset
)

# =============================================================================
# Leaderboard Metrics
# =============================================================================

leaderboard_rebuild_duration_seconds = Histogram(
    "leaderboard_rebuild_duration_seconds",
    "Time spent rebuilding leaderboards",
    ["leaderboard_type"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
)

leaderboard_entries = Gauge(
    "leaderboard_entries",
    "Entries on the most recently built leaderboard",
    ["leaderboard_type"],
)

# =============================================================================
# Error Metrics
# =============================================================================

errors_total = Counter(
    "errors_total",
    "Total errors by type and component",
    ["error_type", "component"],  # component: api/service
)
