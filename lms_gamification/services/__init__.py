"""
Service Layer Package

Business logic services sitting between the API layer and the stores.

Core Services:
- GamificationService: XP, streaks, achievements, leaderboards

Collaborators:
- IdentityProvider: display names for leaderboard entries
- CourseCatalog: lesson counts used for course completion
"""

from lms_gamification.services.container import ServiceContainer, get_container, init_container

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
]
