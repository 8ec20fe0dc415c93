"""
Service Container - Dependency Injection Container

Simple DI container for managing the long-lived service instance and its
dependencies. The service is lazy-loaded on first access.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional
import logging

from lms_gamification import config

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Infrastructure dependencies (stores, ledger, collaborators) are injected;
    anything left as None gets the in-memory/static default.
    """

    stats_store: Optional[object] = None  # UserStatsStore
    leaderboard_store: Optional[object] = None  # LeaderboardStore
    ledger: Optional[object] = None  # InMemoryXpLedger
    identity_provider: Optional[object] = None  # IdentityProvider
    course_catalog: Optional[object] = None  # CourseCatalog

    # Services (lazy-loaded via properties)
    _gamification_service: Optional[object] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        from lms_gamification.gamification.store import (
            InMemoryLeaderboardStore,
            InMemoryUserStatsStore,
        )
        from lms_gamification.gamification.xp_ledger import InMemoryXpLedger
        from lms_gamification.services.collaborators import (
            StaticCourseCatalog,
            StaticIdentityProvider,
        )

        if self.stats_store is None:
            self.stats_store = InMemoryUserStatsStore()
        if self.leaderboard_store is None:
            self.leaderboard_store = InMemoryLeaderboardStore()
        if self.ledger is None:
            self.ledger = InMemoryXpLedger(
                retention=timedelta(days=config.XP_HISTORY_RETENTION_DAYS)
            )
        if self.identity_provider is None:
            self.identity_provider = StaticIdentityProvider()
        if self.course_catalog is None:
            self.course_catalog = StaticCourseCatalog()

    @property
    def gamification_service(self):
        """Get GamificationService instance (lazy-loaded)"""
        if self._gamification_service is None:
            from lms_gamification.services.gamification_service import GamificationService
            self._gamification_service = GamificationService(
                stats_store=self.stats_store,
                leaderboard_store=self.leaderboard_store,
                ledger=self.ledger,
                identity_provider=self.identity_provider,
                course_catalog=self.course_catalog,
            )
            logger.debug("GamificationService instantiated")
        return self._gamification_service


# Global container instance (initialized at startup)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Returns:
        ServiceContainer: The global container instance

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() at startup before using services."
        )
    return _container


def init_container(**dependencies) -> ServiceContainer:
    """
    Initialize the global service container.

    Should be called once at startup. Keyword arguments are passed to
    ServiceContainer (stats_store, leaderboard_store, ledger,
    identity_provider, course_catalog).

    Returns:
        ServiceContainer: The initialized container
    """
    global _container

    _container = ServiceContainer(**dependencies)

    logger.info("Service container initialized")
    return _container


def set_container(container: ServiceContainer) -> None:
    """
    Install an already built container as the global one.

    Args:
        container: ServiceContainer with custom stores or collaborators
    """
    global _container

    _container = container
    logger.info("Service container replaced")
