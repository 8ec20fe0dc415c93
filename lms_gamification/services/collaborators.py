"""
External collaborators of the gamification service

The engine does not own user accounts or course content. It asks:
- an IdentityProvider for display names shown on leaderboards
- a CourseCatalog for the lesson count of a course (course completion)

The static implementations here are used when nothing else is wired in.
"""

import logging
from typing import Dict, Iterable, Mapping, Optional, Protocol

from lms_gamification.models.gamification import UserIdentity

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    async def resolve(self, user_ids: Iterable[str]) -> Dict[str, UserIdentity]: ...


class CourseCatalog(Protocol):
    async def get_lesson_count(self, course_id: str) -> Optional[int]: ...


class StaticIdentityProvider:
    """Identity lookup from a fixed mapping; unknown users are shown by their id"""

    def __init__(self, identities: Optional[Mapping[str, UserIdentity]] = None):
        self._identities = dict(identities or {})

    def register(self, identity: UserIdentity) -> None:
        self._identities[identity.user_id] = identity

    async def resolve(self, user_ids: Iterable[str]) -> Dict[str, UserIdentity]:
        return {
            user_id: self._identities.get(user_id) or UserIdentity(user_id=user_id, username=user_id)
            for user_id in user_ids
        }


class StaticCourseCatalog:
    """Lesson counts from a fixed mapping. Unknown courses have no target."""

    def __init__(self, lesson_counts: Optional[Mapping[str, int]] = None):
        self._lesson_counts = dict(lesson_counts or {})

    def set_lesson_count(self, course_id: str, lesson_count: int) -> None:
        self._lesson_counts[course_id] = lesson_count

    async def get_lesson_count(self, course_id: str) -> Optional[int]:
        count = self._lesson_counts.get(course_id)
        if count is None:
            logger.debug(f"No lesson count known for course {course_id}")
        return count
