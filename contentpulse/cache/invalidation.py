"""
Cache Invalidation Service

Event-driven cache invalidation for content mutations.

Every content lifecycle event for a user clears that user's derived
aggregates (stats, analytics, performance). Generation results are
left alone: they are keyed by request parameters, not by user.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from contentpulse.cache.domain import DomainCache


logger = logging.getLogger(__name__)


class CacheEvent(Enum):
    """Events that trigger cache invalidation."""

    # Content lifecycle
    CONTENT_CREATED = "content_created"
    CONTENT_UPDATED = "content_updated"
    CONTENT_DELETED = "content_deleted"
    CONTENT_SCHEDULED = "content_scheduled"
    CONTENT_POSTED = "content_posted"

    # Manual invalidation
    MANUAL_INVALIDATE_USER = "manual_invalidate_user"
    MANUAL_INVALIDATE_ALL = "manual_invalidate_all"


USER_EVENTS = {
    CacheEvent.CONTENT_CREATED,
    CacheEvent.CONTENT_UPDATED,
    CacheEvent.CONTENT_DELETED,
    CacheEvent.CONTENT_SCHEDULED,
    CacheEvent.CONTENT_POSTED,
    CacheEvent.MANUAL_INVALIDATE_USER,
}


@dataclass
class InvalidationResult:
    """Result of a cache invalidation operation."""
    event: CacheEvent
    success: bool
    keys_invalidated: int
    duration_ms: float
    errors: List[str] = field(default_factory=list)


class CacheInvalidator:
    """Maps content events to DomainCache invalidation."""

    def __init__(self, cache: DomainCache):
        self._cache = cache

    async def handle_event(
        self,
        event: CacheEvent,
        user_id: Optional[int] = None,
    ) -> InvalidationResult:
        """
        Handle cache invalidation for an event.

        Failures are collected into the result; a mutation that already
        reached the database must not fail because of the cache.
        """
        start_time = time.perf_counter()
        errors = []
        keys_invalidated = 0

        logger.info(f"Cache invalidation event: {event.value}, user={user_id}")

        try:
            if event in USER_EVENTS:
                if user_id is None:
                    errors.append(f"{event.value} requires a user_id")
                else:
                    keys_invalidated += await self._cache.invalidate_user(user_id)

            elif event == CacheEvent.MANUAL_INVALIDATE_ALL:
                keys_invalidated += await self._cache.clear_all()

        except Exception as e:
            errors.append(str(e))
            logger.error(f"Cache invalidation error: {e}")

        duration = (time.perf_counter() - start_time) * 1000

        result = InvalidationResult(
            event=event,
            success=len(errors) == 0,
            keys_invalidated=keys_invalidated,
            duration_ms=duration,
            errors=errors,
        )

        logger.info(
            f"Invalidation complete: {keys_invalidated} keys, duration: {duration:.2f}ms"
        )

        return result
