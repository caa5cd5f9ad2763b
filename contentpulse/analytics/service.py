"""
Metrics Service

Cache-aside facade over the aggregate analytics functions. Route handlers
call this; it checks DomainCache, reads rows from the content store on a
miss, computes, stores the result under the namespace TTL and returns it.

Store failures are logged and re-raised. A partial payload is never
cached or returned.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Dict, Mapping, Optional

from contentpulse.cache.domain import DomainCache

from .aggregate import (
    build_advanced_analytics,
    build_content_stats,
    build_performance_scores,
    period_start,
    previous_period,
)
from .engagement import EngagementMetrics, score

if TYPE_CHECKING:
    from contentpulse.database.repository import ContentStore

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 50


class MetricsService:
    """
    Derived analytics for one content store.

    Usage:
        service = MetricsService(SqlContentStore(), DomainCache(gateway))
        analytics = await service.advanced_analytics(user_id, start, end)
    """

    def __init__(
        self,
        store: "ContentStore",
        cache: DomainCache,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.cache = cache
        self.sample_size = sample_size
        self._clock = clock

    def score(self, item: Mapping[str, Any]) -> EngagementMetrics:
        """Score one content item. Never cached."""
        return score(item)

    async def advanced_analytics(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
    ) -> Dict[str, Any]:
        """
        Overview, breakdown and trends for content created in [start, end).

        Raises:
            ValueError: end is not after start
        """
        if end <= start:
            raise ValueError("end must be after start")

        cached = await self.cache.get_cached_analytics(user_id, start, end)
        if cached is not None:
            logger.info(f"Analytics cache hit for user {user_id}")
            return cached

        previous_start, previous_end = previous_period(start, end)
        try:
            current_rows = await self.store.list_content(user_id, start=start, end=end)
            previous_rows = await self.store.list_content(
                user_id, start=previous_start, end=previous_end
            )
        except Exception as e:
            logger.error(f"Failed to load analytics rows for user {user_id}: {e}")
            raise

        analytics = build_advanced_analytics(current_rows, previous_rows)
        await self.cache.set_cached_analytics(user_id, start, end, analytics)
        return analytics

    async def performance_scores(self, user_id: int) -> Dict[str, Any]:
        """Scores and insights for the user's most recent content."""
        cached = await self.cache.get_cached_performance(user_id)
        if cached is not None:
            logger.info(f"Performance cache hit for user {user_id}")
            return cached

        try:
            rows = await self.store.list_content(
                user_id, limit=self.sample_size, newest_first=True
            )
        except Exception as e:
            logger.error(f"Failed to load performance rows for user {user_id}: {e}")
            raise

        performance = build_performance_scores(rows)
        await self.cache.set_cached_performance(user_id, performance)
        return performance

    async def content_stats(
        self,
        user_id: int,
        period: str = "all",
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Status/type counts for a period ("all", "7d" or "30d").

        Raises:
            ValueError: unknown period
        """
        now = now or self._clock()
        since = period_start(period, now)

        cached = await self.cache.get_cached_stats(user_id, period)
        if cached is not None:
            logger.debug(f"Stats cache hit for user {user_id} ({period})")
            return cached

        try:
            rows = await self.store.list_content(user_id, start=since)
        except Exception as e:
            logger.error(f"Failed to load stats rows for user {user_id}: {e}")
            raise

        stats = build_content_stats(rows, now)
        await self.cache.set_cached_stats(user_id, period, stats)
        return stats

    async def invalidate_user(self, user_id: int) -> int:
        """Drop every cached aggregate for a user."""
        return await self.cache.invalidate_user(user_id)
