"""
Domain Cache

Typed, namespaced cache helpers built on CacheGateway:
- content: raw generation results keyed by topic/keyword/type/platform
- stats: per user + period
- analytics: per user + date range
- performance: per user

User-scoped keys embed `user:<id>` so invalidate_user() can clear a
user's aggregates without touching anyone else's. Content entries are
shared across users and are never invalidated by user mutations.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Mapping, Optional, Union

from contentpulse.cache.config import CacheNamespace, CacheTTL, USER_SCOPED_NAMESPACES
from contentpulse.cache.gateway import CacheGateway
from contentpulse.cache.keys import derive_key, scope_fragment, user_scope


logger = logging.getLogger(__name__)

Namespace = Union[CacheNamespace, str]


def _as_namespace(namespace: Namespace) -> Namespace:
    try:
        return CacheNamespace(namespace)
    except ValueError:
        return namespace


def _ttl_seconds(ttl: Union[int, float, timedelta]) -> int:
    if isinstance(ttl, timedelta):
        return int(ttl.total_seconds())
    return int(ttl)


class DomainCache:
    """Namespaced cache-aside helpers and the invalidation policy."""

    def __init__(self, gateway: CacheGateway):
        self.gateway = gateway

    def key_for(self, namespace: Namespace, params: Any) -> str:
        """Derive the key for a namespace/params pair."""
        namespace = _as_namespace(namespace)
        scope = None
        if namespace in USER_SCOPED_NAMESPACES and isinstance(params, Mapping):
            user_id = params.get("user_id")
            if user_id is not None:
                scope = user_scope(user_id)
        return derive_key(namespace, params, scope=scope)

    async def get_cached(self, namespace: Namespace, params: Any) -> Optional[Any]:
        """Return the cached value, or None on miss or cache trouble."""
        result = await self.gateway.get(self.key_for(namespace, params))
        return result.value if result.hit else None

    async def set_cached(
        self,
        namespace: Namespace,
        params: Any,
        value: Any,
        ttl_seconds: Optional[Union[int, timedelta]] = None,
    ) -> bool:
        """Store a value under the namespace TTL unless one is given."""
        namespace = _as_namespace(namespace)
        if ttl_seconds is None:
            ttl_seconds = CacheTTL.for_namespace(namespace)
        return await self.gateway.set(
            self.key_for(namespace, params),
            value,
            _ttl_seconds(ttl_seconds),
        )

    # =========================================================================
    # Content generation cache
    # =========================================================================

    @staticmethod
    def _content_params(topic, keyword, content_type, platform_target) -> dict:
        return {
            "topic": topic,
            "keyword": keyword,
            "content_type": content_type,
            "platform_target": platform_target,
        }

    async def get_cached_content(
        self,
        topic: str,
        keyword: Optional[str],
        content_type: str,
        platform_target: Optional[str],
    ) -> Optional[Any]:
        params = self._content_params(topic, keyword, content_type, platform_target)
        return await self.get_cached(CacheNamespace.CONTENT, params)

    async def set_cached_content(
        self,
        topic: str,
        keyword: Optional[str],
        content_type: str,
        platform_target: Optional[str],
        content: Any,
        ttl_seconds: Optional[Union[int, timedelta]] = None,
    ) -> bool:
        params = self._content_params(topic, keyword, content_type, platform_target)
        return await self.set_cached(CacheNamespace.CONTENT, params, content, ttl_seconds)

    # =========================================================================
    # Per-user caches
    # =========================================================================

    async def get_cached_stats(self, user_id: int, period: str) -> Optional[Any]:
        params = {"user_id": user_id, "period": period}
        return await self.get_cached(CacheNamespace.STATS, params)

    async def set_cached_stats(self, user_id: int, period: str, stats: Any) -> bool:
        params = {"user_id": user_id, "period": period}
        return await self.set_cached(CacheNamespace.STATS, params, stats)

    async def get_cached_analytics(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
    ) -> Optional[Any]:
        params = {"user_id": user_id, "start": start, "end": end}
        return await self.get_cached(CacheNamespace.ANALYTICS, params)

    async def set_cached_analytics(
        self,
        user_id: int,
        start: datetime,
        end: datetime,
        analytics: Any,
    ) -> bool:
        params = {"user_id": user_id, "start": start, "end": end}
        return await self.set_cached(CacheNamespace.ANALYTICS, params, analytics)

    async def get_cached_performance(self, user_id: int) -> Optional[Any]:
        return await self.get_cached(CacheNamespace.PERFORMANCE, {"user_id": user_id})

    async def set_cached_performance(self, user_id: int, performance: Any) -> bool:
        return await self.set_cached(
            CacheNamespace.PERFORMANCE, {"user_id": user_id}, performance
        )

    # =========================================================================
    # Invalidation
    # =========================================================================

    async def invalidate_user(self, user_id: int) -> int:
        """
        Clear a user's stats, analytics and performance entries.

        Call after every content create/update/delete, once the database
        write has completed and before the response goes out.
        """
        scope = user_scope(user_id)
        counts = await asyncio.gather(*(
            self.gateway.clear(scope_fragment(namespace, scope))
            for namespace in USER_SCOPED_NAMESPACES
        ))
        total = sum(counts)
        logger.info(f"Invalidated {total} cache entries for user {user_id}")
        return total

    async def clear_all(self) -> int:
        """Clear every namespace, including generation results."""
        counts = await asyncio.gather(*(
            self.gateway.clear(f"{namespace.value}:")
            for namespace in CacheNamespace
        ))
        total = sum(counts)
        logger.warning(f"Cleared all caches ({total} entries)")
        return total
