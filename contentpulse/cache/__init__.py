"""
ContentPulse Caching Layer

Best-effort caching that never turns into a request failure:
- Redis when reachable, an in-process fallback store when not
- Deterministic keys from a namespace plus structured parameters
- Per-namespace TTLs and per-user invalidation on content mutations

Usage:
    gateway = CacheGateway()
    await gateway.connect()          # never raises
    cache = DomainCache(gateway)

    analytics = await cache.get_cached_analytics(user_id, start, end)

    # After a content write
    invalidator = CacheInvalidator(cache)
    await invalidator.handle_event(CacheEvent.CONTENT_CREATED, user_id=user_id)
"""

from contentpulse.cache.config import (
    CacheConfig,
    CacheNamespace,
    CacheTTL,
    get_cache_config,
)
from contentpulse.cache.keys import derive_key, canonical_json, scope_fragment, user_scope
from contentpulse.cache.fallback import FallbackStore
from contentpulse.cache.gateway import (
    CacheGateway,
    CacheResult,
    ConnectionState,
    create_redis_client,
)
from contentpulse.cache.domain import DomainCache
from contentpulse.cache.invalidation import (
    CacheEvent,
    CacheInvalidator,
    InvalidationResult,
)

__all__ = [
    # Config
    "CacheConfig",
    "CacheNamespace",
    "CacheTTL",
    "get_cache_config",
    # Keys
    "derive_key",
    "canonical_json",
    "scope_fragment",
    "user_scope",
    # Stores
    "FallbackStore",
    "CacheGateway",
    "CacheResult",
    "ConnectionState",
    "create_redis_client",
    # Domain
    "DomainCache",
    # Invalidation
    "CacheEvent",
    "CacheInvalidator",
    "InvalidationResult",
]
