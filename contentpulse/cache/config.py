"""
Cache Configuration

Centralized configuration for the caching layer.
TTLs are defined per namespace; connection and fallback settings
can be overridden via environment variables.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from functools import lru_cache


class CacheNamespace(str, Enum):
    """Logical categories of cached values."""

    # Raw provider responses, keyed by generation parameters (shared across users)
    CONTENT = "content"

    # Per-user derived values, invalidated on content mutations
    STATS = "stats"
    ANALYTICS = "analytics"
    PERFORMANCE = "performance"


USER_SCOPED_NAMESPACES = (
    CacheNamespace.STATS,
    CacheNamespace.ANALYTICS,
    CacheNamespace.PERFORMANCE,
)


@dataclass(frozen=True)
class CacheTTL:
    """
    Cache TTL configuration by namespace.

    Per-user aggregates change with every new content item, so they
    are kept short. Generation results for an identical
    (topic, keyword, type, platform) request tolerate staleness and
    are kept longer to save provider calls.
    """

    CONTENT: timedelta = timedelta(hours=1)
    STATS: timedelta = timedelta(minutes=30)
    ANALYTICS: timedelta = timedelta(minutes=30)
    PERFORMANCE: timedelta = timedelta(hours=1)

    # Used when a caller stores a value outside the known namespaces
    DEFAULT: timedelta = timedelta(hours=1)

    @classmethod
    def for_namespace(cls, namespace: str) -> timedelta:
        """Get TTL for a namespace name."""
        mapping = {
            CacheNamespace.CONTENT.value: cls.CONTENT,
            CacheNamespace.STATS.value: cls.STATS,
            CacheNamespace.ANALYTICS.value: cls.ANALYTICS,
            CacheNamespace.PERFORMANCE.value: cls.PERFORMANCE,
        }
        key = namespace.value if isinstance(namespace, CacheNamespace) else namespace
        return mapping.get(key, cls.DEFAULT)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class CacheConfig:
    """
    Main cache configuration.

    Settings can be overridden via environment variables:
    - CACHE_ENABLED: Enable/disable caching globally
    - REDIS_URL: Networked cache location
    - CACHE_CONNECT_TIMEOUT: Seconds to wait for the initial connect
    - CACHE_MAX_RETRIES: Backend errors tolerated before giving up on Redis
    - CACHE_AUTO_RECONNECT / CACHE_RECONNECT_DELAY: Background reconnects
    - CACHE_FALLBACK_*: In-process fallback store limits
    """

    # Global cache toggle
    enabled: bool = field(default_factory=lambda: _env_bool("CACHE_ENABLED", "true"))

    # Redis connection
    redis_url: str = field(default_factory=lambda: os.getenv(
        "REDIS_URL",
        "redis://localhost:6379"
    ))
    connect_timeout: float = field(default_factory=lambda: float(os.getenv(
        "CACHE_CONNECT_TIMEOUT",
        "5"
    )))

    # After this many backend errors Redis is abandoned for the process lifetime
    max_retries: int = field(default_factory=lambda: int(os.getenv(
        "CACHE_MAX_RETRIES",
        "3"
    )))
    auto_reconnect: bool = field(default_factory=lambda: _env_bool(
        "CACHE_AUTO_RECONNECT",
        "true"
    ))
    reconnect_delay: float = field(default_factory=lambda: float(os.getenv(
        "CACHE_RECONNECT_DELAY",
        "1"
    )))

    default_ttl_seconds: int = field(default_factory=lambda: int(os.getenv(
        "CACHE_DEFAULT_TTL",
        "3600"
    )))

    # In-process fallback store
    fallback_sweep_interval: float = field(default_factory=lambda: float(os.getenv(
        "CACHE_FALLBACK_SWEEP_INTERVAL",
        "300"
    )))
    fallback_max_age: float = field(default_factory=lambda: float(os.getenv(
        "CACHE_FALLBACK_MAX_AGE",
        "3600"
    )))
    fallback_max_entries: int = field(default_factory=lambda: int(os.getenv(
        "CACHE_FALLBACK_MAX_ENTRIES",
        "10000"
    )))


@lru_cache(maxsize=1)
def get_cache_config() -> CacheConfig:
    """Get singleton cache configuration."""
    return CacheConfig()
