"""
Cache Gateway

Single point of access to caching. Routes every operation to Redis while
connected and to the in-process FallbackStore otherwise:
- Connection state tracked explicitly per gateway instance
- Bounded reconnect attempts; after the cap Redis is abandoned for the
  process lifetime instead of hammering a backend that is down
- Backend failures become CacheResult misses or no-ops, never exceptions
- Statistics and health check for the cache management API
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from redis.asyncio import Redis

from contentpulse.cache.config import CacheConfig, get_cache_config
from contentpulse.cache.fallback import FallbackStore
from contentpulse.cache.serialization import serialize_value, deserialize_value


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Lifecycle of the networked backend connection."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED_PERMANENT = "failed_permanent"


@dataclass(frozen=True)
class CacheResult:
    """
    Outcome of a cache read.

    A miss caused by a backend failure carries the error text; callers
    treat it exactly like a normal miss.
    """
    hit: bool
    value: Any = None
    error: Optional[str] = None

    @classmethod
    def found(cls, value: Any) -> "CacheResult":
        return cls(hit=True, value=value)

    @classmethod
    def miss(cls, error: Optional[str] = None) -> "CacheResult":
        return cls(hit=False, error=error)

    @property
    def degraded(self) -> bool:
        return self.error is not None


@dataclass
class CacheStats:
    """Cache operation statistics."""
    hits: int = 0
    misses: int = 0
    errors: int = 0
    writes: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


def create_redis_client(config: CacheConfig) -> Redis:
    """Build the Redis client. Bytes in, bytes out: values are JSON-encoded here."""
    return Redis.from_url(
        config.redis_url,
        socket_connect_timeout=config.connect_timeout,
        decode_responses=False,
    )


def _escape_glob(fragment: str) -> str:
    for char in "\\*?[]":
        fragment = fragment.replace(char, "\\" + char)
    return fragment


class CacheGateway:
    """
    Redis-or-memory cache with one get/set/delete/clear interface.

    Construct once per process and pass it to whatever needs caching.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        fallback: Optional[FallbackStore] = None,
        client_factory: Optional[Callable[[CacheConfig], Any]] = None,
    ):
        self.config = config or get_cache_config()
        self._fallback = fallback or FallbackStore(
            sweep_interval=self.config.fallback_sweep_interval,
            max_age=self.config.fallback_max_age,
            max_entries=self.config.fallback_max_entries,
        )
        self._client_factory = client_factory or create_redis_client
        self._client = None
        self._state = ConnectionState.DISCONNECTED
        self._retry_count = 0
        self._reconnect_task: Optional[asyncio.Task] = None
        self._stats = CacheStats()
        # SCAN patterns for deletes that missed Redis, replayed on reconnect
        self._pending_purges: Dict[str, None] = {}

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def retry_count(self) -> int:
        return self._retry_count

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def fallback(self) -> FallbackStore:
        return self._fallback

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def connect(self) -> ConnectionState:
        """
        Try to reach Redis within the connect timeout.

        On failure the fallback store starts serving. Never raises.
        """
        if not self.config.enabled:
            logger.info("Caching disabled, skipping Redis connection")
            return self._state

        if self._state in (ConnectionState.CONNECTED, ConnectionState.FAILED_PERMANENT):
            return self._state

        self._state = ConnectionState.CONNECTING

        try:
            if self._client is None:
                self._client = self._client_factory(self.config)
            await asyncio.wait_for(self._client.ping(), timeout=self.config.connect_timeout)
        except Exception as e:
            logger.warning(
                f"Redis connection failed (attempt {self._retry_count + 1}/"
                f"{self.config.max_retries}), using in-memory cache fallback: {e!r}"
            )
            self._record_backend_error()
            return self._state

        self._state = ConnectionState.CONNECTED
        self._retry_count = 0
        logger.info(f"Redis cache connected: {self.config.redis_url}")
        await self._replay_purges()
        return self._state

    def _defer_purge(self, pattern: str) -> None:
        if self._state != ConnectionState.FAILED_PERMANENT:
            self._pending_purges[pattern] = None

    async def _purge(self, pattern: str) -> int:
        keys = []
        async for key in self._client.scan_iter(match=pattern, count=100):
            keys.append(key)
        if not keys:
            return 0
        return await self._client.delete(*keys)

    async def _replay_purges(self) -> None:
        """Apply deletes issued while Redis was unreachable."""
        if not self._pending_purges:
            return

        purged = 0
        for pattern in list(self._pending_purges):
            try:
                purged += await self._purge(pattern)
            except Exception as e:
                logger.warning(f"Deferred cache clear error for {pattern}: {e}")
                self._record_backend_error()
                return
            del self._pending_purges[pattern]

        logger.info(f"Replayed deferred cache deletes: {purged} Redis entries removed")

    def _record_backend_error(self) -> None:
        """Count a transient backend error and latch permanent failure at the cap."""
        self._stats.errors += 1

        if self._state == ConnectionState.FAILED_PERMANENT:
            return

        self._retry_count += 1
        if self._retry_count >= self.config.max_retries:
            self._state = ConnectionState.FAILED_PERMANENT
            logger.warning(
                f"Redis connection failed after {self._retry_count} attempts. "
                "Using in-memory cache only for the rest of this process."
            )
        else:
            self._state = ConnectionState.DISCONNECTED
            self._schedule_reconnect()

        if not self._fallback.sweeper_running:
            self._fallback.start_sweeper()

    def _schedule_reconnect(self) -> None:
        if not self.config.auto_reconnect:
            return
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return

        async def reconnect_later():
            await asyncio.sleep(self.config.reconnect_delay)
            self._reconnect_task = None
            await self.connect()

        self._reconnect_task = asyncio.create_task(reconnect_later())

    async def disconnect(self) -> None:
        """Best-effort shutdown. Errors are logged, not raised."""
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
            self._reconnect_task = None

        await self._fallback.stop_sweeper()

        if self._client is not None:
            try:
                await self._client.aclose()
            except Exception as e:
                logger.warning(f"Redis disconnect error: {e}")
            self._client = None

        if self._state != ConnectionState.FAILED_PERMANENT:
            self._state = ConnectionState.DISCONNECTED
        logger.info("Cache gateway closed")

    # =========================================================================
    # Core Operations
    # =========================================================================

    async def get(self, key: str) -> CacheResult:
        """
        Get a value.

        Misses when the key is absent or expired, caching is disabled,
        or Redis fails mid-operation.
        """
        if not self.config.enabled:
            return CacheResult.miss()

        if self.is_connected:
            result = await self._redis_get(key)
        else:
            result = self._decode(self._fallback.get(key), key)

        if result.hit:
            self._stats.hits += 1
        else:
            self._stats.misses += 1
        return result

    async def _redis_get(self, key: str) -> CacheResult:
        try:
            data = await self._client.get(key)
        except Exception as e:
            logger.warning(f"Cache get error for {key}: {e}")
            self._record_backend_error()
            return CacheResult.miss(str(e))
        return self._decode(data, key)

    def _decode(self, data: Optional[bytes], key: str) -> CacheResult:
        if data is None:
            return CacheResult.miss()
        try:
            return CacheResult.found(deserialize_value(data))
        except ValueError as e:
            logger.error(f"Cache value for {key} could not be decoded: {e}")
            return CacheResult.miss(str(e))

    async def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        """
        Store a value with a TTL.

        If Redis rejects the write the value lands in the fallback store.
        Returns False only when caching is disabled or the value
        cannot be serialized.
        """
        if not self.config.enabled:
            return False

        ttl = int(self.config.default_ttl_seconds if ttl_seconds is None else ttl_seconds)
        if ttl <= 0:
            # already expired: drop any previous value instead of storing
            await self.delete(key)
            return True

        try:
            payload = serialize_value(value)
        except (TypeError, ValueError) as e:
            self._stats.errors += 1
            logger.error(f"Cache set error for {key}: {e}")
            return False

        if self.is_connected:
            try:
                await self._client.setex(key, ttl, payload)
                self._stats.writes += 1
                return True
            except Exception as e:
                logger.warning(f"Cache set error for {key}, writing to fallback: {e}")
                self._record_backend_error()

        self._fallback.set(key, payload, ttl)
        self._stats.writes += 1
        return True

    async def delete(self, key: str) -> bool:
        """Delete a key from Redis (when connected) and the fallback store."""
        if not self.config.enabled:
            return False

        deleted = self._fallback.delete(key)

        if self.is_connected:
            try:
                deleted = bool(await self._client.delete(key)) or deleted
            except Exception as e:
                logger.warning(f"Cache delete error for {key}: {e}")
                self._record_backend_error()
                self._defer_purge(_escape_glob(key))
        else:
            self._defer_purge(_escape_glob(key))

        return deleted

    async def clear(self, fragment: Optional[str] = None) -> int:
        """
        Delete every key containing `fragment` (substring match).

        Both backends honour the same substring contract; Redis gets it
        as an escaped `*fragment*` SCAN pattern. While Redis is unreachable
        the pattern is queued and applied on the next successful connect.
        Returns count deleted.
        """
        if not self.config.enabled:
            return 0

        count = self._fallback.clear(fragment)
        pattern = f"*{_escape_glob(fragment)}*" if fragment else "*"

        if self.is_connected:
            try:
                count += await self._purge(pattern)
            except Exception as e:
                logger.warning(f"Cache clear error for {pattern}: {e}")
                self._record_backend_error()
                self._defer_purge(pattern)
        else:
            self._defer_purge(pattern)

        if count:
            logger.info(f"Cleared {count} cache entries matching '{fragment or '*'}'")
        return count

    # =========================================================================
    # Statistics and Health
    # =========================================================================

    def get_stats(self) -> Dict:
        """Get cache statistics."""
        return {
            "enabled": self.config.enabled,
            "state": self._state.value,
            "backend": "redis" if self.is_connected else "memory",
            "retry_count": self._retry_count,
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "errors": self._stats.errors,
            "writes": self._stats.writes,
            "hit_rate_percent": round(self._stats.hit_rate * 100, 2),
            "fallback_entries": len(self._fallback),
            "pending_purges": len(self._pending_purges),
        }

    async def health_check(self) -> Dict:
        """
        Perform health check.

        Serving from memory is reported as degraded: requests still
        succeed, but the cache is per-process.
        """
        if not self.config.enabled:
            return {"healthy": True, "status": "disabled", "stats": self.get_stats()}

        if self.is_connected:
            start = time.time()
            try:
                await self._client.ping()
                latency_ms = (time.time() - start) * 1000
                return {
                    "healthy": True,
                    "status": "connected",
                    "latency_ms": round(latency_ms, 2),
                    "stats": self.get_stats(),
                }
            except Exception as e:
                logger.warning(f"Redis health check failed: {e}")
                self._record_backend_error()

        return {
            "healthy": False,
            "status": "degraded",
            "stats": self.get_stats(),
        }
