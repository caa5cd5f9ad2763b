"""
Tests for the caching layer.

These tests verify:
- Key derivation (determinism, scoping)
- Fallback store TTL expiry and sweeping
- Gateway routing between Redis and the fallback store
- Permanent-failure latch after repeated connection errors
- Domain cache namespaces and per-user invalidation

FakeRedis (conftest) stands in for a live server.
"""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from contentpulse.cache import (
    CacheConfig,
    CacheEvent,
    CacheGateway,
    CacheInvalidator,
    CacheNamespace,
    CacheResult,
    CacheTTL,
    ConnectionState,
    DomainCache,
    FallbackStore,
    canonical_json,
    derive_key,
    scope_fragment,
    user_scope,
)
from contentpulse.cache.serialization import deserialize_value, serialize_value

from conftest import FailingRedis, FakeClock


# =============================================================================
# SERIALIZATION TESTS
# =============================================================================

class TestSerialization:
    """Test value serialization."""

    def test_serialize_deserialize_dict(self):
        data = {"key": "value", "number": 42, "nested": {"a": 1}}
        assert deserialize_value(serialize_value(data)) == data

    def test_serialize_datetime(self):
        """Datetimes come back as ISO-8601 strings."""
        data = {"timestamp": datetime(2024, 1, 15, 10, 30, 0)}
        deserialized = deserialize_value(serialize_value(data))
        assert deserialized["timestamp"] == "2024-01-15T10:30:00"

    def test_deserialize_empty(self):
        assert deserialize_value(b"") is None


# =============================================================================
# KEY DERIVATION TESTS
# =============================================================================

class TestKeys:
    """Test deterministic key derivation."""

    def test_same_params_same_key(self):
        """Key order in params does not matter."""
        key1 = derive_key("stats", {"user_id": 1, "period": "7d"})
        key2 = derive_key("stats", {"period": "7d", "user_id": 1})
        assert key1 == key2

    def test_different_params_different_key(self):
        assert derive_key("stats", {"user_id": 1}) != derive_key("stats", {"user_id": 2})

    def test_key_shape(self):
        key = derive_key("content", {"topic": "x"})
        namespace, digest = key.split(":")
        assert namespace == "content"
        assert len(digest) == 32

    def test_scoped_key(self):
        key = derive_key(CacheNamespace.ANALYTICS, {"user_id": 42}, scope=user_scope(42))
        assert key.startswith("analytics:user:42:")
        assert key.startswith(scope_fragment("analytics", user_scope(42)))

    def test_scope_fragment_does_not_prefix_other_users(self):
        key = derive_key("stats", {"user_id": 12}, scope=user_scope(12))
        assert scope_fragment("stats", user_scope(1)) not in key

    def test_canonical_json_dates(self):
        """Equal datetimes serialize identically."""
        params = {"start": datetime(2024, 3, 10), "end": datetime(2024, 3, 12)}
        assert canonical_json(params) == '{"end":"2024-03-12T00:00:00","start":"2024-03-10T00:00:00"}'

    def test_canonical_json_rejects_unknown_types(self):
        with pytest.raises(TypeError):
            canonical_json({"value": object()})


# =============================================================================
# CONFIG TESTS
# =============================================================================

class TestCacheTTL:
    """Test TTL configuration."""

    def test_ttl_for_namespace(self):
        assert CacheTTL.for_namespace("content") == timedelta(hours=1)
        assert CacheTTL.for_namespace("stats") == timedelta(minutes=30)
        assert CacheTTL.for_namespace(CacheNamespace.ANALYTICS) == timedelta(minutes=30)
        assert CacheTTL.for_namespace("performance") == timedelta(hours=1)

    def test_ttl_for_unknown_namespace(self):
        assert CacheTTL.for_namespace("unknown") == CacheTTL.DEFAULT


class TestCacheConfig:
    """Test cache configuration."""

    def test_config_defaults(self):
        config = CacheConfig()
        assert config.max_retries == 3
        assert config.connect_timeout == 5
        assert config.fallback_sweep_interval == 300

    @patch.dict('os.environ', {'CACHE_ENABLED': 'false', 'CACHE_MAX_RETRIES': '5'})
    def test_config_from_env(self):
        config = CacheConfig()
        assert config.enabled is False
        assert config.max_retries == 5


# =============================================================================
# FALLBACK STORE TESTS
# =============================================================================

class TestFallbackStore:
    """Test the in-process fallback store."""

    def test_set_and_get(self, fake_clock):
        store = FallbackStore(clock=fake_clock)
        store.set("k", b"v", ttl_seconds=60)
        assert store.get("k") == b"v"

    def test_entry_expires_at_ttl(self, fake_clock):
        """An entry is absent once its age reaches the TTL."""
        store = FallbackStore(clock=fake_clock)
        store.set("k", b"v", ttl_seconds=60)

        fake_clock.advance(59)
        assert store.get("k") == b"v"

        fake_clock.advance(1)
        assert store.get("k") is None
        assert len(store) == 0

    def test_sweep_removes_expired_and_aged(self, fake_clock):
        store = FallbackStore(clock=fake_clock, max_age=100)
        store.set("short", b"1", ttl_seconds=10)
        store.set("long", b"2", ttl_seconds=1000)
        store.set("fresh", b"3", ttl_seconds=1000)

        fake_clock.advance(50)
        store.set("fresh", b"3", ttl_seconds=1000)
        fake_clock.advance(60)

        assert store.sweep() == 2
        assert "fresh" in store
        assert len(store) == 1

    def test_clear_by_fragment(self, fake_clock):
        store = FallbackStore(clock=fake_clock)
        store.set("stats:user:1:abc", b"1", 60)
        store.set("stats:user:12:def", b"2", 60)
        store.set("content:ghi", b"3", 60)

        assert store.clear("stats:user:1:") == 1
        assert len(store) == 2
        assert store.clear() == 2
        assert len(store) == 0

    def test_max_entries_evicts_oldest(self, fake_clock):
        store = FallbackStore(clock=fake_clock, max_entries=2)
        store.set("a", b"1", 60)
        store.set("b", b"2", 60)
        store.set("c", b"3", 60)

        assert store.get("a") is None
        assert store.get("b") == b"2"
        assert store.get("c") == b"3"

    @pytest.mark.asyncio
    async def test_sweeper_task(self):
        store = FallbackStore(sweep_interval=0.01, clock=FakeClock())
        store.start_sweeper()
        assert store.sweeper_running
        await store.stop_sweeper()
        assert not store.sweeper_running


# =============================================================================
# GATEWAY TESTS
# =============================================================================

class TestCacheResult:

    def test_miss_with_error_is_degraded(self):
        assert CacheResult.miss("boom").degraded
        assert not CacheResult.miss().degraded
        assert CacheResult.found(0).hit


@pytest.mark.asyncio
class TestCacheGatewayConnected:
    """Gateway operations against a connected (fake) Redis."""

    async def test_connects(self, redis_gateway):
        assert redis_gateway.state == ConnectionState.CONNECTED
        assert redis_gateway.retry_count == 0

    async def test_set_and_get(self, redis_gateway, fake_redis):
        data = {"score": 85, "tags": ["a", "b"]}
        assert await redis_gateway.set("test:key", data, ttl_seconds=60)

        result = await redis_gateway.get("test:key")
        assert result.hit
        assert result.value == data
        assert fake_redis.ttls["test:key"] == 60

    async def test_get_nonexistent(self, redis_gateway):
        result = await redis_gateway.get("nonexistent:key")
        assert not result.hit
        assert result.error is None

    async def test_default_ttl(self, redis_gateway, fake_redis):
        await redis_gateway.set("test:key", 1)
        assert fake_redis.ttls["test:key"] == 3600

    async def test_zero_ttl_is_not_the_default(self, redis_gateway, fake_redis):
        """An explicit zero TTL expires the key instead of keeping it an hour."""
        await redis_gateway.set("test:key", 1)
        assert await redis_gateway.set("test:key", 2, ttl_seconds=0)

        assert "test:key" not in fake_redis.data
        assert not (await redis_gateway.get("test:key")).hit

    async def test_delete(self, redis_gateway):
        await redis_gateway.set("test:delete", "value")
        assert await redis_gateway.delete("test:delete")
        assert not (await redis_gateway.get("test:delete")).hit

    async def test_clear_by_fragment(self, redis_gateway, fake_redis):
        await redis_gateway.set("stats:user:1:a", 1)
        await redis_gateway.set("analytics:user:1:b", 2)
        await redis_gateway.set("stats:user:2:c", 3)

        assert await redis_gateway.clear("user:1:") == 2
        assert list(fake_redis.data) == ["stats:user:2:c"]

    async def test_unserializable_value(self, redis_gateway):
        circular = []
        circular.append(circular)
        assert not await redis_gateway.set("test:key", circular)

    async def test_stats(self, redis_gateway):
        await redis_gateway.set("test:stats", "value")
        await redis_gateway.get("test:stats")
        await redis_gateway.get("test:missing")

        stats = redis_gateway.get_stats()
        assert stats["backend"] == "redis"
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["writes"] == 1
        assert stats["hit_rate_percent"] == 50.0

    async def test_health_check(self, redis_gateway):
        health = await redis_gateway.health_check()
        assert health["healthy"]
        assert health["status"] == "connected"
        assert "latency_ms" in health

    async def test_disconnect_closes_client(self, redis_gateway, fake_redis):
        await redis_gateway.disconnect()
        assert fake_redis.closed
        assert redis_gateway.state == ConnectionState.DISCONNECTED


@pytest.mark.asyncio
class TestCacheGatewayDegraded:
    """Fallback behaviour when Redis is unreachable or failing."""

    async def test_permanent_failure_latch(self, cache_config):
        """After max_retries failed connects Redis is never tried again."""
        client = MagicMock()
        client.ping = AsyncMock(side_effect=ConnectionError("refused"))
        client.aclose = AsyncMock()
        gateway = CacheGateway(cache_config, client_factory=lambda config: client)

        for _ in range(4):
            await gateway.connect()

        assert client.ping.await_count == 3
        assert gateway.state == ConnectionState.FAILED_PERMANENT
        assert gateway.fallback.sweeper_running

        await gateway.disconnect()
        assert gateway.state == ConnectionState.FAILED_PERMANENT

    async def test_auto_reconnect_until_latched(self, cache_config):
        cache_config.auto_reconnect = True
        client = MagicMock()
        client.ping = AsyncMock(side_effect=ConnectionError("refused"))
        client.aclose = AsyncMock()
        gateway = CacheGateway(cache_config, client_factory=lambda config: client)

        await gateway.connect()
        await asyncio.sleep(0.2)

        assert client.ping.await_count == 3
        assert gateway.state == ConnectionState.FAILED_PERMANENT
        await gateway.disconnect()

    async def test_successful_connect_resets_retries(self, cache_config, fake_redis):
        attempts = {"count": 0}

        async def flaky_ping():
            attempts["count"] += 1
            if attempts["count"] == 1:
                raise ConnectionError("refused")
            return True

        fake_redis.ping = flaky_ping
        gateway = CacheGateway(cache_config, client_factory=lambda config: fake_redis)

        assert await gateway.connect() == ConnectionState.DISCONNECTED
        assert gateway.retry_count == 1
        assert await gateway.connect() == ConnectionState.CONNECTED
        assert gateway.retry_count == 0
        await gateway.disconnect()

    async def test_fallback_is_transparent(self, memory_gateway):
        """Values round-trip identically through the fallback store."""
        data = {"when": datetime(2024, 3, 10), "n": 1}
        assert await memory_gateway.set("k", data)

        result = await memory_gateway.get("k")
        assert result.hit
        assert result.value == {"when": "2024-03-10T00:00:00", "n": 1}
        assert memory_gateway.get_stats()["backend"] == "memory"

    async def test_fallback_ttl(self, memory_gateway, fake_clock):
        await memory_gateway.set("k", "v", ttl_seconds=10)
        fake_clock.advance(10)
        assert not (await memory_gateway.get("k")).hit

    async def test_redis_error_mid_operation(self, redis_gateway, fake_redis):
        """A failing Redis read is a miss; a failing write lands in the fallback."""
        fake_redis.get = AsyncMock(side_effect=ConnectionError("reset"))
        result = await redis_gateway.get("k")
        assert not result.hit
        assert result.degraded
        assert redis_gateway.state == ConnectionState.DISCONNECTED

        await redis_gateway.set("k", "v")
        assert "k" in redis_gateway.fallback
        assert (await redis_gateway.get("k")).value == "v"

    async def test_clear_during_outage_replayed_on_reconnect(self, redis_gateway, fake_redis):
        """Entries cleared while Redis was unreachable do not come back after reconnect."""
        await redis_gateway.set("performance:user:1:abc", {"v": "old"})
        await redis_gateway.set("performance:user:2:abc", {"v": "keep"})

        fake_redis.get = AsyncMock(side_effect=ConnectionError("reset"))
        await redis_gateway.get("performance:user:1:abc")
        assert redis_gateway.state == ConnectionState.DISCONNECTED

        await redis_gateway.clear("user:1:")
        assert redis_gateway.get_stats()["pending_purges"] == 1
        assert "performance:user:1:abc" in fake_redis.data

        del fake_redis.get
        assert await redis_gateway.connect() == ConnectionState.CONNECTED

        assert not (await redis_gateway.get("performance:user:1:abc")).hit
        assert (await redis_gateway.get("performance:user:2:abc")).value == {"v": "keep"}
        assert redis_gateway.get_stats()["pending_purges"] == 0

    async def test_delete_during_outage_replayed_on_reconnect(self, redis_gateway, fake_redis):
        await redis_gateway.set("content:abc", "old")

        fake_redis.get = AsyncMock(side_effect=ConnectionError("reset"))
        await redis_gateway.get("content:abc")
        await redis_gateway.delete("content:abc")
        del fake_redis.get

        await redis_gateway.connect()
        assert "content:abc" not in fake_redis.data

    async def test_failed_replay_stays_queued(self, redis_gateway, fake_redis):
        fake_redis.get = AsyncMock(side_effect=ConnectionError("reset"))
        await redis_gateway.get("k")
        await redis_gateway.clear("user:1:")
        del fake_redis.get

        fake_redis.scan_iter = MagicMock(side_effect=ConnectionError("reset"))
        assert await redis_gateway.connect() == ConnectionState.DISCONNECTED
        assert redis_gateway.get_stats()["pending_purges"] == 1

    async def test_no_replay_queue_after_latch(self, cache_config):
        gateway = CacheGateway(cache_config, client_factory=lambda config: FailingRedis())
        for _ in range(3):
            await gateway.connect()
        assert gateway.state == ConnectionState.FAILED_PERMANENT

        await gateway.clear("user:1:")
        assert gateway.get_stats()["pending_purges"] == 0
        await gateway.disconnect()

    async def test_clear_reaches_fallback_while_connected(self, redis_gateway):
        redis_gateway.fallback.set("stats:user:1:x", b"1", 60)
        await redis_gateway.clear("stats:user:1:")
        assert len(redis_gateway.fallback) == 0

    async def test_health_degraded(self, cache_config):
        gateway = CacheGateway(cache_config, client_factory=lambda config: FailingRedis())
        await gateway.connect()

        health = await gateway.health_check()
        assert not health["healthy"]
        assert health["status"] == "degraded"
        await gateway.disconnect()

    async def test_disabled_cache(self, cache_config):
        cache_config.enabled = False
        gateway = CacheGateway(cache_config, client_factory=lambda config: FailingRedis())

        await gateway.connect()
        assert not await gateway.set("k", "v")
        assert not (await gateway.get("k")).hit
        assert (await gateway.health_check())["status"] == "disabled"


# =============================================================================
# DOMAIN CACHE TESTS
# =============================================================================

@pytest.mark.asyncio
class TestDomainCache:
    """Namespaced helpers and invalidation policy."""

    async def test_analytics_round_trip(self, domain_cache):
        start, end = datetime(2024, 3, 10), datetime(2024, 3, 12)
        await domain_cache.set_cached_analytics(7, start, end, {"total": 2})

        assert await domain_cache.get_cached_analytics(7, start, end) == {"total": 2}
        assert await domain_cache.get_cached_analytics(7, start, datetime(2024, 3, 13)) is None
        assert await domain_cache.get_cached_analytics(8, start, end) is None

    async def test_namespace_ttls(self, domain_cache, fake_clock):
        await domain_cache.set_cached_stats(1, "all", {"total": 1})
        await domain_cache.set_cached_performance(1, {"insights": {}})

        fake_clock.advance(timedelta(minutes=30).total_seconds())

        assert await domain_cache.get_cached_stats(1, "all") is None
        assert await domain_cache.get_cached_performance(1) == {"insights": {}}

    async def test_user_keys_are_scoped(self, domain_cache):
        key = domain_cache.key_for(CacheNamespace.STATS, {"user_id": 5, "period": "7d"})
        assert key.startswith("stats:user:5:")

        content_key = domain_cache.key_for(CacheNamespace.CONTENT, {"topic": "x"})
        assert "user:" not in content_key

    async def test_invalidate_user_scope(self, domain_cache):
        """Only the target user's aggregates go; content stays."""
        start, end = datetime(2024, 3, 10), datetime(2024, 3, 12)
        await domain_cache.set_cached_stats(1, "all", {"total": 1})
        await domain_cache.set_cached_analytics(1, start, end, {"total": 1})
        await domain_cache.set_cached_performance(1, {"insights": {}})
        await domain_cache.set_cached_stats(12, "all", {"total": 12})
        await domain_cache.set_cached_content("t", None, "blog_post", None, {"text": "x"})

        assert await domain_cache.invalidate_user(1) == 3

        assert await domain_cache.get_cached_stats(1, "all") is None
        assert await domain_cache.get_cached_analytics(1, start, end) is None
        assert await domain_cache.get_cached_performance(1) is None
        assert await domain_cache.get_cached_stats(12, "all") == {"total": 12}
        assert await domain_cache.get_cached_content("t", None, "blog_post", None) == {"text": "x"}

    async def test_clear_all(self, domain_cache):
        await domain_cache.set_cached_stats(1, "all", {"total": 1})
        await domain_cache.set_cached_content("t", None, "blog_post", None, {"text": "x"})

        assert await domain_cache.clear_all() == 2
        assert len(domain_cache.gateway.fallback) == 0

    async def test_invalidate_user_against_redis(self, redis_gateway, fake_redis):
        cache = DomainCache(redis_gateway)
        await cache.set_cached_stats(3, "7d", {"total": 1})
        await cache.set_cached_stats(4, "7d", {"total": 1})

        assert await cache.invalidate_user(3) == 1
        assert len(fake_redis.data) == 1


# =============================================================================
# INVALIDATION TESTS
# =============================================================================

@pytest.mark.asyncio
class TestCacheInvalidator:
    """Event-driven invalidation."""

    async def test_content_event_invalidates_user(self, domain_cache, invalidator):
        await domain_cache.set_cached_stats(7, "all", {"total": 1})

        result = await invalidator.handle_event(CacheEvent.CONTENT_CREATED, user_id=7)

        assert result.success
        assert result.keys_invalidated == 1
        assert result.duration_ms >= 0
        assert await domain_cache.get_cached_stats(7, "all") is None

    async def test_user_event_without_user_id(self, invalidator):
        result = await invalidator.handle_event(CacheEvent.CONTENT_UPDATED)
        assert not result.success
        assert result.errors

    async def test_manual_invalidate_all(self, domain_cache, invalidator):
        await domain_cache.set_cached_stats(1, "all", {"total": 1})
        await domain_cache.set_cached_stats(2, "all", {"total": 2})

        result = await invalidator.handle_event(CacheEvent.MANUAL_INVALIDATE_ALL)
        assert result.keys_invalidated == 2

    async def test_errors_are_collected(self):
        cache = MagicMock()
        cache.invalidate_user = AsyncMock(side_effect=RuntimeError("boom"))

        result = await CacheInvalidator(cache).handle_event(
            CacheEvent.CONTENT_DELETED, user_id=1
        )

        assert not result.success
        assert result.errors == ["boom"]
