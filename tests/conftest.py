"""
Pytest Configuration and Shared Fixtures

Provides common fixtures and configuration for all test modules.
"""

import fnmatch
from datetime import datetime
from typing import Any, Dict, List

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from contentpulse.cache import CacheConfig, CacheGateway, DomainCache, CacheInvalidator
from contentpulse.cache.fallback import FallbackStore
from contentpulse.database import (
    Base,
    ContentRepository,
    SqlContentStore,
    create_db_engine,
    create_session_factory,
)


# ============================================================================
# Test Doubles
# ============================================================================

class FakeRedis:
    """Dict-backed stand-in for redis.asyncio.Redis (TTL ignored)."""

    def __init__(self):
        self.data: Dict[str, bytes] = {}
        self.ttls: Dict[str, int] = {}
        self.closed = False

    async def ping(self):
        return True

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def scan_iter(self, match="*", count=None):
        for key in list(self.data):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def aclose(self):
        self.closed = True


class FailingRedis(FakeRedis):
    """Every call raises, as if the server went away."""

    async def ping(self):
        raise ConnectionError("Connection refused")

    async def get(self, key):
        raise ConnectionError("Connection refused")

    async def setex(self, key, ttl, value):
        raise ConnectionError("Connection refused")


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryContentStore:
    """ContentStore over a plain list of row dicts."""

    def __init__(self, rows: List[Dict[str, Any]] = None):
        self.rows = list(rows or [])
        self.calls = 0

    async def list_content(self, user_id, start=None, end=None, limit=None, newest_first=False):
        self.calls += 1
        rows = [
            row for row in self.rows
            if row["user_id"] == user_id
            and (start is None or row["created_at"] >= start)
            and (end is None or row["created_at"] < end)
        ]
        rows.sort(key=lambda row: row["created_at"], reverse=newest_first)
        return rows[:limit] if limit is not None else rows


def make_row(**overrides) -> Dict[str, Any]:
    """A content row with sensible defaults."""
    row = {
        "id": 1,
        "user_id": 7,
        "topic": "Gardening",
        "keyword": None,
        "content_type": "blog_post",
        "platform_target": None,
        "generated_text": "Plain text about gardening",
        "word_count": 200,
        "character_count": 1200,
        "user_edited": False,
        "status": "draft",
        "scheduled_at": None,
        "potential_reach_metric": 100,
        "created_at": datetime(2024, 3, 10, 9, 0),
        "updated_at": None,
    }
    row.update(overrides)
    return row


# ============================================================================
# Cache Fixtures
# ============================================================================

@pytest.fixture
def cache_config() -> CacheConfig:
    """Cache config with background reconnects off."""
    return CacheConfig(
        enabled=True,
        redis_url="redis://fake:6379",
        connect_timeout=0.5,
        max_retries=3,
        auto_reconnect=False,
        reconnect_delay=0.01,
        default_ttl_seconds=3600,
        fallback_sweep_interval=300,
        fallback_max_age=3600,
        fallback_max_entries=100,
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest_asyncio.fixture
async def redis_gateway(cache_config, fake_redis):
    """Gateway connected to FakeRedis."""
    gateway = CacheGateway(cache_config, client_factory=lambda config: fake_redis)
    await gateway.connect()
    yield gateway
    await gateway.disconnect()


@pytest_asyncio.fixture
async def memory_gateway(cache_config, fake_clock):
    """Gateway that never connected, serving from the fallback store."""
    fallback = FallbackStore(clock=fake_clock, max_entries=cache_config.fallback_max_entries)
    gateway = CacheGateway(cache_config, fallback=fallback, client_factory=lambda config: FailingRedis())
    yield gateway
    await gateway.disconnect()


@pytest.fixture
def domain_cache(memory_gateway) -> DomainCache:
    return DomainCache(memory_gateway)


@pytest.fixture
def invalidator(domain_cache) -> CacheInvalidator:
    return CacheInvalidator(domain_cache)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def session_factory():
    """In-memory SQLite shared across threads."""
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def content_store(session_factory) -> SqlContentStore:
    return SqlContentStore(session_factory)


@pytest.fixture
def content_repository(invalidator, session_factory) -> ContentRepository:
    return ContentRepository(invalidator, session_factory)


def example_rows() -> List[Dict[str, Any]]:
    """Two items for user 7 across two days: 120 + 80 reach."""
    return [
        make_row(id=1, content_type="blog_post", platform_target=None,
                 word_count=200, character_count=1200,
                 potential_reach_metric=120, created_at=datetime(2024, 3, 10, 9, 0)),
        make_row(id=2, content_type="social_caption", platform_target="Twitter",
                 word_count=10, character_count=60,
                 potential_reach_metric=80, created_at=datetime(2024, 3, 11, 15, 30)),
    ]
