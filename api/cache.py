"""
Cache Management API

Provides endpoints for cache monitoring and manual operations.

Endpoints:
- Health check for monitoring/alerting
- Statistics for dashboard insights
- Manual invalidation for debugging
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from contentpulse.cache import CacheEvent, CacheGateway, CacheInvalidator, InvalidationResult

from api.dependencies import get_gateway, get_invalidator


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/cache", tags=["Cache Management"])


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class CacheHealthResponse(BaseModel):
    """Cache health check response."""
    healthy: bool
    status: str = Field(..., description="connected, degraded or disabled")
    backend: str = Field(..., description="redis or memory")
    latency_ms: Optional[float] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class CacheStatsResponse(BaseModel):
    """Cache statistics response."""
    enabled: bool
    state: str
    backend: str
    retry_count: int
    hits: int
    misses: int
    errors: int
    writes: int
    hit_rate_percent: float
    fallback_entries: int
    pending_purges: int


class InvalidationResponse(BaseModel):
    """Cache invalidation response."""
    success: bool
    keys_invalidated: int
    duration_ms: float
    errors: List[str] = []


def _invalidation_response(result: InvalidationResult) -> InvalidationResponse:
    return InvalidationResponse(
        success=result.success,
        keys_invalidated=result.keys_invalidated,
        duration_ms=result.duration_ms,
        errors=result.errors,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/health", response_model=CacheHealthResponse)
async def cache_health_check(gateway: CacheGateway = Depends(get_gateway)):
    """
    Check cache infrastructure health.

    Use this endpoint for monitoring and alerting systems. "degraded"
    means requests are served from the in-process fallback store.
    """
    health = await gateway.health_check()

    return CacheHealthResponse(
        healthy=health["healthy"],
        status=health["status"],
        backend=health["stats"]["backend"],
        latency_ms=health.get("latency_ms"),
        timestamp=datetime.utcnow(),
    )


@router.get("/stats", response_model=CacheStatsResponse)
def get_cache_stats(gateway: CacheGateway = Depends(get_gateway)):
    """
    Get current cache statistics.

    Note: Stats are reset on application restart.
    """
    return CacheStatsResponse(**gateway.get_stats())


@router.post("/invalidate/user/{user_id}", response_model=InvalidationResponse)
async def invalidate_user_cache(
    user_id: int,
    invalidator: CacheInvalidator = Depends(get_invalidator),
):
    """
    Invalidate a user's cached stats, analytics and performance.

    Generation results are shared across users and stay cached.
    """
    result = await invalidator.handle_event(CacheEvent.MANUAL_INVALIDATE_USER, user_id=user_id)
    return _invalidation_response(result)


@router.post("/invalidate/all", response_model=InvalidationResponse)
async def invalidate_all_cache(invalidator: CacheInvalidator = Depends(get_invalidator)):
    """
    Clear every cache namespace.

    Use with caution - every following request recomputes.
    """
    logger.warning("Full cache invalidation requested")
    result = await invalidator.handle_event(CacheEvent.MANUAL_INVALIDATE_ALL)
    return _invalidation_response(result)
