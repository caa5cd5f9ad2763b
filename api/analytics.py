"""
Analytics API

Per-user derived analytics, served cache-aside through MetricsService:
- Advanced analytics for a date range
- Performance scores and insights for recent content
- Content stats by period
- Stateless scoring of a single item
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from contentpulse.analytics import (
    STATS_PERIODS,
    ContentType,
    MetricsService,
    PlatformTarget,
    measure_text,
)
from contentpulse.utils.config import Settings

from api.dependencies import get_app_settings, get_metrics_service


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["Analytics"])


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class ScoreRequest(BaseModel):
    """A content item to score. Counts are measured from the text when omitted."""
    content_type: ContentType
    generated_text: str
    platform_target: Optional[PlatformTarget] = None
    word_count: Optional[int] = Field(default=None, ge=0)
    character_count: Optional[int] = Field(default=None, ge=0)


class QualityFactorsResponse(BaseModel):
    has_hashtags: bool
    has_questions: bool
    has_call_to_action: bool
    has_emojis: bool
    optimal_length: bool


class EngagementResponse(BaseModel):
    """Estimated engagement for one item."""
    potential_reach: int
    estimated_engagements: int
    estimated_clicks: int
    estimated_shares: int
    engagement_score: int
    quality_factors: QualityFactorsResponse


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC; offset-aware input is converted to match."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("/users/{user_id}/analytics")
async def get_user_analytics(
    user_id: int,
    start: Optional[datetime] = Query(None, description="Range start (inclusive)"),
    end: Optional[datetime] = Query(None, description="Range end (exclusive), defaults to now"),
    service: MetricsService = Depends(get_metrics_service),
    settings: Settings = Depends(get_app_settings),
) -> Dict[str, Any]:
    """
    Overview, type/platform breakdown, daily trend and period-over-period
    comparison. Defaults to the last ANALYTICS_DEFAULT_DAYS days.
    """
    # Minute resolution so repeated default requests share a cache key
    end = _naive_utc(end) or datetime.utcnow().replace(second=0, microsecond=0)
    start = _naive_utc(start) or end - timedelta(days=settings.ANALYTICS_DEFAULT_DAYS)

    try:
        return await service.advanced_analytics(user_id, start, end)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception:
        logger.exception(f"Analytics failed for user {user_id}")
        raise HTTPException(status_code=500, detail="Failed to compute analytics")


@router.get("/users/{user_id}/performance")
async def get_user_performance(
    user_id: int,
    service: MetricsService = Depends(get_metrics_service),
) -> Dict[str, Any]:
    """Scores for the most recent content plus summary insights."""
    try:
        return await service.performance_scores(user_id)
    except Exception:
        logger.exception(f"Performance scoring failed for user {user_id}")
        raise HTTPException(status_code=500, detail="Failed to compute performance scores")


@router.get("/users/{user_id}/stats")
async def get_user_stats(
    user_id: int,
    period: str = Query("all", description="all, 7d or 30d"),
    service: MetricsService = Depends(get_metrics_service),
) -> Dict[str, Any]:
    """Counts by status and type, total reach and upcoming schedule."""
    if period not in STATS_PERIODS:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown period '{period}', expected one of {sorted(STATS_PERIODS)}",
        )

    try:
        return await service.content_stats(user_id, period)
    except Exception:
        logger.exception(f"Stats failed for user {user_id}")
        raise HTTPException(status_code=500, detail="Failed to compute stats")


@router.post("/score", response_model=EngagementResponse)
async def score_item(
    request: ScoreRequest,
    service: MetricsService = Depends(get_metrics_service),
):
    """Score a single item without touching the store or the cache."""
    item = request.model_dump(mode="json")
    word_count, character_count = measure_text(request.generated_text)
    if item["word_count"] is None:
        item["word_count"] = word_count
    if item["character_count"] is None:
        item["character_count"] = character_count

    return service.score(item).to_dict()
