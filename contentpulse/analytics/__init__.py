"""
ContentPulse Analytics

Deterministic engagement scoring and aggregate analytics over stored
content, plus the cache-aside MetricsService used by the API.
"""

from .helpers import (
    ContentStatus,
    ContentType,
    PlatformTarget,
    calculate_trend,
)
from .engagement import (
    EngagementMetrics,
    QualityFactors,
    estimate_potential_reach,
    measure_text,
    score,
)
from .aggregate import (
    STATS_PERIODS,
    build_advanced_analytics,
    build_content_stats,
    build_performance_insights,
    build_performance_scores,
    score_content,
)
from .service import MetricsService

__all__ = [
    # Enums
    "ContentStatus",
    "ContentType",
    "PlatformTarget",
    # Scoring
    "EngagementMetrics",
    "QualityFactors",
    "score",
    "estimate_potential_reach",
    "measure_text",
    "calculate_trend",
    # Aggregates
    "STATS_PERIODS",
    "build_advanced_analytics",
    "build_content_stats",
    "build_performance_insights",
    "build_performance_scores",
    "score_content",
    # Service
    "MetricsService",
]
