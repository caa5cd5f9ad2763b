"""
Aggregate Analytics

Pure functions over lists of content rows (dicts as returned by the
content store). No I/O: MetricsService fetches rows and caches results.

Outputs are JSON-ready: datetimes in returned rows are ISO-8601 strings,
so a freshly computed result looks exactly like one read back from cache.
"""

import logging
from collections import OrderedDict
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .engagement import score
from .helpers import ContentStatus, ContentType, calculate_trend, mean, round2, round_half_up

logger = logging.getLogger(__name__)

TOP_PERFORMER_MARGIN = 10
UPCOMING_WINDOW = timedelta(days=7)

# period name -> lookback window (None = all time)
STATS_PERIODS: Dict[str, Optional[timedelta]] = {
    "all": None,
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}


def _as_datetime(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def serialize_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy a row with datetimes rendered as ISO-8601 strings."""
    return {
        key: value.isoformat() if isinstance(value, (datetime, date)) else value
        for key, value in row.items()
    }


def _reach(row: Mapping[str, Any]) -> int:
    return row.get("potential_reach_metric") or 0


# ============================================================================
# ADVANCED ANALYTICS
# ============================================================================

def build_overview(rows: List[Mapping[str, Any]]) -> Dict[str, Any]:
    """Count, averages and total reach. Every field defaults to 0."""
    return {
        "total": len(rows),
        "avg_word_count": round2(mean(row.get("word_count") or 0 for row in rows)),
        "avg_character_count": round2(mean(row.get("character_count") or 0 for row in rows)),
        "avg_reach": round2(mean(_reach(row) for row in rows)),
        "total_reach": sum(_reach(row) for row in rows),
    }


def group_by_type_and_platform(rows: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Count and mean reach per (content_type, platform_target)."""
    groups: Dict[Tuple[str, Optional[str]], List[int]] = {}
    for row in rows:
        key = (row.get("content_type"), row.get("platform_target"))
        groups.setdefault(key, []).append(_reach(row))

    ordered = sorted(groups.items(), key=lambda item: (item[0][0] or "", item[0][1] or ""))
    return [
        {
            "content_type": content_type,
            "platform_target": platform_target,
            "count": len(reaches),
            "avg_reach": round2(mean(reaches)),
        }
        for (content_type, platform_target), reaches in ordered
    ]


def build_daily_trends(rows: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Per calendar day of creation: count and total reach, ascending."""
    days: Dict[date, Dict[str, int]] = {}
    for row in rows:
        day = _as_datetime(row["created_at"]).date()
        bucket = days.setdefault(day, {"count": 0, "total_reach": 0})
        bucket["count"] += 1
        bucket["total_reach"] += _reach(row)

    return [
        {"date": day.isoformat(), **days[day]}
        for day in sorted(days)
    ]


def build_advanced_analytics(
    current_rows: List[Mapping[str, Any]],
    previous_rows: List[Mapping[str, Any]],
) -> Dict[str, Any]:
    """
    Assemble the analytics payload for a date range.

    Args:
        current_rows: Rows created in [start, end)
        previous_rows: Rows created in the equal-length window before start

    Returns:
        Dict with overview, content_by_type, daily_trends, trends
        and period_comparison
    """
    overview = build_overview(current_rows)

    current_total = overview["total"]
    current_reach = overview["total_reach"]
    previous_total = len(previous_rows)
    previous_reach = sum(_reach(row) for row in previous_rows)

    return {
        "overview": overview,
        "content_by_type": group_by_type_and_platform(current_rows),
        "daily_trends": build_daily_trends(current_rows),
        "trends": {
            "content_trend": calculate_trend(previous_total, current_total),
            "reach_trend": calculate_trend(previous_reach, current_reach),
        },
        "period_comparison": {
            "current": {"total": current_total, "reach": current_reach},
            "previous": {"total": previous_total, "reach": previous_reach},
        },
    }


def previous_period(start: datetime, end: datetime) -> Tuple[datetime, datetime]:
    """The window of identical length immediately before [start, end)."""
    return start - (end - start), start


# ============================================================================
# PERFORMANCE SCORES
# ============================================================================

def score_content(rows: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Attach engagement metrics to a copy of each row."""
    scored = []
    for row in rows:
        metrics = score(row)
        entry = serialize_row(row)
        entry.update({
            "performance_score": metrics.engagement_score,
            "estimated_engagements": metrics.estimated_engagements,
            "estimated_clicks": metrics.estimated_clicks,
            "estimated_shares": metrics.estimated_shares,
            "quality_factors": metrics.to_dict()["quality_factors"],
        })
        scored.append(entry)
    return scored


def best_performing(
    scored: Iterable[Mapping[str, Any]],
    field: str,
) -> Tuple[Optional[str], int]:
    """
    Group with the highest mean performance score.

    Items without a value for `field` are skipped. Ties go to the larger
    group, then to the alphabetically first name.

    Returns:
        (group name or None, rounded mean score)
    """
    groups: Dict[str, List[int]] = OrderedDict()
    for item in scored:
        name = item.get(field)
        if not name:
            continue
        groups.setdefault(name, []).append(item["performance_score"])

    if not groups:
        return None, 0

    best_name, best_scores = min(
        groups.items(),
        key=lambda group: (-mean(group[1]), -len(group[1]), group[0]),
    )
    return best_name, round_half_up(mean(best_scores))


def build_performance_insights(scored: List[Mapping[str, Any]]) -> Dict[str, Any]:
    """Average score, outlier counts and best type/platform."""
    average = mean(item["performance_score"] for item in scored)

    top_performers = [
        item for item in scored
        if item["performance_score"] > average + TOP_PERFORMER_MARGIN
    ]
    needs_improvement = [
        item for item in scored
        if item["performance_score"] < average - TOP_PERFORMER_MARGIN
    ]

    best_type, best_type_score = best_performing(scored, "content_type")
    best_platform, best_platform_score = best_performing(scored, "platform_target")

    return {
        "average_score": round_half_up(average),
        "top_performers_count": len(top_performers),
        "needs_improvement_count": len(needs_improvement),
        "best_performing_type": {
            "type": best_type,
            "average_score": best_type_score,
        },
        "best_performing_platform": {
            "platform": best_platform,
            "average_score": best_platform_score,
        },
    }


def build_performance_scores(rows: List[Mapping[str, Any]]) -> Dict[str, Any]:
    """Score every row and summarize."""
    scored = score_content(rows)
    return {
        "content_scores": scored,
        "insights": build_performance_insights(scored),
    }


# ============================================================================
# CONTENT STATS
# ============================================================================

def period_start(period: str, now: datetime) -> Optional[datetime]:
    """Earliest created_at included in a stats period (None = all time)."""
    if period not in STATS_PERIODS:
        raise ValueError(f"Unknown stats period: {period}")
    window = STATS_PERIODS[period]
    return now - window if window else None


def build_content_stats(rows: List[Mapping[str, Any]], now: datetime) -> Dict[str, Any]:
    """
    Counts by status and type, total reach and upcoming schedule.

    Upcoming covers scheduled rows due within the next 7 days.
    """
    horizon = now + UPCOMING_WINDOW
    upcoming = []
    for row in rows:
        scheduled_at = _as_datetime(row.get("scheduled_at"))
        if row.get("status") != ContentStatus.SCHEDULED.value or scheduled_at is None:
            continue
        if now <= scheduled_at <= horizon:
            upcoming.append((scheduled_at, row))
    upcoming.sort(key=lambda pair: pair[0])

    def count_where(field: str, value: str) -> int:
        return sum(1 for row in rows if row.get(field) == value)

    return {
        "total": len(rows),
        "draft": count_where("status", ContentStatus.DRAFT.value),
        "scheduled": count_where("status", ContentStatus.SCHEDULED.value),
        "posted": count_where("status", ContentStatus.POSTED_SIMULATED.value),
        "total_potential_reach": sum(_reach(row) for row in rows),
        "content_types": {
            content_type.value: count_where("content_type", content_type.value)
            for content_type in ContentType
        },
        "upcoming_scheduled": [serialize_row(row) for _, row in upcoming],
    }
