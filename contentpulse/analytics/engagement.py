"""
Engagement Scoring

Heuristic engagement estimate for a single content item:

    potential_reach = base × platform × quality × length
    engagements     = potential_reach × engagement_rate
    clicks          = engagements × 0.15
    shares          = engagements × 0.08
    score           = 100 × engagements / potential_reach

Scoring is a pure function of the item. The only randomness in the
system lives in estimate_potential_reach(), which runs once when
content is generated.
"""

import logging
import random
from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from .helpers import (
    BASE_REACH,
    CALL_TO_ACTION_BONUS,
    CALL_TO_ACTION_PATTERN,
    CLICK_RATE,
    CONTENT_TYPE_FACTORS,
    EMOJI_BONUS,
    EMOJI_NEUTRAL_PLATFORMS,
    EMOJI_PATTERN,
    GENERATION_CONTENT_MULTIPLIERS,
    GENERATION_PLATFORM_MULTIPLIERS,
    HASHTAG_BONUS,
    HASHTAG_PATTERN,
    MIN_POTENTIAL_REACH,
    QUESTION_BONUS,
    QUESTION_PATTERN,
    SHARE_RATE,
    ContentType,
    get_length_multiplier,
    get_platform_factors,
    round_half_up,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QualityFactors:
    """Independent text-quality signals."""
    has_hashtags: bool
    has_questions: bool
    has_call_to_action: bool
    has_emojis: bool
    optimal_length: bool


@dataclass(frozen=True)
class EngagementMetrics:
    """Derived engagement estimate for one content item. Never persisted."""
    potential_reach: int
    estimated_engagements: int
    estimated_clicks: int
    estimated_shares: int
    engagement_score: int
    quality_factors: QualityFactors

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def detect_quality_factors(text: Optional[str]) -> Tuple[bool, bool, bool, bool]:
    """Return (hashtags, questions, call to action, emojis) for a text."""
    text = text or ""
    return (
        bool(HASHTAG_PATTERN.search(text)),
        bool(QUESTION_PATTERN.search(text)),
        bool(CALL_TO_ACTION_PATTERN.search(text)),
        bool(EMOJI_PATTERN.search(text)),
    )


def score(item: Mapping[str, Any]) -> EngagementMetrics:
    """
    Calculate engagement metrics for a content item.

    Args:
        item: Content row with:
            - content_type: "blog_post" or "social_caption"
            - platform_target: platform name or None
            - word_count / character_count: int
            - generated_text: str

    Returns:
        EngagementMetrics
    """
    content_type = item.get("content_type")
    platform_target = item.get("platform_target")
    word_count = item.get("word_count") or 0
    character_count = item.get("character_count") or 0

    # 1. Platform
    reach_multiplier, engagement_rate = get_platform_factors(platform_target)

    # 2. Content type
    base_reach = float(BASE_REACH)
    type_reach, type_rate = CONTENT_TYPE_FACTORS.get(content_type, (1.0, 1.0))
    base_reach *= type_reach
    engagement_rate *= type_rate

    # 3. Quality
    has_hashtags, has_questions, has_cta, has_emojis = detect_quality_factors(
        item.get("generated_text")
    )
    quality_multiplier = 1.0
    if has_hashtags:
        quality_multiplier += HASHTAG_BONUS
    if has_questions:
        quality_multiplier += QUESTION_BONUS
    if has_cta:
        quality_multiplier += CALL_TO_ACTION_BONUS
    if has_emojis and platform_target not in EMOJI_NEUTRAL_PLATFORMS:
        quality_multiplier += EMOJI_BONUS

    # 4. Length
    length_multiplier = get_length_multiplier(content_type, word_count, character_count)

    # 5. Final metrics
    potential_reach = round_half_up(
        base_reach * reach_multiplier * quality_multiplier * length_multiplier
    )
    # engagement_score divides by this
    potential_reach = max(MIN_POTENTIAL_REACH, potential_reach)

    estimated_engagements = round_half_up(potential_reach * engagement_rate)
    estimated_clicks = round_half_up(estimated_engagements * CLICK_RATE)
    estimated_shares = round_half_up(estimated_engagements * SHARE_RATE)
    engagement_score = round_half_up(estimated_engagements / potential_reach * 100)

    return EngagementMetrics(
        potential_reach=potential_reach,
        estimated_engagements=estimated_engagements,
        estimated_clicks=estimated_clicks,
        estimated_shares=estimated_shares,
        engagement_score=engagement_score,
        quality_factors=QualityFactors(
            has_hashtags=has_hashtags,
            has_questions=has_questions,
            has_call_to_action=has_cta,
            has_emojis=has_emojis,
            optimal_length=length_multiplier > 1,
        ),
    )


# ============================================================================
# GENERATION PATH
# ============================================================================

def measure_text(text: str) -> Tuple[int, int]:
    """Word and character counts of generated text."""
    text = text or ""
    return len(text.split()), len(text)


def estimate_potential_reach(
    content_type: str,
    platform_target: Optional[str],
    word_count: int,
    character_count: int,
    rng: Optional[random.Random] = None,
) -> int:
    """
    Simulated reach assigned when content is generated.

    Applies a ±20% jitter on top of platform, type and length factors.
    Never returns less than MIN_POTENTIAL_REACH.
    """
    rng = rng or random.Random()

    if content_type == ContentType.BLOG_POST.value:
        quality = 1.2 if 100 <= word_count <= 250 else 0.9
    elif content_type == ContentType.SOCIAL_CAPTION.value:
        quality = 1.1 if 50 <= character_count <= 300 else 0.9
    else:
        quality = 1.0

    platform_multiplier = GENERATION_PLATFORM_MULTIPLIERS.get(platform_target, 1.0)
    content_multiplier = GENERATION_CONTENT_MULTIPLIERS.get(content_type, 1.0)
    jitter = rng.random() * 0.4 + 0.8

    reach = round_half_up(
        BASE_REACH * platform_multiplier * content_multiplier * quality * jitter
    )
    return max(MIN_POTENTIAL_REACH, reach)
