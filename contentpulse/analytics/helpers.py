"""
Analytics Helper Functions and Constants

Platform tables, quality-factor patterns, rounding and aggregation
utilities shared by engagement scoring and aggregate analytics.
"""

import math
import re
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple


# ============================================================================
# CONTENT ENUMS
# ============================================================================

class ContentType(str, Enum):
    """Kinds of generated content."""
    BLOG_POST = "blog_post"
    SOCIAL_CAPTION = "social_caption"


class PlatformTarget(str, Enum):
    """Publishing platforms a piece of content can target."""
    TWITTER = "Twitter"
    LINKEDIN = "LinkedIn"
    FACEBOOK = "Facebook"
    INSTAGRAM = "Instagram"
    GENERAL = "General"


class ContentStatus(str, Enum):
    """Lifecycle of a content row."""
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    POSTED_SIMULATED = "posted_simulated"


# ============================================================================
# ENGAGEMENT TABLES
# ============================================================================

BASE_REACH = 100
MIN_POTENTIAL_REACH = 50

# platform -> (reach multiplier, engagement rate)
PLATFORM_FACTORS: Dict[str, Tuple[float, float]] = {
    "Twitter": (1.2, 0.035),     # Fast feed, high interaction
    "LinkedIn": (0.8, 0.025),    # Professional audience
    "Facebook": (1.5, 0.02),
    "Instagram": (1.8, 0.045),   # Visual platform, highest interaction
}
DEFAULT_PLATFORM_FACTORS: Tuple[float, float] = (1.0, 0.02)

# content type -> (reach multiplier, engagement-rate multiplier)
CONTENT_TYPE_FACTORS: Dict[str, Tuple[float, float]] = {
    "blog_post": (1.3, 0.8),       # Better reach, slower interaction
    "social_caption": (1.1, 1.2),  # Quick interaction
}

CLICK_RATE = 0.15
SHARE_RATE = 0.08

# Quality multiplier bonuses
HASHTAG_BONUS = 0.15
QUESTION_BONUS = 0.10
CALL_TO_ACTION_BONUS = 0.20
EMOJI_BONUS = 0.10

# No emoji bonus on these platforms
EMOJI_NEUTRAL_PLATFORMS = {"LinkedIn"}

HASHTAG_PATTERN = re.compile(r"#\w+")
QUESTION_PATTERN = re.compile(r"\?")
CALL_TO_ACTION_PATTERN = re.compile(
    r"\b(click|visit|check|learn|discover|try|get|download|sign up|subscribe)\b",
    re.IGNORECASE,
)
EMOJI_PATTERN = re.compile(
    "["
    "\U0001F600-\U0001F64F"  # emoticons
    "\U0001F300-\U0001F5FF"  # symbols & pictographs
    "\U0001F680-\U0001F6FF"  # transport & map
    "\U0001F1E0-\U0001F1FF"  # flags
    "]"
)


def get_platform_factors(platform_target: Optional[str]) -> Tuple[float, float]:
    """Reach multiplier and engagement rate for a platform."""
    if not platform_target:
        return DEFAULT_PLATFORM_FACTORS
    return PLATFORM_FACTORS.get(platform_target, DEFAULT_PLATFORM_FACTORS)


def get_length_multiplier(
    content_type: Optional[str],
    word_count: int,
    character_count: int,
) -> float:
    """
    Reward content inside the sweet spot for its type.

    Captions: 50-150 characters is ideal, past 280 gets truncated.
    Blog posts: 100-300 words is ideal, under 50 is thin.
    """
    if content_type == ContentType.SOCIAL_CAPTION.value:
        if 50 < character_count < 150:
            return 1.2
        if character_count > 280:
            return 0.7
    elif content_type == ContentType.BLOG_POST.value:
        if 100 < word_count < 300:
            return 1.1
        if word_count < 50:
            return 0.8
    return 1.0


# ============================================================================
# GENERATION-TIME REACH TABLES
# ============================================================================

GENERATION_PLATFORM_MULTIPLIERS: Dict[str, float] = {
    "Twitter": 1.2,
    "LinkedIn": 0.8,
    "Instagram": 1.5,
    "Facebook": 1.0,
    "General": 1.0,
}

GENERATION_CONTENT_MULTIPLIERS: Dict[str, float] = {
    "blog_post": 1.3,
    "social_caption": 1.0,
}


# ============================================================================
# ROUNDING
# ============================================================================

def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves towards +infinity."""
    return int(math.floor(value + 0.5))


def round2(value: float) -> float:
    """Round to two decimals, halves towards +infinity."""
    return math.floor(value * 100 + 0.5) / 100


# ============================================================================
# AGGREGATION
# ============================================================================

def mean(values: Iterable[float]) -> float:
    """Arithmetic mean; 0.0 for no values."""
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


def calculate_trend(previous: float, current: float) -> float:
    """
    Percentage change from previous to current.

    Growth from nothing counts as +100%, nothing to nothing as 0%.
    """
    if previous == 0:
        return 0.0 if current == 0 else 100.0
    return round2((current - previous) / previous * 100)
