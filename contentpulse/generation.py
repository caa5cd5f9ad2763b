"""
Content Generation

Cache-aside wrapper around the text-generation provider. The provider
is any async callable:

    async def provider(topic, keyword, content_type, platform_target) -> dict
        # {"text": str, "word_count": int?, "character_count": int?}

Raw provider results are cached in the content namespace for an hour.
Potential reach is estimated fresh on every call, hit or miss.
"""

import logging
import random
from typing import Any, Awaitable, Callable, Dict, Optional

from contentpulse.analytics.engagement import estimate_potential_reach, measure_text
from contentpulse.cache.domain import DomainCache

logger = logging.getLogger(__name__)

Provider = Callable[[str, Optional[str], str, Optional[str]], Awaitable[Dict[str, Any]]]


class ContentGenerator:
    """Generates content through a provider, reusing cached results."""

    def __init__(
        self,
        provider: Provider,
        cache: DomainCache,
        rng: Optional[random.Random] = None,
    ):
        self.provider = provider
        self.cache = cache
        self.rng = rng or random.Random()

    async def generate(
        self,
        topic: str,
        keyword: Optional[str],
        content_type: str,
        platform_target: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Generate (or reuse) text for a request.

        Returns:
            Dict with generated_text, word_count, character_count,
            potential_reach and cached

        Provider errors propagate to the caller.
        """
        raw = await self.cache.get_cached_content(topic, keyword, content_type, platform_target)
        cached = raw is not None

        if cached:
            logger.info(f"Content cache hit: {content_type} on {platform_target or 'General'}")
        else:
            raw = await self.provider(topic, keyword, content_type, platform_target)
            text = raw.get("text") or ""
            word_count, character_count = measure_text(text)
            raw = {
                "text": text,
                "word_count": raw.get("word_count") or word_count,
                "character_count": raw.get("character_count") or character_count,
            }
            await self.cache.set_cached_content(
                topic, keyword, content_type, platform_target, raw
            )

        potential_reach = estimate_potential_reach(
            content_type,
            platform_target,
            raw["word_count"],
            raw["character_count"],
            rng=self.rng,
        )

        return {
            "generated_text": raw["text"],
            "word_count": raw["word_count"],
            "character_count": raw["character_count"],
            "potential_reach": potential_reach,
            "cached": cached,
        }
