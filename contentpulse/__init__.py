"""
ContentPulse

Caching and analytics core for an AI content-generation app:
1. Caches generation results and derived analytics (Redis, in-process fallback)
2. Scores content for estimated engagement
3. Aggregates per-user analytics, performance insights and stats
4. Invalidates a user's cached aggregates whenever their content changes
"""

__version__ = "0.1.0"
