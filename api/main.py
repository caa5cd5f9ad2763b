"""
ContentPulse API

FastAPI app exposing the caching and analytics core:
1. Per-user analytics, performance scores and stats (cache-aside)
2. Stateless engagement scoring
3. Cache health, statistics and manual invalidation

Run with:
    uvicorn api.main:app
"""

import logging
import sys
from typing import Optional

from fastapi import FastAPI
from sqlalchemy.orm import sessionmaker

from contentpulse import __version__
from contentpulse.analytics import MetricsService
from contentpulse.cache import CacheGateway, CacheInvalidator, DomainCache
from contentpulse.database import (
    ContentStore,
    SqlContentStore,
    check_db_connection,
    init_db,
)
from contentpulse.utils.config import Settings, get_settings

from api import analytics, cache

# Configure logging to stdout
logging.basicConfig(
    level=get_settings().LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stdout,
    force=True,  # Override any existing config
)
logger = logging.getLogger(__name__)

# Quiet down chatty loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(
    gateway: Optional[CacheGateway] = None,
    store: Optional[ContentStore] = None,
    session_factory: Optional[sessionmaker] = None,
    settings: Optional[Settings] = None,
    init_database: bool = True,
) -> FastAPI:
    """
    Build the app and its long-lived services.

    Args:
        gateway: Cache gateway (defaults to one built from CacheConfig)
        store: Content store (defaults to SqlContentStore on session_factory)
        session_factory: SQLAlchemy session factory for the default store
        settings: Application settings
        init_database: Create tables on startup
    """
    settings = settings or get_settings()
    gateway = gateway or CacheGateway()
    domain_cache = DomainCache(gateway)
    invalidator = CacheInvalidator(domain_cache)
    store = store or SqlContentStore(session_factory)

    app = FastAPI(
        title="ContentPulse",
        description="Caching and analytics core for AI-generated content",
        version=__version__,
    )

    app.state.settings = settings
    app.state.gateway = gateway
    app.state.cache = domain_cache
    app.state.invalidator = invalidator
    app.state.metrics = MetricsService(
        store,
        domain_cache,
        sample_size=settings.PERFORMANCE_SAMPLE_SIZE,
    )

    app.include_router(analytics.router)
    app.include_router(cache.router)

    # ========================================================================
    # STARTUP / SHUTDOWN
    # ========================================================================

    @app.on_event("startup")
    async def startup_event():
        """Initialize database and connect the cache."""
        if init_database:
            logger.info("Initializing database...")
            try:
                init_db()
                if not check_db_connection():
                    logger.warning("Database connection check failed - continuing anyway")
            except Exception as e:
                logger.error(f"Database initialization failed: {e}")

        state = await gateway.connect()
        logger.info(f"Cache state after startup: {state.value}")

    @app.on_event("shutdown")
    async def shutdown_event():
        await gateway.disconnect()

    @app.get("/api/health")
    async def health():
        """Service health including cache backend."""
        return {
            "status": "healthy",
            "version": __version__,
            "environment": settings.ENVIRONMENT,
            "cache": gateway.get_stats()["backend"],
        }

    return app


app = create_app()


# ============================================================================
# RUN SERVER
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
