"""
Shared FastAPI dependencies.

create_app() puts the long-lived services on app.state; routers pull
them out per request.
"""

from fastapi import Request

from contentpulse.analytics import MetricsService
from contentpulse.cache import CacheGateway, CacheInvalidator
from contentpulse.utils.config import Settings


def get_metrics_service(request: Request) -> MetricsService:
    return request.app.state.metrics


def get_gateway(request: Request) -> CacheGateway:
    return request.app.state.gateway


def get_invalidator(request: Request) -> CacheInvalidator:
    return request.app.state.invalidator


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
