"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.

Cache settings live in contentpulse.cache.config (CacheConfig).
"""

from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Database (SQLite fallback when DATABASE_URL is unset)
    DATABASE_URL: Optional[str] = None
    SQLITE_PATH: str = "contentpulse_dev.db"
    SQL_DEBUG: bool = False

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Analytics defaults
    ANALYTICS_DEFAULT_DAYS: int = 30
    PERFORMANCE_SAMPLE_SIZE: int = 50

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
