"""
Application configuration with environment-driven settings.
"""

from functools import lru_cache
import os
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "voicedash"
    app_env: Literal["dev", "qa", "uat", "prod"] = "dev"
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./voicedash.db",
        description="SQLAlchemy async connection URL for the event store",
    )

    # CORS
    cors_origins: str = Field(
        default="http://localhost:3000",
        description="Comma-separated list of allowed CORS origins",
    )

    # Rollups over stored events
    stats_window_hours: int = Field(
        default=24,
        ge=1,
        le=168,
        description="Trailing window for the 'today' counters, in hours.",
    )
    stats_week_days: int = Field(
        default=7,
        ge=1,
        le=31,
        description="Number of daily buckets in the weekly breakdown.",
    )

    # Pagination defaults
    history_default_limit: int = Field(default=20, ge=1, le=200)
    events_default_limit: int = Field(default=100, ge=1, le=1000)
    events_max_limit: int = Field(default=1000, ge=1, le=10000)

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def _get_settings_cached() -> Settings:
    return Settings()


def get_settings() -> Settings:
    # Under pytest env vars change between tests (monkeypatch); never serve a frozen copy.
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return Settings()
    return _get_settings_cached()
