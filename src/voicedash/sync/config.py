"""
Sync poller configuration.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SyncSettings(BaseSettings):
    """Client-side polling configuration from environment."""

    model_config = SettingsConfigDict(
        env_prefix="SYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_base_url: str = Field(default="http://localhost:8000")
    poll_interval_seconds: float = Field(default=5.0, gt=0)
    probe_interval_seconds: float = Field(default=30.0, gt=0)
    fetch_limit: int = Field(default=500, ge=1, le=1000)
    request_timeout_seconds: float = Field(default=10.0, gt=0, le=120)
    cache_path: str = Field(
        default=".voicedash/view-cache.json",
        description="Local file holding the last good view.",
    )


def get_sync_settings() -> SyncSettings:
    return SyncSettings()
