"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # YouTube Data API configuration
    youtube_api_key: Optional[str] = None
    youtube_api_base_url: str = "https://www.googleapis.com/youtube/v3"
    request_timeout_seconds: int = 30

    # Only streams from this channel may be connected (unset = any channel)
    allowed_channel_id: Optional[str] = None

    # Durable cache tier (Redis). Unset runs the cache in-memory only.
    redis_url: Optional[str] = None
    redis_socket_timeout_seconds: float = 2.0

    # Cache settings
    local_cache_max_entries: int = 100
    lock_ttl_seconds: int = 15
    lock_wait_seconds: float = 0.2
    lock_acquire_on_error: bool = True
    durable_ttl_buffer_seconds: int = 5

    # TTLs for upstream responses
    connect_ttl_seconds: int = 60
    min_poll_interval_ms: int = 1000
    max_poll_interval_ms: int = 30000


settings = Settings()
