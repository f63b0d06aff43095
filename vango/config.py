"""
Configuration and settings for the VANGO backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")
    server_host: str = Field(default="127.0.0.1")
    server_port: int = Field(default=8000)

    # Database (Postgres expected, any SQLAlchemy URL works)
    database_url: Optional[str] = Field(default=None)

    # Managed backend REST root, used by the health check
    supabase_url: Optional[str] = Field(default=None)
    supabase_anon_key: Optional[str] = Field(default=None)
    health_check_timeout_seconds: float = Field(default=10.0)

    # S3-compatible object storage for photos
    storage_endpoint: Optional[str] = Field(default=None)
    storage_region: Optional[str] = Field(default=None)
    storage_access_key_id: Optional[str] = Field(default=None)
    storage_secret_access_key: Optional[str] = Field(default=None)
    storage_public_base_url: Optional[str] = Field(default=None)
    photo_bucket: str = Field(default="chat-photos")

    # Realtime change feed (Redis pub/sub)
    redis_url: Optional[str] = Field(default=None)

    # Geocoding
    google_maps_api_key: Optional[str] = Field(default=None)
    geocoding_provider: Literal["google", "mock"] = Field(default="google")
    geocoding_test_delay_seconds: float = Field(default=0.2)

    # Payments
    payment_provider: Literal["mock", "stripe"] = Field(default="mock")
    stripe_secret_key: Optional[str] = Field(default=None)
    site_url: str = Field(default="http://localhost:3000")

    # Saved payment methods: clear other defaults when one is set
    exclusive_default_payment_method: bool = Field(default=False)

    # Location tracking
    location_poll_interval_seconds: float = Field(default=10.0)
    geolocation_timeout_seconds: float = Field(default=5.0)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
