"""
Pawmatch — Application Configuration

Loads all configuration from environment variables (and an optional .env file)
using Pydantic Settings.  A cached ``get_settings()`` helper is provided so that
FastAPI dependency-injection (and any other call-site) always receives the same
validated instance without re-parsing the environment on every request.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Pawmatch service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------ #
    # Database – Cloud SQL via Unix socket or private IP
    # ------------------------------------------------------------------ #
    DATABASE_URL: str
    DB_USER: str = "pawmatch_user"
    DB_PASSWORD: str = ""
    DB_NAME: str = "pawmatch"
    CLOUD_SQL_INSTANCE_CONNECTION: str = ""
    CLOUD_SQL_USE_UNIX_SOCKET: bool = True

    # ------------------------------------------------------------------ #
    # Realtime change feed (chat delivery)
    # ------------------------------------------------------------------ #
    REALTIME_BACKEND: str = "memory"  # memory / redis
    REDIS_URL: str = ""
    REALTIME_CHANNEL_PREFIX: str = "pawmatch"
    MAX_MESSAGE_LENGTH: int = 2000

    # ------------------------------------------------------------------ #
    # Google Cloud Storage – pet avatars
    # ------------------------------------------------------------------ #
    GCP_PROJECT_ID: str = ""
    GCS_BUCKET_NAME: str = ""
    AVATAR_PREFIX: str = "avatars/"
    AVATAR_MAX_BYTES: int = 5 * 1024 * 1024

    # ------------------------------------------------------------------ #
    # Marketplace limits
    # ------------------------------------------------------------------ #
    SITTER_MAX_HOURLY_PRICE: float = 10000.0
    SITTER_REVIEW_PREVIEW_LIMIT: int = 10

    # ------------------------------------------------------------------ #
    # Runtime environment
    # ------------------------------------------------------------------ #
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    ALLOWED_ORIGINS: str = "*"

    # ------------------------------------------------------------------ #
    # Derived helpers
    # ------------------------------------------------------------------ #
    @property
    def allowed_origins_list(self) -> list[str]:
        """Return ALLOWED_ORIGINS as a list split on commas."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @field_validator("REALTIME_BACKEND")
    @classmethod
    def _backend_must_be_known(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "redis"):
            raise ValueError(f"REALTIME_BACKEND must be 'memory' or 'redis', got {v!r}")
        return v

    @field_validator("MAX_MESSAGE_LENGTH")
    @classmethod
    def _must_be_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"Value must be positive, got {v}")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached, validated ``Settings`` instance.

    Using ``@lru_cache`` guarantees the .env file is read and validated
    exactly once per process lifetime.  Import this function anywhere you
    need access to configuration::

        from app.config import get_settings
        settings = get_settings()
    """
    return Settings()  # type: ignore[call-arg]
