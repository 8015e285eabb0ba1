"""
Configuration settings for the course-builder ordering service.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
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

    # ========================================
    # Content API
    # ========================================
    content_api_base_url: str = Field(
        default="http://localhost:3000/api/v1",
        description="Base URL of the remote content-management API",
    )
    content_api_key: str | None = Field(
        default=None,
        description="Bearer token for the content API (optional)",
    )
    content_api_timeout: float = Field(
        default=10.0,
        description="Request timeout in seconds",
    )
    api_retry_attempts: int = Field(
        default=3,
        description="Attempts per request on transport errors and 5xx responses",
    )
    api_retry_backoff: float = Field(
        default=0.5,
        description="Exponential backoff factor between retries (seconds)",
    )

    # ========================================
    # Course Builder
    # ========================================
    default_group_id: str | None = Field(
        default=None,
        description="Course group whose sections are loaded when none is given",
    )
    sync_debounce_seconds: float = Field(
        default=0.0,
        description="Idle window before a queued sequence update is flushed",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    def has_api_key(self) -> bool:
        """Check if an API token is configured."""
        return bool(self.content_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
