"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ up front
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_log_settings() -> "LogSettings":
    return LogSettings()


def _build_throttle_settings() -> "ThrottleSettings":
    return ThrottleSettings()


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log line format: json (machine-friendly) or plain",
    )
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int = Field(
        0,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class ThrottleSettings(BaseSettings):
    """Request throttling configuration.

    ``failure_mode`` is the single switch deciding what happens when the
    counter store cannot be reached: ``open`` admits the request and logs the
    degradation, ``closed`` rejects it with a retryable error.
    """

    enabled: bool = Field(
        True,
        description="Enable per-route throttling",
    )
    backend: Literal["memory", "redis"] = Field(
        "memory",
        description="Counter store backend",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL when backend=redis",
    )
    redis_socket_timeout_seconds: float = Field(
        0.5,
        description="Socket connect/read timeout for Redis calls",
        gt=0,
    )
    redis_key_prefix: str = Field(
        "mentorgate",
        description="Namespace prepended to every Redis counter key",
    )
    failure_mode: Literal["open", "closed"] = Field(
        "closed",
        description="Behavior when the counter store is unavailable",
    )
    retry_after_on_failure_seconds: int = Field(
        30,
        description="Retry-After hint returned when failing closed",
        ge=1,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers in responses",
    )
    identity_header: str = Field(
        "X-User-Id",
        description="Header carrying the authenticated caller id",
    )
    tier_header: str = Field(
        "X-Subscription-Tier",
        description="Header carrying the caller subscription tier",
    )
    sweep_interval_seconds: int = Field(
        300,
        description="Interval of the expired-counter sweep (0 disables it)",
        ge=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="THROTTLE_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=_build_log_settings)
    throttle: ThrottleSettings = Field(default_factory=_build_throttle_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
