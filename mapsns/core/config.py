"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Every rate limit capacity/period is validated here, so a non-positive value
fails at startup instead of at request time.
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


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

# Production usually injects env vars directly, so the file is optional
_env_file = str(_env_path) if _env_path.is_file() else None


# Nested BaseSettings don't inherit env_file, so populate os.environ first
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    name: str = Field(
        "Map SNS API",
        description="Service name shown in OpenAPI metadata",
    )
    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field(
        "json",
        description="Log format: json (machine-friendly) or plain",
    )
    output: str = Field("stdout", description="Log destination: stdout or file")
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated files to keep", ge=0)
    trace_id_header: str = Field(
        "X-Trace-Id",
        description="Header used to accept and echo the trace id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Per route-class token bucket policies (IP based).

    Capacities are requests per period; periods are in seconds.
    """

    enabled: bool = Field(True, description="Enable the rate limit filter")

    login_capacity: int = Field(10, description="Login requests per period", ge=1)
    login_period_seconds: int = Field(60, description="Login refill period", ge=1)

    signup_capacity: int = Field(10, description="Signup requests per period", ge=1)
    signup_period_seconds: int = Field(60, description="Signup refill period", ge=1)

    refresh_capacity: int = Field(20, description="Token refresh requests per period", ge=1)
    refresh_period_seconds: int = Field(300, description="Token refresh refill period", ge=1)

    public_api_capacity: int = Field(
        100,
        description="Unauthenticated public read requests per period",
        ge=1,
    )
    public_api_period_seconds: int = Field(60, description="Public read refill period", ge=1)

    forwarded_for_header: str = Field(
        "X-Forwarded-For",
        description="Header whose first hop identifies the client",
    )
    idle_eviction_periods: int = Field(
        10,
        description="Evict a bucket untouched for this many multiples of its period",
        ge=1,
    )
    sweep_interval_seconds: int = Field(
        60,
        description="Minimum seconds between two idle-bucket sweeps",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class RedisSettings(BaseSettings):
    """Connection settings for the networked token store."""

    url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL (may embed credentials)",
    )
    socket_timeout_seconds: float = Field(
        2.0,
        description="Per-command socket timeout",
        gt=0,
    )
    connect_timeout_seconds: float = Field(
        2.0,
        description="Connection establishment timeout",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class TokenStoreSettings(BaseSettings):
    """Token store backend selection."""

    backend: str = Field(
        "redis",
        description="Token store backend: redis or inert (no revocation, tests only)",
    )
    verify_on_startup: bool = Field(
        True,
        description="Ping the token store during startup and abort if unreachable",
    )

    model_config = SettingsConfigDict(
        env_prefix="TOKEN_STORE_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if any setting is invalid.
    """

    app_env: str = APP_ENV
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    redis: RedisSettings = Field(default_factory=RedisSettings)
    token_store: TokenStoreSettings = Field(default_factory=TokenStoreSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
