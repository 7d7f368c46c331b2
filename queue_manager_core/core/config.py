"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file and os.getenv("TESTING") != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class SessionSettings(BaseSettings):
    """Session token configuration."""

    secret: str | None = Field(
        None,
        description="HMAC-SHA256 secret used to sign session tokens",
    )
    max_age_ms: int = Field(
        60 * 60 * 1000,
        description="Maximum accepted token age in milliseconds",
        ge=1,
    )
    token_header: str = Field(
        "X-Session-Token",
        description="Header carrying the session token",
    )

    model_config = SettingsConfigDict(
        env_prefix="SESSION_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Connection and invite rate limiting configuration."""

    enabled: bool = Field(
        True,
        description="Enable per-IP connection rate limiting",
    )
    connection_window_ms: int = Field(
        60 * 1000,
        description="Connection limiter window in milliseconds",
        ge=1,
    )
    connection_max: int = Field(
        10,
        description="Maximum connections per window (per client IP)",
        ge=1,
    )
    connection_cleanup_threshold: int = Field(
        1000,
        description="Tracked key count that triggers an eager expiry sweep",
        ge=1,
    )
    invite_window_ms: int = Field(
        60 * 60 * 1000,
        description="Invite limiter window in milliseconds",
        ge=1,
    )
    invite_max_attempts: int = Field(
        10,
        description="Maximum failed invite attempts per window (per client IP)",
        ge=1,
    )
    invite_cleanup_threshold: int = Field(
        500,
        description="Tracked key count that triggers an eager expiry sweep",
        ge=1,
    )
    cleanup_interval_seconds: int = Field(
        300,
        description="Interval of the periodic expiry sweep",
        ge=1,
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class EnvFileSettings(BaseSettings):
    """Session credential file configuration."""

    enabled: bool = Field(
        False,
        description="Write a credential file for every new session",
    )
    container_path: str = Field(
        "/run/session-env",
        description="Directory for credential files inside this container",
    )
    host_path: str = Field(
        "/tmp/session-env",
        description="Same directory as seen from the container host",
    )
    credentials: dict[str, str | None] = Field(
        default_factory=dict,
        description="Credentials written to each session file (JSON object)",
    )

    model_config = SettingsConfigDict(
        env_prefix="ENV_FILE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10 * 1024 * 1024, description="Rotate after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation id header")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class TelemetrySettings(BaseSettings):
    """Telemetry backend selection."""

    backend: str = Field(
        "noop",
        description="Telemetry backend (noop, log)",
    )
    service_name: str = Field(
        "queue-manager",
        description="Service name attached to telemetry events",
    )

    model_config = SettingsConfigDict(
        env_prefix="TELEMETRY_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    session: SessionSettings = Field(default_factory=SessionSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    env_file: EnvFileSettings = Field(default_factory=EnvFileSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    telemetry: TelemetrySettings = Field(default_factory=TelemetrySettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
