"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

Limiter settings are all optional. A value left unset in the environment
stays ``None`` and the middleware falls back to its documented default.
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


# Nested BaseSettings don't inherit env_file, so populate os.environ first.
# Tests set TESTING=true to keep local .env files out of the picture.
if _env_file and os.getenv("TESTING", "").lower() != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


def _build_log_settings() -> "LogSettings":
    """Build log settings from environment."""

    return LogSettings()  # type: ignore[call-arg]


def _build_limiter_settings() -> "LimiterSettings":
    """Build limiter settings from environment.

    BaseSettings populates values from environment variables; the type ignore
    keeps static checkers from treating fields as constructor arguments.
    """

    return LimiterSettings()  # type: ignore[call-arg]


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field(
        "INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
    )
    format: str = Field(
        "json",
        description="Log format: json or plain",
    )
    output: str = Field(
        "stdout",
        description="Log output: stdout or file",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file",
    )
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class LimiterSettings(BaseSettings):
    """Environment overrides for the rate limiting middleware.

    Every field is optional: ``None`` means "use the middleware default".
    """

    max_rate: int | None = Field(
        None,
        description="Requests allowed per period (default: 10)",
        ge=1,
    )
    burst: int | None = Field(
        None,
        description="Instantaneous allowance above the steady rate (default: 10)",
        ge=1,
    )
    period_seconds: float | None = Field(
        None,
        description="Length of the rate period in seconds (default: 60)",
        gt=0,
    )
    algorithm: str | None = Field(
        None,
        description="Engine counting strategy, e.g. sliding-window or gcra",
    )
    key_prefix: str | None = Field(
        None,
        description="Namespace prepended to every limiter key (default: rategate)",
    )
    status_code: int | None = Field(
        None,
        description="HTTP status for denied requests (default: 429)",
        ge=100,
        le=599,
    )
    message: str | None = Field(
        None,
        description="Body text for denied requests",
    )
    skip_on_engine_error: bool | None = Field(
        None,
        description="Forward requests when the engine fails instead of returning an error",
    )
    engine_timeout_seconds: float | None = Field(
        None,
        description="Abandon the engine call after this many seconds",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATEGATE_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are malformed.
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=_build_log_settings)
    limiter: LimiterSettings = Field(default_factory=_build_limiter_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
settings = Settings()
