"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file

The rate limit policy table lives here as data. Override it per deployment
with a JSON document, e.g.::

    RATE_LIMIT_ROUTES='{"/api/chat": {"max_requests": 30, "window_ms": 60000}}'
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field
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


def _build_llm_settings() -> "LLMSettings":
    """Build LLM settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return LLMSettings()  # type: ignore[call-arg]


class RouteLimitPolicy(BaseModel):
    """Request ceiling for a single route path."""

    max_requests: int = Field(..., ge=1)
    window_ms: int = Field(..., ge=1)


def _default_route_policies() -> dict[str, RouteLimitPolicy]:
    return {
        "/api/chat": RouteLimitPolicy(max_requests=30, window_ms=60_000),
        "/api/generate-checklist": RouteLimitPolicy(max_requests=10, window_ms=60_000),
    }


class LLMSettings(BaseSettings):
    """Primary LLM provider configuration.

    Groq and Gemini are reached through their OpenAI-compatible endpoints,
    so every provider shares the same client adapter.
    """

    provider: str = Field(
        ...,
        description="LLM provider name (openai, groq, gemini)",
    )
    model: str = Field(
        ...,
        description="Model name (e.g., llama-3.3-70b-versatile, gemini-2.0-flash)",
    )
    api_key: str | None = Field(
        None,
        description="API key for the provider",
    )
    base_url: str | None = Field(
        None,
        description="Custom API endpoint; defaults to the provider's public endpoint",
    )
    timeout_seconds: float = Field(
        30.0,
        description="Request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        case_sensitive=False,
    )


class FallbackLLMSettings(BaseSettings):
    """Optional secondary provider tried when the primary one fails."""

    provider: str | None = None
    model: str | None = None
    api_key: str | None = None
    base_url: str | None = None
    timeout_seconds: float = 30.0

    model_config = SettingsConfigDict(
        env_prefix="LLM_FALLBACK_",
        case_sensitive=False,
    )

    @property
    def enabled(self) -> bool:
        return bool(self.provider and self.model)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    max_user_message_chars: int = Field(
        2000,
        description="Maximum user message length after sanitization",
    )
    max_topic_chars: int = Field(
        100,
        description="Maximum topic name length after sanitization",
    )
    admin_key_required: bool = Field(
        True,
        description="Whether monitoring/admin endpoints require an admin key",
    )
    admin_api_keys: str | None = Field(
        None,
        description="Comma-separated list of admin keys (X-Admin-Key header)",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Server-side request limiter policy."""

    enabled: bool = Field(
        True,
        description="Enable the edge rate limit middleware",
    )
    path_prefix: str = Field(
        "/api/",
        description="Only requests under this path prefix are rate limited",
    )
    # /api/monitoring always requires X-Admin-Key (see core/auth.py), so it
    # stays readable while a saturated client is being throttled. Set
    # RATE_LIMIT_EXEMPT_PATHS='[]' to limit every /api/ path.
    exempt_paths: list[str] = Field(
        default_factory=lambda: ["/api/monitoring"],
        description="Paths under the prefix that are never rate limited",
    )
    routes: dict[str, RouteLimitPolicy] = Field(
        default_factory=_default_route_policies,
        description="Per-route policy table keyed by exact request path",
    )
    default_max_requests: int = Field(
        60,
        description="Ceiling for routes missing from the policy table",
        ge=1,
    )
    default_window_ms: int = Field(
        60_000,
        description="Window length for routes missing from the policy table",
        ge=1,
    )
    cleanup_interval_seconds: float = Field(
        300.0,
        description="How often expired counters are swept from memory",
        gt=0,
    )
    include_headers: bool = Field(
        True,
        description="Attach X-RateLimit-* headers to responses",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: str = Field("json", description="json or plain")
    output: str = Field("stdout", description="stdout or file")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10_485_760, description="Rotate file after N bytes (0 disables)")
    backup_count: int = Field(5, description="Rotated files to keep")
    request_id_header: str = Field("X-Request-ID", description="Correlation header name")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if required settings are missing.
    """

    app_env: str = APP_ENV
    llm: LLMSettings = Field(default_factory=_build_llm_settings)
    llm_fallback: FallbackLLMSettings = Field(default_factory=FallbackLLMSettings)
    app: AppSettings = Field(default_factory=AppSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


settings = Settings()
