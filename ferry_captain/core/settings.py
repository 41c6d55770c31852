"""Application settings and configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _is_testing() -> bool:
    """Check if we're running in a test environment."""
    import sys

    return "pytest" in sys.modules


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env" if not _is_testing() else None,  # Don't load .env in tests
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_env: Literal["local", "staging", "prod", "test"] = Field(
        default="local", description="Application environment"
    )
    log_level: str = Field(default="INFO", description="Logging level")

    # Metrics
    metrics_enabled: bool = Field(default=True, description="Enable Prometheus metrics")

    # Backend (PostgREST / Supabase)
    backend_url: str | None = Field(default=None, description="Backend base URL")
    backend_api_key: str | None = Field(default=None, description="Backend service API key")
    backend_timeout_sec: float = Field(
        default=10.0, gt=0, description="Timeout for a single backend request"
    )

    # Trip progression
    reconcile_delay_sec: float = Field(
        default=1.0,
        ge=0,
        description="Delay between an optimistic update and the authoritative re-fetch",
    )
    manifest_enabled: bool = Field(
        default=True, description="Send the passenger manifest after the last pickup"
    )

    @model_validator(mode="after")
    def validate_backend_config(self) -> "Settings":
        """Validate backend configuration."""
        if bool(self.backend_url) != bool(self.backend_api_key):
            raise ValueError("BACKEND_URL and BACKEND_API_KEY must be set together")
        return self

    @property
    def backend_configured(self) -> bool:
        return bool(self.backend_url and self.backend_api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        return cls()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()


def reset_settings_cache() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()
