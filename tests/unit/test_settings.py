"""Unit tests for settings."""

import os

import pytest
from pydantic import ValidationError

from ferry_captain.core.settings import Settings, get_settings, reset_settings_cache


@pytest.mark.unit
def test_settings_defaults():
    """Test settings with default values."""
    # Clean up environment to test defaults
    env_vars = [
        "APP_ENV",
        "LOG_LEVEL",
        "METRICS_ENABLED",
        "BACKEND_URL",
        "BACKEND_API_KEY",
        "BACKEND_TIMEOUT_SEC",
        "RECONCILE_DELAY_SEC",
        "MANIFEST_ENABLED",
    ]

    original_values = {}
    for var in env_vars:
        original_values[var] = os.environ.get(var)
        if var in os.environ:
            del os.environ[var]

    try:
        settings = Settings()
        assert settings.app_env == "local"
        assert settings.log_level == "INFO"
        assert settings.metrics_enabled is True
        assert settings.reconcile_delay_sec == 1.0
        assert settings.manifest_enabled is True
        assert settings.backend_configured is False
    finally:
        # Restore original values
        for var, value in original_values.items():
            if value is not None:
                os.environ[var] = value


@pytest.mark.unit
def test_settings_from_env(monkeypatch):
    """Test settings from environment variables."""
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("BACKEND_URL", "https://project.supabase.co")
    monkeypatch.setenv("BACKEND_API_KEY", "service-key")
    monkeypatch.setenv("RECONCILE_DELAY_SEC", "2.5")

    settings = Settings.from_env()
    assert settings.app_env == "staging"
    assert settings.log_level == "DEBUG"
    assert settings.backend_configured
    assert settings.reconcile_delay_sec == 2.5


@pytest.mark.unit
def test_backend_url_requires_api_key(monkeypatch):
    monkeypatch.delenv("BACKEND_API_KEY", raising=False)
    monkeypatch.setenv("BACKEND_URL", "https://project.supabase.co")

    with pytest.raises(ValidationError, match="must be set together"):
        Settings()


@pytest.mark.unit
def test_negative_reconcile_delay_rejected():
    with pytest.raises(ValidationError):
        Settings(reconcile_delay_sec=-1)


@pytest.mark.unit
def test_get_settings_cache():
    """Test that get_settings uses caching."""
    reset_settings_cache()

    settings1 = get_settings()
    settings2 = get_settings()

    # Should be the same instance (cached)
    assert settings1 is settings2
