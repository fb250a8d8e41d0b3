"""Tests for configuration validation."""

from datetime import time

import pytest

from src.core.config import Settings


def test_require_credential_with_valid_value() -> None:
    """Test require_credential returns value when credential is set."""
    settings = Settings(openrouter_api_key="sk-or-test")

    result = settings.require_credential("openrouter_api_key", "OpenRouter API key")

    assert result == "sk-or-test"


@pytest.mark.parametrize("value", [None, ""])
def test_require_credential_missing_raises_error(value) -> None:
    """Test require_credential raises ValueError when credential is unset or empty."""
    settings = Settings(google_maps_api_key=value)

    with pytest.raises(ValueError, match="Google Maps API key credential not configured"):
        settings.require_credential("google_maps_api_key", "Google Maps API key")


def test_require_credential_error_message_includes_env_name() -> None:
    """Test error message includes the environment variable name."""
    settings = Settings(openrouter_api_key=None)

    with pytest.raises(ValueError, match="OPENROUTER_API_KEY"):
        settings.require_credential("openrouter_api_key", "OpenRouter API key")


def test_settings_start_without_collaborator_credentials() -> None:
    """Collaborators are optional: settings load without any keys."""
    settings = Settings(openrouter_api_key=None, google_maps_api_key=None)

    assert settings.timezone
    assert settings.collaborator_timeout_seconds > 0


def test_settings_read_environment(monkeypatch) -> None:
    monkeypatch.setenv("TIMEZONE", "Europe/Berlin")
    monkeypatch.setenv("BUSINESS_HOURS_START", "08:30")
    monkeypatch.setenv("PROXIMITY_RADIUS_METERS", "250")

    settings = Settings()

    assert settings.timezone == "Europe/Berlin"
    assert settings.business_hours_start == time(8, 30)
    assert settings.proximity_radius_meters == 250.0
