"""
Unit Tests for engine configuration loading.
"""

import pytest

from location_engine.config import EngineSettings, clear_settings_cache, load_settings


class TestLoadSettings:
    """Test suite for load_settings()."""

    def setup_method(self):
        clear_settings_cache()

    def teardown_method(self):
        clear_settings_cache()

    def test_defaults(self, monkeypatch):
        for name in (
            "LOCATION_ENGINE_DEBOUNCE_MS",
            "LOCATION_ENGINE_PROVIDER_PAUSE_MS",
            "LOCATION_ENGINE_ACCEPT_LANGUAGE",
            "LOCATION_ENGINE_SEQUENCE_GEOCODES",
        ):
            monkeypatch.delenv(name, raising=False)

        settings = load_settings()
        assert settings.debounce_ms == 500
        assert settings.provider_pause_ms == 500
        assert settings.accept_language == "uk,en"
        assert settings.browser_timeout_ms == 15000
        assert settings.browser_max_cache_age_ms == 300000
        assert settings.discard_stale_responses is True

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("LOCATION_ENGINE_DEBOUNCE_MS", "250")
        monkeypatch.setenv("LOCATION_ENGINE_ACCEPT_LANGUAGE", "pl,en")
        monkeypatch.setenv("LOCATION_ENGINE_SEQUENCE_GEOCODES", "off")
        monkeypatch.setenv("LOCATION_ENGINE_LOG_LEVEL", "debug")

        settings = load_settings()
        assert settings.debounce_ms == 250
        assert settings.accept_language == "pl,en"
        assert settings.discard_stale_responses is False
        assert settings.log_level == "DEBUG"

    def test_settings_are_cached(self, monkeypatch):
        monkeypatch.setenv("LOCATION_ENGINE_DEBOUNCE_MS", "100")
        first = load_settings()
        monkeypatch.setenv("LOCATION_ENGINE_DEBOUNCE_MS", "900")
        assert load_settings() is first
        assert load_settings(use_cache=False).debounce_ms == 900

    def test_invalid_integer_rejected(self, monkeypatch):
        monkeypatch.setenv("LOCATION_ENGINE_DEBOUNCE_MS", "soon")
        with pytest.raises(ValueError, match="LOCATION_ENGINE_DEBOUNCE_MS"):
            load_settings()

    def test_invalid_boolean_rejected(self, monkeypatch):
        monkeypatch.setenv("LOCATION_ENGINE_BROWSER_HIGH_ACCURACY", "maybe")
        with pytest.raises(ValueError, match="LOCATION_ENGINE_BROWSER_HIGH_ACCURACY"):
            load_settings()

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            EngineSettings(debounce_ms=-1)
