"""
Engine Configuration.

Settings are read from LOCATION_ENGINE_* environment variables, falling back
to the documented defaults. Loaded settings are cached; call
clear_settings_cache() after changing the environment.
"""

import os
import logging
from typing import Dict, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

_SETTINGS_CACHE: Dict[str, "EngineSettings"] = {}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class EngineSettings(BaseModel):
    """Runtime settings of the location engine."""
    accept_language: str = Field("uk,en", description="Accept-Language preference sent to providers")
    user_agent: str = Field("LocationEngine/1.0", description="User-Agent sent to providers")
    debounce_ms: int = Field(500, ge=0, description="Delay before a scheduled reverse geocode fires")
    provider_pause_ms: int = Field(500, ge=0, description="Pause between failed providers")
    browser_timeout_ms: int = Field(15000, gt=0, description="Device position fix timeout")
    browser_max_cache_age_ms: int = Field(300000, ge=0, description="Maximum age of a cached position fix")
    browser_high_accuracy: bool = Field(True, description="Request a high accuracy position fix")
    ip_lookup_url: str = Field("https://ipapi.co/json/", description="IP geolocation endpoint")
    log_level: str = Field("INFO", description="Log level for the HTTP surface")
    discard_stale_responses: bool = Field(
        True,
        description="Drop geocode results superseded by a newer request",
    )


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got '{raw}'")


def load_settings(use_cache: bool = True) -> EngineSettings:
    """
    Load engine settings from the environment.

    Args:
        use_cache: Return the previously loaded settings if available

    Returns:
        EngineSettings

    Raises:
        ValueError: If a numeric or boolean variable cannot be parsed
    """
    if use_cache and "default" in _SETTINGS_CACHE:
        return _SETTINGS_CACHE["default"]

    settings = EngineSettings(
        accept_language=os.getenv("LOCATION_ENGINE_ACCEPT_LANGUAGE", "uk,en"),
        user_agent=os.getenv("LOCATION_ENGINE_USER_AGENT", "LocationEngine/1.0"),
        debounce_ms=_env_int("LOCATION_ENGINE_DEBOUNCE_MS", 500),
        provider_pause_ms=_env_int("LOCATION_ENGINE_PROVIDER_PAUSE_MS", 500),
        browser_timeout_ms=_env_int("LOCATION_ENGINE_BROWSER_TIMEOUT_MS", 15000),
        browser_max_cache_age_ms=_env_int("LOCATION_ENGINE_BROWSER_MAX_AGE_MS", 300000),
        browser_high_accuracy=_env_bool("LOCATION_ENGINE_BROWSER_HIGH_ACCURACY", True),
        ip_lookup_url=os.getenv("LOCATION_ENGINE_IP_LOOKUP_URL", "https://ipapi.co/json/"),
        log_level=os.getenv("LOCATION_ENGINE_LOG_LEVEL", "INFO").upper(),
        discard_stale_responses=_env_bool("LOCATION_ENGINE_SEQUENCE_GEOCODES", True),
    )
    _SETTINGS_CACHE["default"] = settings
    logger.debug(f"Loaded engine settings: {settings.model_dump()}")
    return settings


def clear_settings_cache():
    """Clear the in-memory settings cache. Useful for testing."""
    _SETTINGS_CACHE.clear()


def get_settings(settings: Optional[EngineSettings] = None) -> EngineSettings:
    """Return the given settings, or the environment settings when None."""
    return settings if settings is not None else load_settings()
