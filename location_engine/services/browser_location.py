"""
Browser Location Gateway.

Thin interface for a one-shot position fix from the user's device.
Implementations receive the timeout/staleness policy as request parameters;
the session never cancels a fix itself.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

import requests
from pydantic import ValidationError

from location_engine.config import EngineSettings, get_settings
from location_engine.models.geo_context import Coordinates

logger = logging.getLogger(__name__)


class LocationErrorKind(str, Enum):
    """Typed failures of a position request."""
    PERMISSION_DENIED = "permission_denied"
    TIMEOUT = "timeout"
    POSITION_UNAVAILABLE = "position_unavailable"


class LocationGatewayError(Exception):
    """A position fix could not be obtained."""

    def __init__(self, kind: LocationErrorKind, message: str = ""):
        self.kind = kind
        super().__init__(message or kind.value)


@dataclass(frozen=True)
class PositionOptions:
    """Parameters of a single position request."""
    high_accuracy: bool = True
    timeout_ms: int = 15000
    max_cache_age_ms: int = 300000

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "PositionOptions":
        return cls(
            high_accuracy=settings.browser_high_accuracy,
            timeout_ms=settings.browser_timeout_ms,
            max_cache_age_ms=settings.browser_max_cache_age_ms,
        )


class BrowserLocationGateway(ABC):
    """
    Abstract source of device position fixes.

    Implementations MUST either return Coordinates or raise
    LocationGatewayError. Any other exception is a bug.
    """

    @abstractmethod
    async def get_current_position(self, options: PositionOptions) -> Coordinates:
        """
        Request the current position.

        Args:
            options: Accuracy, timeout and cache-age policy

        Returns:
            Coordinates of the fix

        Raises:
            LocationGatewayError: Permission denied, timeout or no position
        """
        pass


class StaticLocationGateway(BrowserLocationGateway):
    """Returns a fixed position, or always fails with a fixed error."""

    def __init__(
        self,
        coordinates: Optional[Coordinates] = None,
        error_kind: Optional[LocationErrorKind] = None,
        delay_seconds: float = 0.0,
    ):
        self.coordinates = coordinates
        self.error_kind = error_kind
        self.delay_seconds = delay_seconds
        self.requests = 0

    async def get_current_position(self, options: PositionOptions) -> Coordinates:
        self.requests += 1
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error_kind is not None:
            raise LocationGatewayError(self.error_kind)
        if self.coordinates is None:
            raise LocationGatewayError(LocationErrorKind.POSITION_UNAVAILABLE, "No position configured")
        return self.coordinates


class IPLocationGateway(BrowserLocationGateway):
    """
    Approximate device position from an IP geolocation service.

    A fix younger than options.max_cache_age_ms is reused without a request.
    IP lookups are city-level at best, so high_accuracy cannot be honoured.
    """

    def __init__(self, settings: Optional[EngineSettings] = None, session: Optional[requests.Session] = None):
        self.settings = get_settings(settings)
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": self.settings.user_agent,
            "Accept": "application/json",
        })
        self._cached_fix: Optional[Tuple[float, Coordinates]] = None

    def _lookup(self, timeout_seconds: float) -> Coordinates:
        response = self.session.get(self.settings.ip_lookup_url, timeout=timeout_seconds)
        if response.status_code in (401, 403):
            raise LocationGatewayError(
                LocationErrorKind.PERMISSION_DENIED,
                f"IP lookup refused with HTTP {response.status_code}",
            )
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("IP lookup response must be a JSON object")
        return Coordinates(latitude=data.get("latitude"), longitude=data.get("longitude"))

    async def get_current_position(self, options: PositionOptions) -> Coordinates:
        now = time.monotonic()
        if self._cached_fix is not None:
            fixed_at, coordinates = self._cached_fix
            if (now - fixed_at) * 1000.0 <= options.max_cache_age_ms:
                logger.debug(f"Reusing cached position fix: {coordinates.latitude}, {coordinates.longitude}")
                return coordinates

        if options.high_accuracy:
            logger.debug("High accuracy requested; IP geolocation is approximate")

        timeout_seconds = options.timeout_ms / 1000.0
        try:
            coordinates = await asyncio.wait_for(
                asyncio.to_thread(self._lookup, timeout_seconds),
                timeout=timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise LocationGatewayError(LocationErrorKind.TIMEOUT, f"No position within {options.timeout_ms}ms")
        except requests.exceptions.Timeout:
            raise LocationGatewayError(LocationErrorKind.TIMEOUT, f"No position within {options.timeout_ms}ms")
        except requests.exceptions.RequestException as e:
            raise LocationGatewayError(LocationErrorKind.POSITION_UNAVAILABLE, f"IP lookup failed: {e}")
        except (ValidationError, ValueError) as e:
            raise LocationGatewayError(LocationErrorKind.POSITION_UNAVAILABLE, f"IP lookup returned no position: {e}")

        self._cached_fix = (time.monotonic(), coordinates)
        return coordinates

    def clear_cache(self):
        """Forget the cached fix."""
        self._cached_fix = None
