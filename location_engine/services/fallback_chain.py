"""
Reverse-Geocoding Fallback Chain.

Tries each provider in order until one returns a usable result.

CRITICAL: reverse_geocode() NEVER fails. When every provider is down it
returns a synthetic placeholder built from the input coordinates, so the
caller always has something to display.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence

import requests

from location_engine.config import EngineSettings, get_settings
from location_engine.models.geo_context import NormalizedGeocodeResult
from location_engine.services.geocode_providers import DEFAULT_PROVIDERS, GeocodeProvider

logger = logging.getLogger(__name__)

# fetch_json(url, timeout_seconds) -> decoded JSON body
FetchJson = Callable[[str, float], Any]

PLACEHOLDER_COUNTRY = "Україна"
PLACEHOLDER_COUNTRY_CODE = "ua"
PLACEHOLDER_REGION = "Unknown region"


class ProviderError(Exception):
    """A provider answered, but not with anything usable."""


def build_placeholder_result(lat: float, lng: float) -> NormalizedGeocodeResult:
    """
    Synthesize a displayable result for a total provider outage.

    Contains only the rounded input coordinates and generic country/region
    labels.
    """
    return NormalizedGeocodeResult(
        address={
            "country": PLACEHOLDER_COUNTRY,
            "country_code": PLACEHOLDER_COUNTRY_CODE,
            "city": f"City {lat:.2f}",
            "state": PLACEHOLDER_REGION,
            "lat": f"{lat:.6f}",
            "lng": f"{lng:.6f}",
        },
        display_name=f"{lat:.6f}, {lng:.6f}",
        provider=None,
        is_placeholder=True,
    )


class ReverseGeocoder:
    """
    Reverse geocoding over an ordered list of independent providers.

    Each attempt is bounded by the provider's own timeout. A timeout is
    treated exactly like a transport error: logged, not retried, and the
    chain moves on after a short pause.
    """

    def __init__(
        self,
        providers: Optional[Sequence[GeocodeProvider]] = None,
        settings: Optional[EngineSettings] = None,
        fetch_json: Optional[FetchJson] = None,
    ):
        """
        Initialize the geocoder.

        Args:
            providers: Ordered providers, defaults to DEFAULT_PROVIDERS
            settings: Engine settings, defaults to environment settings
            fetch_json: Blocking HTTP GET returning decoded JSON; injected in tests
        """
        self.settings = get_settings(settings)
        self.providers: List[GeocodeProvider] = list(providers if providers is not None else DEFAULT_PROVIDERS)
        self.session = requests.Session()
        self.session.headers.update({
            "User-Agent": self.settings.user_agent,
            "Accept": "application/json",
            "Accept-Language": self.settings.accept_language,
            "Cache-Control": "no-cache",
        })
        self._fetch_json = fetch_json or self._http_get_json

    def _http_get_json(self, url: str, timeout_seconds: float) -> Any:
        response = self.session.get(url, timeout=timeout_seconds)
        response.raise_for_status()
        return response.json()

    async def _attempt(self, provider: GeocodeProvider, lat: float, lng: float) -> NormalizedGeocodeResult:
        url = provider.build_url(lat, lng, self.settings.accept_language)
        timeout_seconds = provider.timeout_ms / 1000.0
        logger.debug(f"Trying {provider.name} (timeout: {provider.timeout_ms}ms): {url}")

        # The worker thread is not cancelled on timeout; its late answer is ignored
        raw = await asyncio.wait_for(
            asyncio.to_thread(self._fetch_json, url, timeout_seconds),
            timeout=timeout_seconds,
        )

        result = provider.parse_response(raw, lat, lng)
        if result is None or result.is_empty():
            raise ProviderError(f"Empty response from {provider.name}")
        return result.model_copy(update={"provider": provider.name})

    async def reverse_geocode(self, lat: float, lng: float) -> NormalizedGeocodeResult:
        """
        Resolve coordinates to a normalized address.

        Args:
            lat: Latitude
            lng: Longitude

        Returns:
            First usable provider result, or a placeholder if all providers fail
        """
        last_error: Optional[str] = None

        for index, provider in enumerate(self.providers):
            try:
                result = await self._attempt(provider, lat, lng)
                logger.info(f"Reverse geocoding succeeded via {provider.name} for {lat}, {lng}")
                return result
            except asyncio.TimeoutError:
                last_error = f"{provider.name} timed out after {provider.timeout_ms}ms"
            except requests.exceptions.RequestException as e:
                last_error = f"{provider.name} network error: {e}"
            except ProviderError as e:
                last_error = str(e)
            except (ValueError, TypeError, KeyError) as e:
                last_error = f"{provider.name} returned an unparsable body: {e}"
            except Exception as e:
                last_error = f"{provider.name} failed unexpectedly: {e!r}"
                logger.error(f"Provider {provider.name} raised unexpectedly", exc_info=True)

            logger.warning(f"Reverse geocoding failed: {last_error}")

            if index < len(self.providers) - 1:
                await asyncio.sleep(self.settings.provider_pause_ms / 1000.0)

        logger.error(
            f"All reverse geocoding providers failed for {lat}, {lng} "
            f"(last error: {last_error or 'no providers configured'}). Using placeholder result."
        )
        return build_placeholder_result(lat, lng)
