"""
Reverse-Geocoding Provider Table.

Each provider carries its own URL builder, timeout and response parser, so
structurally different payloads (flat address object vs. GeoJSON feature
collection) are normalized without central branching.

List order is policy: primary provider first, regional mirrors after,
lowest-trust/slowest last.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

from location_engine.models.geo_context import NormalizedGeocodeResult

UrlBuilder = Callable[[float, float, str], str]
ResponseParser = Callable[[Any, float, float], Optional[NormalizedGeocodeResult]]

NOMINATIM_REVERSE_URL = "https://nominatim.openstreetmap.org/reverse"
PHOTON_REVERSE_URL = "https://photon.komoot.io/reverse"
QWANT_REVERSE_URL = "https://nominatim.qwant.com/v1/reverse"

# Photon property names -> Nominatim address names
PHOTON_KEY_MAP: Dict[str, str] = {
    "countrycode": "country_code",
    "housenumber": "house_number",
    "street": "road",
}

# Photon feature types that name a settlement
PHOTON_SETTLEMENT_TYPES = ("city", "town", "village", "hamlet", "locality")


@dataclass(frozen=True)
class GeocodeProvider:
    """
    One reverse-geocoding service.

    build_url(lat, lng, language) -> request URL
    parse_response(raw_json, lat, lng) -> NormalizedGeocodeResult or None
    """

    name: str
    build_url: UrlBuilder
    timeout_ms: int
    parse_response: ResponseParser


def _nominatim_url(base_url: str) -> UrlBuilder:
    def build(lat: float, lng: float, language: str) -> str:
        params = {
            "format": "json",
            "lat": lat,
            "lon": lng,
            "zoom": 18,
            "addressdetails": 1,
            "accept-language": language,
        }
        return f"{base_url}?{urlencode(params)}"
    return build


def _photon_url(lat: float, lng: float, language: str) -> str:
    # Photon takes a single language code
    primary_language = language.split(",")[0].strip() or "en"
    params = {"lat": lat, "lon": lng, "lang": primary_language}
    return f"{PHOTON_REVERSE_URL}?{urlencode(params)}"


def parse_nominatim_response(raw: Any, lat: float, lng: float) -> Optional[NormalizedGeocodeResult]:
    """Nominatim already returns {address: {...}, display_name: "..."}."""
    if not isinstance(raw, dict) or raw.get("error"):
        return None
    return NormalizedGeocodeResult(
        address=raw.get("address") or {},
        display_name=raw.get("display_name") or "",
    )


def parse_photon_response(raw: Any, lat: float, lng: float) -> Optional[NormalizedGeocodeResult]:
    """
    Convert a Photon GeoJSON FeatureCollection into the Nominatim shape.

    The first feature's properties become the address. The display name is
    the feature name, or the queried coordinates when the feature is unnamed.
    """
    if not isinstance(raw, dict):
        return None
    features = raw.get("features")
    if not isinstance(features, list) or not features:
        return None

    properties = features[0].get("properties") if isinstance(features[0], dict) else None
    if not isinstance(properties, dict):
        properties = {}

    address: Dict[str, Any] = {}
    for key, value in properties.items():
        address[PHOTON_KEY_MAP.get(key, key)] = value

    name = properties.get("name")
    feature_type = properties.get("type")
    if name and feature_type in PHOTON_SETTLEMENT_TYPES and not address.get(feature_type):
        address[feature_type] = name

    return NormalizedGeocodeResult(
        address=address,
        display_name=name or f"{lat}, {lng}",
    )


DEFAULT_PROVIDERS: List[GeocodeProvider] = [
    GeocodeProvider(
        name="Nominatim OSM",
        build_url=_nominatim_url(NOMINATIM_REVERSE_URL),
        timeout_ms=8000,
        parse_response=parse_nominatim_response,
    ),
    GeocodeProvider(
        name="Photon Komoot",
        build_url=_photon_url,
        timeout_ms=6000,
        parse_response=parse_photon_response,
    ),
    GeocodeProvider(
        name="Nominatim Qwant",
        build_url=_nominatim_url(QWANT_REVERSE_URL),
        timeout_ms=10000,
        parse_response=parse_nominatim_response,
    ),
]
