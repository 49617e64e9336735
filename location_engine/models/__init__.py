"""
Data models for the location resolution engine.
"""

from location_engine.models.source import (
    LocationField,
    LocationSource,
    LocationSourceKind,
    SOURCE_PRIORITIES,
)
from location_engine.models.geo_context import (
    Coordinates,
    Country,
    LocationFlags,
    LocationPolicy,
    LocationSessionState,
    NormalizedGeocodeResult,
    ProcessedAddress,
)

__all__ = [
    "LocationField",
    "LocationSource",
    "LocationSourceKind",
    "SOURCE_PRIORITIES",
    "Coordinates",
    "Country",
    "LocationFlags",
    "LocationPolicy",
    "LocationSessionState",
    "NormalizedGeocodeResult",
    "ProcessedAddress",
]
