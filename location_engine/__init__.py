"""
Location Resolution Engine.

Reconciles a physical location (coordinates, country, locality, region,
community) from competing sources: manual input, map clicks, device fixes
and reverse-geocoding lookups.

Entry point for consumers is LocationSession; the fallback chain and the
address heuristics can also be used on their own.
"""

__version__ = "1.0.0"

from location_engine.services.location_session import LocationSession
from location_engine.services.fallback_chain import ReverseGeocoder
from location_engine.services.address_heuristics import extract_location_fields

__all__ = [
    "LocationSession",
    "ReverseGeocoder",
    "extract_location_fields",
]
