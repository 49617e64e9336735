"""
Coordinate helpers shared by the session, the CLI and the HTTP surface.
"""

from numbers import Real
from typing import Any

UNKNOWN_COORDINATES_LABEL = "Unknown coordinates"


def is_valid_coordinates(lat: Any, lng: Any) -> bool:
    """True when both values are numbers within latitude/longitude range."""
    if isinstance(lat, bool) or isinstance(lng, bool):
        return False
    if not isinstance(lat, Real) or not isinstance(lng, Real):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def format_coordinates(lat: Any, lng: Any) -> str:
    """Format a coordinate pair with six decimals for display."""
    if not is_valid_coordinates(lat, lng):
        return UNKNOWN_COORDINATES_LABEL
    return f"{lat:.6f}, {lng:.6f}"
