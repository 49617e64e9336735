"""
Source Registry.

Defines where a location field value came from and how much it is trusted.

CRITICAL: Priorities are FIXED constants. A source's priority is always
derived from its kind and is never set independently.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, computed_field


class LocationSourceKind(str, Enum):
    """Actors that can supply a location field value."""
    MANUAL = "manual"  # User typed the value
    MAP_CLICK = "map_click"  # User picked a point on the map
    BROWSER_LOCATION = "browser_location"  # Device position fix
    GEOCODING = "geocoding"  # Reverse-geocoding lookup


class LocationField(str, Enum):
    """Fields tracked independently by a location session."""
    COORDINATES = "coordinates"
    COUNTRY_ID = "country_id"
    REGION_NAME = "region_name"
    COMMUNITY_NAME = "community_name"
    LOCALITY_NAME = "locality_name"


# Higher priority = more trusted
SOURCE_PRIORITIES: Dict[LocationSourceKind, int] = {
    LocationSourceKind.MANUAL: 100,
    LocationSourceKind.MAP_CLICK: 80,
    LocationSourceKind.BROWSER_LOCATION: 60,
    LocationSourceKind.GEOCODING: 40,
}


class LocationSource(BaseModel):
    """Origin of a field value, stamped with the time it was observed."""
    model_config = ConfigDict(frozen=True)

    kind: LocationSourceKind
    observed_at: datetime

    @computed_field
    @property
    def priority(self) -> int:
        return SOURCE_PRIORITIES[self.kind]

    @property
    def is_manual(self) -> bool:
        return self.kind == LocationSourceKind.MANUAL

    @classmethod
    def create(
        cls,
        kind: LocationSourceKind,
        observed_at: Optional[datetime] = None,
    ) -> "LocationSource":
        """
        Build a source for a value observed now (or at the given time).

        Args:
            kind: Actor that supplied the value
            observed_at: Observation time, defaults to current UTC time

        Returns:
            Immutable LocationSource
        """
        return cls(kind=kind, observed_at=observed_at or datetime.now(timezone.utc))
