"""
Geographic Context Models.

Represents coordinates, the caller's country registry, normalized
reverse-geocoding results and the state of a location session.
"""

from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from location_engine.models.source import LocationField, LocationSource


class Coordinates(BaseModel):
    """A point on Earth in decimal degrees."""
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(..., ge=-90.0, le=90.0, description="Latitude in decimal degrees")
    longitude: float = Field(..., ge=-180.0, le=180.0, description="Longitude in decimal degrees")


class Country(BaseModel):
    """
    Entry of the caller-supplied country registry.

    Read-only input: the engine matches against it and never mutates it.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(..., description="Caller's country identifier")
    name: str = Field(..., description="Display name (any language)")
    iso_code: str = Field(
        ...,
        validation_alias=AliasChoices("iso_code", "isoCode", "code"),
        description="ISO 3166-1 alpha-2 country code (e.g., 'UA', 'PL')",
    )
    latitude: Optional[float] = Field(None, description="Representative latitude, if known")
    longitude: Optional[float] = Field(None, description="Representative longitude, if known")


class NormalizedGeocodeResult(BaseModel):
    """
    Common shape every provider response is converted into.

    Callers never see raw provider payloads.
    """
    address: Dict[str, str] = Field(default_factory=dict, description="Raw address field name -> value")
    display_name: str = Field("", description="Free-form display string")
    provider: Optional[str] = Field(None, description="Name of the provider that produced the result")
    is_placeholder: bool = Field(False, description="True when every provider failed")

    @field_validator("address", mode="before")
    @classmethod
    def _stringify_address(cls, value: Any) -> Dict[str, str]:
        # Providers mix numbers and nulls into address objects
        if not isinstance(value, dict):
            return {}
        return {
            str(key): str(item).strip()
            for key, item in value.items()
            if item is not None and not isinstance(item, (dict, list)) and str(item).strip()
        }

    @field_validator("display_name", mode="before")
    @classmethod
    def _coerce_display_name(cls, value: Any) -> str:
        return "" if value is None else str(value).strip()

    def is_empty(self) -> bool:
        """True when the result has neither address fields nor a display name."""
        return not self.address and not self.display_name


class ProcessedAddress(BaseModel):
    """Administrative fields extracted from a geocoding result."""
    country: Country
    locality_name: str = ""
    region_name: str = ""
    community_name: str = ""


class LocationPolicy(BaseModel):
    """Behaviour switches of a location session."""
    use_user_location_by_default: bool = True
    preserve_manual_input: bool = True


class LocationFlags(BaseModel):
    """Progress indicators exposed to the form."""
    is_loading_browser_location: bool = False
    is_geocoding_in_progress: bool = False


class LocationSessionState(BaseModel):
    """
    Aggregate state of one location session.

    current: field -> value (Coordinates for coordinates, int for country_id,
    str for names). sources: field -> LocationSource that last wrote it.
    Seeded values are the only entries of current without a source.
    """
    current: Dict[LocationField, Any] = Field(default_factory=dict)
    sources: Dict[LocationField, LocationSource] = Field(default_factory=dict)
    flags: LocationFlags = Field(default_factory=LocationFlags)
    policy: LocationPolicy = Field(default_factory=LocationPolicy)
