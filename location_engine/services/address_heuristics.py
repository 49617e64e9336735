"""
Address Heuristics.

Extracts country, locality, region and community names from a normalized
reverse-geocoding result.

Country matching is STRICT: if the raw country value cannot be matched to
the caller's registry, the whole result is discarded (returns None). The
engine never guesses a country.
"""

import re
import logging
from typing import Dict, List, Optional, Sequence, Tuple

import pycountry_convert as pc

from location_engine.models.geo_context import Country, NormalizedGeocodeResult, ProcessedAddress

logger = logging.getLogger(__name__)

UNKNOWN_PLACE_LABEL = "Unknown place"

# ISO alpha-2 -> lower-case name variants (English, Ukrainian, alpha-2, alpha-3)
COUNTRY_ALIASES: Dict[str, Tuple[str, ...]] = {
    "UA": ("ukraine", "україна", "ua", "ukr"),
    "PL": ("poland", "польща", "pl", "pol"),
    "DE": ("germany", "німеччина", "de", "ger", "deu"),
    "RO": ("romania", "румунія", "ro", "rou"),
    "HU": ("hungary", "угорщина", "hu", "hun"),
    "SK": ("slovakia", "словаччина", "sk", "svk"),
    "CZ": ("czech republic", "czechia", "чехія", "cz", "cze"),
    "MD": ("moldova", "молдова", "md", "mda"),
    "BY": ("belarus", "білорусь", "by", "blr"),
    "LT": ("lithuania", "литва", "lt", "ltu"),
    "LV": ("latvia", "латвія", "lv", "lva"),
    "EE": ("estonia", "естонія", "ee", "est"),
}

ALL_COUNTRY_ALIASES = frozenset(alias for aliases in COUNTRY_ALIASES.values() for alias in aliases)

# Words that mark a display-name token as a street rather than a settlement
STREET_WORDS = (
    "вулиця",
    "провулок",
    "проспект",
    "бульвар",
    "площа",
    "street",
    "road",
    "avenue",
)

# Settlement fields, most specific first
PRIMARY_LOCALITY_KEYS = ("city", "town", "village", "hamlet", "locality")
SECONDARY_LOCALITY_KEYS = ("municipality", "suburb", "city_district", "county")

REGION_KEYS = ("state", "region", "province", "county", "ISO3166-2-lvl4", "addr:state")
COMMUNITY_KEYS = (
    "municipality",
    "city_district",
    "district",
    "suburb",
    "addr:district",
    "addr:subdistrict",
    "county",
)

COORDINATE_TOKEN = re.compile(r"^-?\d+\.\d+")
LEADING_DIGIT = re.compile(r"^\d+")


def _first_present(address: Dict[str, str], keys: Sequence[str]) -> str:
    for key in keys:
        value = (address.get(key) or "").strip()
        if value:
            return value
    return ""


def _split_display_name(display_name: str) -> List[str]:
    return [part.strip() for part in display_name.split(",")]


def _is_country_token(token: str) -> bool:
    return token.strip().lower() in ALL_COUNTRY_ALIASES


def _looks_like_street(token: str) -> bool:
    lowered = token.lower()
    return bool(LEADING_DIGIT.match(token)) or any(word in lowered for word in STREET_WORDS)


def _iso_name(code: str) -> Optional[str]:
    try:
        return pc.country_alpha2_to_country_name(code.upper())
    except KeyError:
        return None


def _iso_code(name: str) -> Optional[str]:
    try:
        return pc.country_name_to_country_alpha2(name)
    except KeyError:
        return None


def match_country(raw_value: str, countries: Sequence[Country]) -> Optional[Country]:
    """
    Match a raw provider country value against the caller's registry.

    A candidate matches when (case-insensitively) its ISO code equals the
    raw value, its name equals or (for values longer than 3 characters)
    contains the raw value, the raw value is a known alias of its code, or
    the ISO database maps the raw name/code onto the candidate.

    Args:
        raw_value: Country name or code as returned by a provider
        countries: Caller-supplied registry, searched in order

    Returns:
        Matching Country, or None
    """
    needle = (raw_value or "").strip()
    if not needle:
        return None
    needle_lower = needle.lower()

    # ISO database lookups, both directions
    iso_code_for_name = _iso_code(needle) if len(needle) > 3 else None
    iso_name_for_code = _iso_name(needle) if len(needle) == 2 else None

    for country in countries:
        code_lower = country.iso_code.strip().lower()
        name_lower = country.name.strip().lower()

        if code_lower == needle_lower or name_lower == needle_lower:
            return country
        if len(needle_lower) > 3 and needle_lower in name_lower:
            return country
        if needle_lower in COUNTRY_ALIASES.get(code_lower.upper(), ()):
            return country
        if iso_code_for_name and iso_code_for_name.lower() == code_lower:
            return country
        if iso_name_for_code and iso_name_for_code.lower() == name_lower:
            return country

    return None


def extract_locality(address: Dict[str, str], display_name: str) -> str:
    """
    Pick the settlement name.

    Order: primary settlement fields, secondary administrative fields, then
    a token scan of the display name, then the last-token fallback.
    """
    locality = _first_present(address, PRIMARY_LOCALITY_KEYS)
    if locality:
        return locality

    locality = _first_present(address, SECONDARY_LOCALITY_KEYS)
    if locality:
        return locality

    if not display_name:
        return UNKNOWN_PLACE_LABEL

    parts = _split_display_name(display_name)

    # Typical layout: [street], settlement, district, region, country
    if len(parts) >= 2:
        start_index = 1 if parts[0] and _looks_like_street(parts[0]) else 0
        for part in parts[start_index:]:
            if not part:
                continue
            if COORDINATE_TOKEN.match(part) or _is_country_token(part):
                continue
            if len(part) > 2:
                return part

    last_part = parts[-1] if parts else ""
    second_last_part = parts[-2] if len(parts) >= 2 else ""
    if _is_country_token(last_part):
        return second_last_part or UNKNOWN_PLACE_LABEL
    return last_part or UNKNOWN_PLACE_LABEL


def extract_region(address: Dict[str, str]) -> str:
    """First non-empty of state, region, province, county (plus OSM extras)."""
    return _first_present(address, REGION_KEYS)


def extract_community(address: Dict[str, str], region_name: str) -> str:
    """First non-empty sub-region field that differs from the chosen region."""
    for key in COMMUNITY_KEYS:
        value = (address.get(key) or "").strip()
        if value and value != region_name:
            return value
    return ""


def extract_location_fields(
    result: NormalizedGeocodeResult,
    countries: Sequence[Country],
) -> Optional[ProcessedAddress]:
    """
    Extract administrative fields from a normalized geocoding result.

    Pure and deterministic. The only failure path is an unmatched country.

    Args:
        result: Normalized provider result
        countries: Caller-supplied country registry (never mutated)

    Returns:
        ProcessedAddress, or None if the country cannot be matched
    """
    address = result.address
    raw_country = address.get("country") or address.get("country_code") or ""
    if not raw_country:
        logger.warning(f"No country in geocoding result: {result.display_name or address}")
        return None

    country = match_country(raw_country, countries)
    if country is None:
        logger.warning(
            f"Country '{raw_country}' not found among available countries: "
            f"{[f'{c.name} ({c.iso_code})' for c in countries]}"
        )
        return None

    region_name = extract_region(address)
    processed = ProcessedAddress(
        country=country,
        locality_name=extract_locality(address, result.display_name).strip(),
        region_name=region_name,
        community_name=extract_community(address, region_name),
    )
    logger.debug(f"Extracted location fields: {processed.model_dump()}")
    return processed
