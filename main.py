"""
Main Entry Point for the Location Resolution Engine.

This module runs a single resolution pass:
1. Accepts coordinates (and optionally a country registry file)
2. Reverse geocodes them through the provider fallback chain
3. Extracts country, locality, region and community
4. Prints the resolved fields

NEVER fails on provider outage: a placeholder result is printed instead.
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from location_engine.models.geo_context import Country
from location_engine.services.address_heuristics import extract_location_fields
from location_engine.services.coordinate_utils import format_coordinates, is_valid_coordinates
from location_engine.services.fallback_chain import ReverseGeocoder


def load_countries(path: Optional[str]) -> List[Country]:
    """
    Load a country registry from a JSON file.

    Args:
        path: File containing a JSON array of {id, name, isoCode} objects

    Returns:
        List of Country (empty when path is None)

    Raises:
        ValueError: If the file is not a JSON array of countries
    """
    if not path:
        return []
    with open(path, encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, list):
        raise ValueError(f"Country registry must be a JSON array: {path}")
    return [Country.model_validate(item) for item in payload]


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Location Resolution Engine - reverse geocoding with provider fallback',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Example usage:
  python main.py --lat 50.4501 --lng 30.5234 --countries countries.json
        """
    )

    parser.add_argument(
        '--lat',
        type=float,
        required=True,
        help='Latitude in decimal degrees'
    )
    parser.add_argument(
        '--lng',
        type=float,
        required=True,
        help='Longitude in decimal degrees'
    )
    parser.add_argument(
        '--countries',
        type=str,
        default=None,
        help='JSON file with the country registry (array of {id, name, isoCode})'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print machine-readable JSON instead of a report'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Log provider attempts'
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if not is_valid_coordinates(args.lat, args.lng):
        print(f"Error: invalid coordinates {args.lat}, {args.lng}", file=sys.stderr)
        sys.exit(1)

    try:
        countries = load_countries(args.countries)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    result = asyncio.run(ReverseGeocoder().reverse_geocode(args.lat, args.lng))
    match = extract_location_fields(result, countries) if countries else None

    if args.json:
        print(json.dumps({
            "geocode": result.model_dump(),
            "match": match.model_dump() if match else None,
        }, ensure_ascii=False, indent=2))
        return

    print(f"\n{'='*70}")
    print(f"COORDINATES: {format_coordinates(args.lat, args.lng)}")
    print(f"PROVIDER: {result.provider or 'none (placeholder result)'}")
    print(f"DISPLAY NAME: {result.display_name}")
    print(f"{'='*70}")

    if not countries:
        print("\nNo country registry given (--countries); skipping field extraction.")
    elif match is None:
        print("\nCountry not found in the registry; no fields resolved.")
    else:
        print(f"\nCountry:   {match.country.name} ({match.country.iso_code})")
        print(f"Locality:  {match.locality_name or '-'}")
        print(f"Region:    {match.region_name or '-'}")
        print(f"Community: {match.community_name or '-'}")


if __name__ == "__main__":
    main()
