"""
Unit Tests for the Field Arbitrator.

Tests the conflict-resolution rules between location sources.
"""

import itertools
from datetime import datetime, timedelta, timezone

import pytest
from location_engine.models.source import LocationSource, LocationSourceKind, SOURCE_PRIORITIES
from location_engine.services.field_arbitrator import should_accept

ALL_KINDS = list(LocationSourceKind)


def make_source(kind: LocationSourceKind, seconds_ago: int = 0) -> LocationSource:
    return LocationSource.create(kind, datetime.now(timezone.utc) - timedelta(seconds=seconds_ago))


class TestFieldArbitrator:
    """Test suite for should_accept()."""

    @pytest.mark.parametrize("kind", ALL_KINDS)
    @pytest.mark.parametrize("preserve", [True, False])
    def test_empty_field_accepts_any_source(self, kind, preserve):
        """Test: A field with no source accepts every candidate."""
        assert should_accept(None, make_source(kind), preserve)

    @pytest.mark.parametrize("kind", ALL_KINDS)
    def test_preserved_manual_only_accepts_manual(self, kind):
        """Test: Preserved manual input rejects every non-manual candidate."""
        existing = make_source(LocationSourceKind.MANUAL, seconds_ago=60)
        accepted = should_accept(existing, make_source(kind), preserve_manual_input=True)
        assert accepted == (kind == LocationSourceKind.MANUAL)

    @pytest.mark.parametrize("existing_kind,candidate_kind", list(itertools.product(ALL_KINDS, ALL_KINDS)))
    def test_priority_ordering_without_preservation(self, existing_kind, candidate_kind):
        """Test: Without preservation, candidate wins iff priority >= existing."""
        existing = make_source(existing_kind, seconds_ago=60)
        candidate = make_source(candidate_kind)
        expected = SOURCE_PRIORITIES[candidate_kind] >= SOURCE_PRIORITIES[existing_kind]
        assert should_accept(existing, candidate, preserve_manual_input=False) == expected

    @pytest.mark.parametrize("existing_kind", [k for k in ALL_KINDS if k != LocationSourceKind.MANUAL])
    def test_preservation_does_not_affect_non_manual_fields(self, existing_kind):
        """Test: preserve_manual_input only protects manually entered values."""
        existing = make_source(existing_kind, seconds_ago=60)
        for candidate_kind in ALL_KINDS:
            candidate = make_source(candidate_kind)
            assert should_accept(existing, candidate, True) == should_accept(existing, candidate, False)

    def test_equal_priority_newer_observation_wins(self):
        """Test: Two consecutive browser fixes - the second one is accepted."""
        first = make_source(LocationSourceKind.BROWSER_LOCATION, seconds_ago=30)
        second = make_source(LocationSourceKind.BROWSER_LOCATION)
        assert should_accept(first, second, preserve_manual_input=True)

    def test_map_click_loses_to_preserved_manual(self):
        """Test: Higher numeric priority does not beat preserved manual input."""
        existing = make_source(LocationSourceKind.MANUAL, seconds_ago=60)
        assert not should_accept(existing, make_source(LocationSourceKind.MAP_CLICK), True)


class TestSourceRegistry:
    """Test suite for the fixed source priorities."""

    def test_priorities_are_fixed(self):
        assert SOURCE_PRIORITIES == {
            LocationSourceKind.MANUAL: 100,
            LocationSourceKind.MAP_CLICK: 80,
            LocationSourceKind.BROWSER_LOCATION: 60,
            LocationSourceKind.GEOCODING: 40,
        }

    @pytest.mark.parametrize("kind", ALL_KINDS)
    def test_priority_derived_from_kind(self, kind):
        """Test: A source's priority always equals the fixed priority of its kind."""
        source = make_source(kind)
        assert source.priority == SOURCE_PRIORITIES[kind]
        assert source.model_dump()["priority"] == SOURCE_PRIORITIES[kind]

    def test_source_is_immutable(self):
        source = make_source(LocationSourceKind.GEOCODING)
        with pytest.raises(Exception):
            source.kind = LocationSourceKind.MANUAL
