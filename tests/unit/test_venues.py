"""Tests for the venue directory."""

from unittest.mock import patch

import pytest
from rapidfuzz import process

from scraper.irl_events.venues import VENUES, get_default_directory


class TestFind:
    """Tests for VenueDirectory.find."""

    @pytest.mark.parametrize(
        "name,expected_id",
        [
            ("Lagniappe House", "lagniappe"),
            ("Lagniappe", "lagniappe"),
            ("  GRAMPS  ", "gramps"),
            ("Gramps Wynwood", "gramps"),
            ("Funky Buddha", "funky-buddha"),
        ],
    )
    def test_name_and_alias(self, directory, name, expected_id):
        assert directory.find(name).id == expected_id

    def test_typo_tolerant(self, directory):
        """One dropped letter still finds the venue."""
        assert directory.resolve_id("Lagniape House") == "lagniappe"

    def test_short_queries_never_fuzzy_match(self):
        assert get_default_directory().find("Spice") is None

    def test_generic_locations_rejected(self, directory):
        assert directory.find("Wynwood") is None
        assert directory.find("TBA") is None

    def test_containment_for_specific_queries(self, directory):
        assert directory.resolve_id("Funky Buddha Brewery Taproom") == "funky-buddha"

    def test_vague_containment_rejected(self, directory):
        """Short names without a venue word are not matched by containment."""
        assert directory.find("Gramp") is None

    def test_inexact_lookups_memoized(self, directory):
        """Repeated typo lookups run the fuzzy scan once."""
        with patch.object(process, "extractOne", wraps=process.extractOne) as extract:
            first = directory.find("Lagniape House")
            again = directory.find("LAGNIAPE  HOUSE")
        assert first is again
        assert first.id == "lagniappe"
        assert extract.call_count == 1

    @pytest.mark.parametrize("name", [None, "", "   "])
    def test_empty_names(self, directory, name):
        assert directory.find(name) is None
        assert directory.resolve_id(name) is None


class TestQueries:
    """Tests for filtered listings and coverage."""

    def test_by_city(self, directory):
        assert [v.id for v in directory.by_city("Fort Lauderdale")] == ["funky-buddha"]

    def test_by_category(self, directory):
        assert {v.id for v in directory.by_category("bar")} == {"gramps", "lagniappe"}

    def test_by_vibe(self, directory):
        assert [v.id for v in directory.by_vibe("jazz")] == ["lagniappe"]

    def test_coverage(self, directory, event_factory):
        events = [
            event_factory(venue_name="Lagniappe"),
            event_factory(venue_name="Nowhere Lounge"),
            event_factory(venue_name=None),
        ]
        assert directory.coverage(events) == {
            "total": 2,
            "matched": 1,
            "unmatched": ["Nowhere Lounge"],
        }


class TestDefaultDirectory:
    """Tests for the built-in venue table."""

    def test_cached(self):
        assert get_default_directory() is get_default_directory()

    def test_ids_unique(self):
        ids = [v.id for v in VENUES]
        assert len(ids) == len(set(ids))

    def test_covers_both_metros(self):
        directory = get_default_directory()
        assert directory.by_city("Miami")
        assert directory.by_city("Fort Lauderdale")

    def test_coordinates_inside_metro(self):
        for venue in VENUES:
            assert 25.1 <= venue.lat <= 26.5, venue.id
            assert -80.9 <= venue.lng <= -79.9, venue.id
