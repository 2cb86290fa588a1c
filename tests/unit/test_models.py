"""Tests for event data models."""

from datetime import date, datetime

import pytest
from pydantic import ValidationError

from scraper.irl_events.models import (
    DedupeResult,
    EventSource,
    IRLEvent,
    RawEvent,
)


class TestRawEvent:
    """Tests for RawEvent model."""

    def test_minimal_event(self):
        """Only title and start time are required."""
        event = RawEvent(title="Jazz Night", start_at="2026-03-05T20:00:00")
        assert event.city == "Miami"
        assert event.category == "Community"
        assert event.tags == []
        assert event.lat is None

    def test_accepts_camel_case_keys(self):
        """Source adapters may hand over camelCase dicts."""
        event = RawEvent.model_validate({
            "title": "Jazz Night",
            "startAt": "2026-03-05T20:00:00",
            "venueName": "Lagniappe",
            "priceLabel": "Free",
        })
        assert event.venue_name == "Lagniappe"
        assert event.price_label == "Free"

    def test_blank_title_rejected(self):
        """A whitespace-only title is invalid."""
        with pytest.raises(ValidationError):
            RawEvent(title="   ", start_at="2026-03-05T20:00:00")

    def test_title_is_stripped(self):
        event = RawEvent(title="  Jazz Night ", start_at="2026-03-05T20:00:00")
        assert event.title == "Jazz Night"

    def test_unparseable_start_rejected(self):
        """startAt must be ISO-8601."""
        with pytest.raises(ValidationError):
            RawEvent(title="Jazz Night", start_at="next friday-ish")

    def test_unknown_category_rejected(self):
        with pytest.raises(ValidationError):
            RawEvent(title="Jazz Night", start_at="2026-03-05T20:00:00", category="Raves")

    def test_duplicate_tags_collapsed(self):
        """Tags keep first-seen order without repeats."""
        event = RawEvent(
            title="Jazz Night",
            start_at="2026-03-05T20:00:00",
            tags=["jazz", "live-music", "jazz"],
        )
        assert event.tags == ["jazz", "live-music"]

    def test_start_date_ignores_time(self):
        event = RawEvent(title="Late Set", start_at="2026-03-05T23:59:00")
        assert event.start_date == date(2026, 3, 5)
        assert event.start_datetime == datetime(2026, 3, 5, 23, 59)

    @pytest.mark.parametrize(
        "lat,lng,expected",
        [
            (25.8, -80.19, True),
            (None, -80.19, False),
            (25.8, None, False),
            (0, 0, False),
        ],
    )
    def test_has_coordinates(self, lat, lng, expected):
        """(0, 0) counts as missing."""
        event = RawEvent(title="X Event", start_at="2026-03-05T20:00:00", lat=lat, lng=lng)
        assert event.has_coordinates is expected


class TestIRLEvent:
    """Tests for the canonical feed model."""

    def test_feed_dict_uses_camel_case_and_drops_none(self):
        event = IRLEvent(
            id="abc123",
            title="Jazz Night",
            start_at="2026-03-05T20:00:00",
            venue_name="Lagniappe House",
            source=EventSource(name="test", url="https://example.com"),
        )
        feed = event.to_feed_dict()
        assert feed["startAt"] == "2026-03-05T20:00:00"
        assert feed["venueName"] == "Lagniappe House"
        assert feed["source"] == {"name": "test", "url": "https://example.com"}
        assert "endAt" not in feed
        assert "start_at" not in feed


class TestDedupeResult:
    """Tests for DedupeResult."""

    def test_dedup_rate(self):
        result = DedupeResult(events=[], original_count=10, duplicates_removed=3)
        assert result.dedup_rate == pytest.approx(30.0)

    def test_dedup_rate_empty(self):
        result = DedupeResult(events=[], original_count=0, duplicates_removed=0)
        assert result.dedup_rate == 0.0
