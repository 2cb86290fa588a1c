"""Shared pytest fixtures for scraper tests."""

from typing import Any

import pytest

from scraper.irl_events.canonical import canonicalize
from scraper.irl_events.models import IRLEvent, RawEvent, Venue
from scraper.irl_events.venues import VenueDirectory


def make_event(**overrides: Any) -> RawEvent:
    """Build a RawEvent with sensible defaults."""
    fields: dict[str, Any] = {
        "title": "Jazz Night",
        "start_at": "2026-03-05T20:00:00",
        "venue_name": "Lagniappe House",
        "neighborhood": "Midtown",
        "city": "Miami",
        "category": "Music",
        "source_name": "test",
    }
    fields.update(overrides)
    return RawEvent(**fields)


@pytest.fixture
def gramps_venue() -> Venue:
    """Provide the Gramps directory entry."""
    return Venue(
        id="gramps",
        name="Gramps",
        aliases=["Gramps Wynwood"],
        address="176 NW 24th St, Miami, FL 33127",
        neighborhood="Wynwood",
        city="Miami",
        lat=25.8002,
        lng=-80.1946,
        vibe_tags=["divey", "backyard", "local-favorite"],
        category="bar",
    )


@pytest.fixture
def directory(gramps_venue: Venue) -> VenueDirectory:
    """Provide a small venue directory."""
    return VenueDirectory([
        gramps_venue,
        Venue(
            id="lagniappe",
            name="Lagniappe House",
            aliases=["Lagniappe"],
            address="3425 NE 2nd Ave, Miami, FL 33137",
            neighborhood="Midtown",
            city="Miami",
            lat=25.8086,
            lng=-80.1916,
            vibe_tags=["intimate", "jazz", "wine"],
            category="bar",
        ),
        Venue(
            id="funky-buddha",
            name="Funky Buddha Brewery",
            aliases=["Funky Buddha"],
            address="1201 NE 38th St, Oakland Park, FL 33334",
            neighborhood="Oakland Park",
            city="Fort Lauderdale",
            lat=26.1717,
            lng=-80.1323,
            vibe_tags=["craft-beer", "casual"],
            category="brewery",
        ),
    ])


@pytest.fixture
def sample_event() -> RawEvent:
    """Provide a sample candidate."""
    return make_event(
        description="Live jazz in the backyard",
        tags=["jazz", "live-music"],
        price_amount=0,
        source_url="https://lagniappehouse.com/",
    )


@pytest.fixture
def sample_candidates() -> list[RawEvent]:
    """Provide candidates from several sources including duplicates."""
    return [
        make_event(
            title="Jazz Night",
            venue_name="Lagniappe House",
            description="short",
            source_name="venue-site",
        ),
        make_event(
            title="Jazz Night",
            venue_name="Lagniappe",
            description="A much longer description of the event with rotating musicians.",
            source_name="listing",
        ),
        make_event(
            title="DJ Nightfall Live at Gramps",
            start_at="2026-03-06T22:00:00",
            venue_name="Gramps",
            neighborhood="Wynwood",
            lat=25.8002,
            lng=-80.1946,
            source_name="ticketing",
        ),
        make_event(
            title="DJ Nightfall",
            start_at="2026-03-06T23:00:00",
            venue_name="Gramps Wynwood",
            neighborhood="Wynwood",
            source_name="instagram",
        ),
        make_event(
            title="Trivia Night",
            start_at="2026-04-01T19:00:00",
            venue_name="Funky Buddha",
            neighborhood="Oakland Park",
            city="Fort Lauderdale",
            category="Community",
            source_name="venue-site",
        ),
        make_event(
            title="Brewery Tour",
            start_at="2026-04-01T13:00:00",
            venue_name="Funky Buddha",
            neighborhood="Oakland Park",
            city="Fort Lauderdale",
            category="Food & Drink",
            source_name="venue-site",
        ),
    ]


@pytest.fixture
def canonical_event(sample_event: RawEvent, directory: VenueDirectory) -> IRLEvent:
    """Provide a canonicalized event."""
    return canonicalize(sample_event, directory)


@pytest.fixture
def event_factory():
    """Provide a RawEvent builder taking field overrides."""
    return make_event
