"""
Venue directory.

Curated venue data with consistent coordinates, neighborhoods and vibe tags.
Scraped venue fields are noisy (abbreviated names, wrong coordinates), so a
directory hit is authoritative over whatever the source reported.
"""

import re
from functools import lru_cache
from typing import Iterable, Optional

from rapidfuzz import fuzz, process

from .models import RawEvent, Venue


# Fuzzy match cutoff (0-100) for typo-tolerant lookups
FUZZY_CUTOFF = 90

# Queries shorter than this never fuzzy-match ("Space" vs "Spice")
FUZZY_MIN_LENGTH = 6

# Location strings that name an area, not a venue
GENERIC_LOCATIONS = {
    "miami", "miami beach", "south beach", "wynwood", "brickell", "downtown",
    "downtown miami", "midtown", "coconut grove", "coral gables",
    "little havana", "little haiti", "design district", "edgewater",
    "fort lauderdale", "hollywood", "doral", "aventura", "surfside",
    "key biscayne", "bal harbour", "sunny isles", "north miami", "las olas",
    "tba", "tbd", "various", "multiple locations", "online", "virtual",
}

SPECIFIC_VENUE_WORDS = re.compile(
    r"\b(theater|theatre|center|museum|park|arena|stadium|club|bar|"
    r"restaurant|hotel|hall|gallery)\b"
)


VENUES: list[Venue] = [
    # Nightlife
    Venue(
        id="club-space",
        name="Club Space",
        aliases=["Club Space Miami", "Club Space Terrace", "Space Miami"],
        address="34 NE 11th St, Miami, FL 33132",
        neighborhood="Downtown",
        city="Miami",
        lat=25.7858,
        lng=-80.1927,
        capacity=3000,
        vibe_tags=["massive", "legendary", "techno", "sunrise", "marathon"],
        category="club",
        website="https://clubspace.com/",
    ),
    Venue(
        id="floyd-miami",
        name="Floyd Miami",
        aliases=["Floyd", "Floyd Club"],
        address="34 NE 11th St, Miami, FL 33132",
        neighborhood="Downtown",
        city="Miami",
        lat=25.7858,
        lng=-80.1927,
        capacity=300,
        vibe_tags=["intimate", "underground", "house", "local-favorite"],
        category="club",
    ),
    Venue(
        id="gramps",
        name="Gramps",
        aliases=["Gramps Wynwood"],
        address="176 NW 24th St, Miami, FL 33127",
        neighborhood="Wynwood",
        city="Miami",
        lat=25.8002,
        lng=-80.1946,
        capacity=200,
        vibe_tags=["divey", "backyard", "local-favorite"],
        category="bar",
    ),
    # Live music
    Venue(
        id="lagniappe",
        name="Lagniappe House",
        aliases=["Lagniappe"],
        address="3425 NE 2nd Ave, Miami, FL 33137",
        neighborhood="Midtown",
        city="Miami",
        lat=25.8086,
        lng=-80.1916,
        capacity=100,
        vibe_tags=["intimate", "jazz", "wine", "backyard", "local-favorite"],
        category="bar",
    ),
    Venue(
        id="ball-and-chain",
        name="Ball & Chain",
        aliases=["Ball and Chain"],
        address="1513 SW 8th St, Miami, FL 33135",
        neighborhood="Little Havana",
        city="Miami",
        lat=25.7656,
        lng=-80.2194,
        capacity=400,
        vibe_tags=["latin", "historic", "dancing", "iconic"],
        category="bar",
    ),
    Venue(
        id="fillmore-miami-beach",
        name="Fillmore Miami Beach",
        aliases=["The Fillmore", "Fillmore Miami", "Jackie Gleason Theater"],
        address="1700 Washington Ave, Miami Beach, FL 33139",
        neighborhood="South Beach",
        city="Miami",
        lat=25.7908,
        lng=-80.1357,
        capacity=2700,
        vibe_tags=["concert-hall", "historic"],
        category="concert-hall",
    ),
    # Culture
    Venue(
        id="pamm",
        name="Pérez Art Museum Miami",
        aliases=["PAMM", "Perez Art Museum", "Miami Art Museum"],
        address="1103 Biscayne Blvd, Miami, FL 33132",
        neighborhood="Downtown",
        city="Miami",
        lat=25.7859,
        lng=-80.1863,
        capacity=500,
        vibe_tags=["museum", "waterfront", "contemporary-art"],
        category="museum",
    ),
    Venue(
        id="vizcaya",
        name="Vizcaya Museum and Gardens",
        aliases=["Vizcaya", "Vizcaya Museum & Gardens"],
        address="3251 S Miami Ave, Miami, FL 33129",
        neighborhood="Coconut Grove",
        city="Miami",
        lat=25.7445,
        lng=-80.2106,
        capacity=500,
        vibe_tags=["historic", "gardens", "waterfront", "romantic", "iconic"],
        category="museum",
    ),
    Venue(
        id="fairchild",
        name="Fairchild Tropical Botanic Garden",
        aliases=["Fairchild Garden", "Fairchild Gardens"],
        address="10901 Old Cutler Rd, Coral Gables, FL 33156",
        neighborhood="Coral Gables",
        city="Miami",
        lat=25.6773,
        lng=-80.2743,
        capacity=2000,
        vibe_tags=["gardens", "outdoor", "family-friendly"],
        category="outdoor",
    ),
    Venue(
        id="wynwood-walls",
        name="Wynwood Walls",
        aliases=["The Wynwood Walls"],
        address="2520 NW 2nd Ave, Miami, FL 33127",
        neighborhood="Wynwood",
        city="Miami",
        lat=25.8010,
        lng=-80.1994,
        vibe_tags=["street-art", "outdoor", "iconic"],
        category="outdoor",
    ),
    Venue(
        id="south-pointe-park",
        name="South Pointe Park",
        aliases=["South Pointe Park Pier", "South Pointe"],
        address="1 Washington Ave, Miami Beach, FL 33139",
        neighborhood="South Beach",
        city="Miami",
        lat=25.7654,
        lng=-80.1341,
        vibe_tags=["waterfront", "sunset", "park", "outdoor"],
        category="outdoor",
    ),
    Venue(
        id="the-standard-spa",
        name="The Standard Spa Miami Beach",
        aliases=["The Standard Miami", "Standard Spa"],
        address="40 Island Ave, Miami Beach, FL 33139",
        neighborhood="Miami Beach",
        city="Miami",
        lat=25.7925,
        lng=-80.1494,
        vibe_tags=["wellness", "bayfront", "upscale"],
        category="hotel",
    ),
    # Fort Lauderdale
    Venue(
        id="broward-center",
        name="Broward Center",
        aliases=["Broward Center for the Performing Arts", "BCPA"],
        address="201 SW 5th Ave, Fort Lauderdale, FL 33312",
        neighborhood="Downtown FLL",
        city="Fort Lauderdale",
        lat=26.1196,
        lng=-80.1487,
        capacity=2700,
        vibe_tags=["theater", "riverfront", "upscale"],
        category="theater",
    ),
    Venue(
        id="revolution-live",
        name="Revolution Live",
        aliases=["Revolution"],
        address="100 SW 3rd Ave, Fort Lauderdale, FL 33312",
        neighborhood="Downtown FLL",
        city="Fort Lauderdale",
        lat=26.1193,
        lng=-80.1464,
        capacity=1400,
        vibe_tags=["rock", "indie", "standing-room"],
        category="concert-hall",
    ),
    Venue(
        id="funky-buddha",
        name="Funky Buddha Brewery",
        aliases=["Funky Buddha", "Funky Buddha Brewery Oakland Park"],
        address="1201 NE 38th St, Oakland Park, FL 33334",
        neighborhood="Oakland Park",
        city="Fort Lauderdale",
        lat=26.1717,
        lng=-80.1323,
        capacity=600,
        vibe_tags=["craft-beer", "casual", "local-favorite"],
        category="bar",
    ),
    Venue(
        id="bonnet-house",
        name="Bonnet House Museum & Gardens",
        aliases=["Bonnet House"],
        address="900 N Birch Rd, Fort Lauderdale, FL 33304",
        neighborhood="Fort Lauderdale Beach",
        city="Fort Lauderdale",
        lat=26.1353,
        lng=-80.1056,
        vibe_tags=["historic", "gardens", "romantic"],
        category="museum",
    ),
]


def _normalize(name: str) -> str:
    return " ".join(name.lower().split())


class VenueDirectory:
    """Read-only lookup table over curated venues.

    Lookup order: exact name/alias, typo-tolerant fuzzy match, then loose
    containment for queries specific enough to avoid false hits.
    """

    def __init__(self, venues: Iterable[Venue]):
        self.venues = list(venues)
        self._by_name: dict[str, Venue] = {}
        for venue in self.venues:
            for name in [venue.name, *venue.aliases]:
                self._by_name.setdefault(_normalize(name), venue)
        self._lookups: dict[str, Optional[Venue]] = {}

    def __len__(self) -> int:
        return len(self.venues)

    def find(self, name: Optional[str]) -> Optional[Venue]:
        """Find the directory entry for a scraped venue name."""
        if not name:
            return None

        normalized = _normalize(name)
        if not normalized or normalized in GENERIC_LOCATIONS:
            return None

        exact = self._by_name.get(normalized)
        if exact:
            return exact

        if normalized not in self._lookups:
            self._lookups[normalized] = self._inexact_match(normalized)
        return self._lookups[normalized]

    def _inexact_match(self, normalized: str) -> Optional[Venue]:
        """Fuzzy then containment match; results are memoized by find()."""
        if len(normalized) >= FUZZY_MIN_LENGTH:
            match = process.extractOne(
                normalized,
                list(self._by_name),
                scorer=fuzz.ratio,
                score_cutoff=FUZZY_CUTOFF,
            )
            if match:
                return self._by_name[match[0]]

        if not self._is_specific_enough(normalized):
            return None

        for known, venue in self._by_name.items():
            if known in normalized or normalized in known:
                return venue

        return None

    def resolve_id(self, name: Optional[str]) -> Optional[str]:
        """Directory ID for a venue name, or None on a miss."""
        venue = self.find(name)
        return venue.id if venue else None

    def by_city(self, city: str) -> list[Venue]:
        return [v for v in self.venues if v.city == city]

    def by_category(self, category: str) -> list[Venue]:
        return [v for v in self.venues if v.category == category]

    def by_vibe(self, vibe: str) -> list[Venue]:
        return [v for v in self.venues if vibe in v.vibe_tags]

    def coverage(self, events: Iterable[RawEvent]) -> dict:
        """Report how many event venue names resolve against the directory."""
        total = 0
        matched = 0
        unmatched: set[str] = set()
        for event in events:
            if not event.venue_name:
                continue
            total += 1
            if self.find(event.venue_name):
                matched += 1
            else:
                unmatched.add(event.venue_name)
        return {"total": total, "matched": matched, "unmatched": sorted(unmatched)}

    @staticmethod
    def _is_specific_enough(normalized: str) -> bool:
        return len(normalized) > 15 or bool(SPECIFIC_VENUE_WORDS.search(normalized))


@lru_cache
def get_default_directory() -> VenueDirectory:
    """Directory over the built-in venue table."""
    return VenueDirectory(VENUES)
