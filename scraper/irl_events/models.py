"""
Pydantic models for event data structures.

These models define the core data types used throughout the scraper:
- RawEvent: A candidate event as produced by a source adapter
- IRLEvent: The canonical event persisted to the app's JSON feed
- Venue: A venue directory entry
- EventGroup / DedupeResult: Deduplication accumulator and result with audit trail
- ScrapeResult / AggregationResult: Per-source and per-run bookkeeping
"""

from datetime import date, datetime
from typing import Literal, Optional

from dateutil.parser import isoparse
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


City = Literal["Miami", "Fort Lauderdale"]
PriceLabel = Literal["Free", "$", "$$", "$$$"]

# Both metros share a timezone; start times are stored as local wall-clock strings
CITY_TIMEZONES: dict[str, str] = {
    "Miami": "America/New_York",
    "Fort Lauderdale": "America/New_York",
}

CATEGORIES = (
    "Food & Drink",
    "Music",
    "Culture",
    "Fitness",
    "Outdoors",
    "Nightlife",
    "Art",
    "Community",
    "Sports",
    "Wellness",
    "Comedy",
    "Family",
)

VALID_TAGS = (
    "live-music", "dj", "happy-hour", "brunch", "rooftop", "waterfront",
    "art-gallery", "museum", "theater", "comedy", "yoga", "running",
    "cycling", "beach", "park", "food-market", "wine-tasting", "craft-beer",
    "cocktails", "dancing", "latin", "jazz", "electronic", "hip-hop",
    "indie", "pop-up", "outdoor-dining", "sunset", "sunrise",
    "family-friendly", "dog-friendly", "free-event", "networking",
    "workshop", "fitness-class", "meditation", "local-favorite",
    "new-opening", "seasonal",
)

MIAMI_NEIGHBORHOODS = (
    "Wynwood", "Brickell", "Design District", "South Beach", "Coconut Grove",
    "Little Havana", "Midtown", "Downtown Miami", "Edgewater", "Coral Gables",
    "Key Biscayne", "Little Haiti", "Allapattah", "Overtown", "Little River",
    "North Miami", "Mid-Beach", "Surfside", "Miami Beach", "Pinecrest",
    "Miami Gardens",
)

FLL_NEIGHBORHOODS = (
    "Las Olas", "Downtown FLL", "Fort Lauderdale Beach", "Flagler Village",
    "Victoria Park", "Wilton Manors", "Harbor Beach", "Rio Vista",
    "Lauderdale-By-The-Sea", "Oakland Park",
)


class CamelModel(BaseModel):
    """Base model serializing to the camelCase keys used by the app."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RawEvent(CamelModel):
    """A candidate event from one source, before deduplication."""

    # Core event info
    title: str
    description: str = ""

    # Timing (ISO-8601 local timestamps, never timezone-converted)
    start_at: str
    end_at: Optional[str] = None

    # Location
    venue_name: Optional[str] = None
    address: Optional[str] = None
    neighborhood: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    city: City = "Miami"

    # Classification
    category: str = "Community"
    tags: list[str] = Field(default_factory=list)
    is_outdoor: bool = False

    # Details
    price_label: Optional[PriceLabel] = None
    price_amount: Optional[float] = None
    ticket_url: Optional[str] = None
    image: Optional[str] = None

    # Source tracking
    source_name: str = "unknown"
    source_url: Optional[str] = None

    # Recurrence
    recurring: bool = False
    recurrence_pattern: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be empty")
        return value

    @field_validator("start_at", "end_at")
    @classmethod
    def _parseable_timestamp(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            isoparse(value)
        except (ValueError, OverflowError) as e:
            raise ValueError(f"not an ISO-8601 timestamp: {value!r}") from e
        return value

    @field_validator("category")
    @classmethod
    def _known_category(cls, value: str) -> str:
        if value not in CATEGORIES:
            raise ValueError(f"unknown category: {value!r}")
        return value

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))

    @property
    def start_datetime(self) -> datetime:
        """Parsed start time (naive unless the source supplied an offset)."""
        return isoparse(self.start_at)

    @property
    def start_date(self) -> date:
        """Calendar day of the start time, ignoring time-of-day."""
        return self.start_datetime.date()

    @property
    def has_coordinates(self) -> bool:
        """True when both coordinates are set and not the (0, 0) placeholder."""
        if self.lat is None or self.lng is None:
            return False
        return not (self.lat == 0 and self.lng == 0)


class EventSource(CamelModel):
    """Attribution link for a canonical event."""

    name: str
    url: str


class EditorialCopy(BaseModel):
    """Editorial copy for an event: a one-line hook and a longer blurb."""

    short_why: str = ""
    editorial_why: str = ""


class IRLEvent(RawEvent):
    """Canonical event in the app's feed schema."""

    id: str
    timezone: str = "America/New_York"
    venue_id: Optional[str] = None
    series_id: Optional[str] = None
    series_name: Optional[str] = None
    editor_pick: bool = False
    short_why: str = ""
    editorial_why: str = ""
    source: Optional[EventSource] = None

    def to_feed_dict(self) -> dict:
        """Serialize with camelCase keys, dropping unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Venue(CamelModel):
    """A curated venue directory entry."""

    id: str
    name: str
    aliases: list[str] = Field(default_factory=list)
    address: str
    neighborhood: str
    city: City
    lat: float
    lng: float
    capacity: Optional[int] = None
    vibe_tags: list[str] = Field(default_factory=list)
    category: str = "other"  # club, bar, theater, museum, outdoor, ...
    website: Optional[str] = None
    image_url: Optional[str] = None


class EventGroup(BaseModel):
    """Accumulator for candidates judged to describe one real event.

    The anchor is replaced by the merged record each time a duplicate is
    folded in. members records every contributing candidate, with the
    first candidate leading.
    """

    key: str
    anchor: RawEvent
    members: list[RawEvent] = Field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.members)


class DuplicateMatch(BaseModel):
    """Records a duplicate match for audit trail."""

    kept_title: str
    merged_title: str
    merged_source: str
    rule: str  # exact_key, title, venue_title, venue_time, artist
    title_similarity: float
    reason: str


class DedupeResult(BaseModel):
    """Result of deduplication with audit trail."""

    events: list[RawEvent]
    groups: list[EventGroup] = Field(default_factory=list)
    original_count: int
    duplicates_removed: int
    audit_trail: list[DuplicateMatch] = Field(default_factory=list)

    @computed_field
    @property
    def dedup_rate(self) -> float:
        """Percentage of candidates that were duplicates."""
        if self.original_count == 0:
            return 0.0
        return self.duplicates_removed / self.original_count * 100


class ScrapeResult(BaseModel):
    """Outcome of running one source adapter."""

    source: str
    count: int = 0
    status: str = "success"  # success, error, skipped
    errors: list[str] = Field(default_factory=list)
    duration_ms: Optional[int] = None
    scraped_at: datetime = Field(default_factory=datetime.now)


class ValidationReport(BaseModel):
    """What the data-quality checks dropped or changed."""

    total_in: int = 0
    total_out: int = 0
    blocked_by_date: int = 0
    coordinates_cleared: int = 0
    categories_fixed: int = 0


class AggregationStats(BaseModel):
    """Counts for one aggregation run."""

    total: int
    invalid: int
    deduplicated: int
    by_source: dict[str, int] = Field(default_factory=dict)


class AggregationResult(BaseModel):
    """Canonical events plus per-source bookkeeping for one run."""

    events: list[IRLEvent]
    results: list[ScrapeResult]
    stats: AggregationStats
    validation: ValidationReport = Field(default_factory=ValidationReport)
