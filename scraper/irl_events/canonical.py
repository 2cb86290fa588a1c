"""
Canonicalization of merged events into the app's feed schema.

Assigns stable IDs, resolves venues against the directory, links recurring
series, derives price labels and ticket links, flags editor picks and fills
placeholder editorial copy that the enrichment stage may later replace.
"""

import hashlib
import random
from typing import Iterable, Optional, Sequence

import structlog
from jinja2 import Environment

from .models import CITY_TIMEZONES, EditorialCopy, EventSource, IRLEvent, RawEvent
from .venues import VenueDirectory, get_default_directory

logger = structlog.get_logger()


DEFAULT_SEED = 0

# Directory vibe tags are only added until an event carries this many tags
MAX_TAGS_WITH_VIBES = 6

# Notable names per metro; a substring hit in title or venue marks an editor pick
EDITOR_PICK_NAMES: dict[str, tuple[str, ...]] = {
    "Miami": (
        "Lagniappe",
        "Ball & Chain",
        "Smorgasburg",
        "Wynwood Walls",
        "PAMM",
        "Vizcaya",
        "Fairchild",
    ),
    "Fort Lauderdale": (
        "Bonnet House",
        "Broward Center",
        "Funky Buddha",
        "Revolution Live",
    ),
}

SHORT_WHY_TEMPLATES: dict[str, list[str]] = {
    "Music": [
        "Live sounds in one of {{ city }}'s best spots.",
        "Get your music fix with locals who know.",
        "The kind of night {{ city }} does best.",
    ],
    "Food & Drink": [
        "Taste what makes {{ city }}'s food scene special.",
        "Local flavors and community vibes.",
        "Fresh, local, and full of character.",
    ],
    "Fitness": [
        "Move your body with {{ city }}'s fitness community.",
        "Free workout with good people.",
        "Start your day right with locals.",
    ],
    "Wellness": [
        "Find your calm in {{ city }}.",
        "Wellness the South Florida way.",
        "Reset and recharge.",
    ],
    "Sports": [
        "Cheer on {{ city }}'s finest.",
        "Game day energy at its peak.",
        "Nothing beats live sports.",
    ],
    "Art": [
        "See what {{ city }}'s art scene is about.",
        "Culture in full color.",
        "Art worth the trip.",
    ],
    "Culture": [
        "Dive into {{ city }}'s cultural richness.",
        "History and culture, {{ city }}-style.",
        "Experience local heritage.",
    ],
    "Community": [
        "Connect with the {{ city }} community.",
        "Local vibes, real connections.",
        "Where {{ city }} comes together.",
    ],
}

EDITORIAL_WHY_TEMPLATE = (
    "{{ description }}"
    "{% if venue_name and neighborhood %}"
    " Located in {{ neighborhood }}, {{ venue_name }} is a local favorite."
    "{% endif %}"
    "{% if price_label == 'Free' %} Best of all, it's free.{% endif %}"
)

# Plain-text copy, so no HTML autoescaping
_env = Environment(autoescape=False)
_editorial_template = _env.from_string(EDITORIAL_WHY_TEMPLATE)


def short_hash(value: str, length: int) -> str:
    """Truncated md5 hex digest."""
    return hashlib.md5(value.encode()).hexdigest()[:length]


def generate_event_id(title: str, start_at: str, place: Optional[str]) -> str:
    """Stable event ID from title, start time and venue (or neighborhood)."""
    return short_hash(f"{title}|{start_at}|{place or ''}", 16)


def generate_series_id(title: str, place: Optional[str]) -> str:
    """Series ID shared by every occurrence of a recurring event."""
    return short_hash(f"{title}|{place or ''}", 12)


def generate_venue_id(venue_name: str) -> str:
    """Unverified venue identity for names missing from the directory."""
    return short_hash(venue_name.lower(), 12)


def price_label_for(amount: float) -> str:
    """Price bucket for a ticket price in dollars."""
    if amount <= 0:
        return "Free"
    if amount <= 25:
        return "$"
    if amount <= 75:
        return "$$"
    return "$$$"


def choose_template(templates: Sequence[str], rng: random.Random) -> str:
    """Pick one template; callers pass a seeded generator for repeatable output."""
    return rng.choice(list(templates))


def default_short_why(event: RawEvent, rng: random.Random) -> str:
    """Category hook picked from the template pool."""
    pool = SHORT_WHY_TEMPLATES.get(event.category, SHORT_WHY_TEMPLATES["Community"])
    return _env.from_string(choose_template(pool, rng)).render(city=event.city)


def default_editorial_why(event: RawEvent) -> str:
    """Description followed by venue and price context."""
    return _editorial_template.render(
        description=event.description,
        venue_name=event.venue_name,
        neighborhood=event.neighborhood,
        price_label=event.price_label,
    ).strip()


def is_editor_pick(event: RawEvent) -> bool:
    """Local favorites and events at notable venues."""
    if "local-favorite" in event.tags:
        return True
    haystacks = [event.title.lower(), (event.venue_name or "").lower()]
    return any(
        name.lower() in haystack
        for name in EDITOR_PICK_NAMES.get(event.city, ())
        for haystack in haystacks
    )


def _is_priced(event: RawEvent) -> bool:
    if event.price_label in ("$", "$$", "$$$"):
        return True
    return bool(event.price_amount and event.price_amount > 0)


def _union_vibe_tags(tags: list[str], vibe_tags: list[str]) -> list[str]:
    room = max(0, MAX_TAGS_WITH_VIBES - len(tags))
    extra = [tag for tag in vibe_tags if tag not in tags][:room]
    return [*tags, *extra]


def resolve_venue(
    event: RawEvent, directory: VenueDirectory
) -> tuple[RawEvent, Optional[str]]:
    """
    Apply directory data to an event.

    Returns:
        Tuple of (event with directory fields applied, venue_id). On a miss
        the event is unchanged and the ID is a hash of the scraped name, or
        None when the event names no venue.
    """
    venue = directory.find(event.venue_name)
    if venue is None:
        venue_id = generate_venue_id(event.venue_name) if event.venue_name else None
        return event, venue_id

    resolved = event.model_copy(update={
        "venue_name": venue.name,
        "address": venue.address,
        "neighborhood": venue.neighborhood,
        "lat": venue.lat,
        "lng": venue.lng,
        "tags": _union_vibe_tags(event.tags, venue.vibe_tags),
        "image": event.image or venue.image_url,
    })
    return resolved, venue.id


def canonicalize(
    merged: RawEvent,
    directory: Optional[VenueDirectory] = None,
    editorial: Optional[EditorialCopy] = None,
    rng: Optional[random.Random] = None,
    seed: int = DEFAULT_SEED,
) -> IRLEvent:
    """
    Turn a merged candidate into a canonical feed event.

    Args:
        merged: Output record of the merge engine
        directory: Venue directory (default: built-in)
        editorial: Generated copy; missing parts fall back to templates
        rng: Generator for template picks (default: seeded from the event ID)
        seed: Seed mixed into the per-event generator when rng is not given

    Returns:
        IRLEvent with stable id, venue and series identity
    """
    directory = directory or get_default_directory()
    event, venue_id = resolve_venue(merged, directory)

    if event.price_label is None and event.price_amount is not None:
        event = event.model_copy(update={"price_label": price_label_for(event.price_amount)})

    place = event.venue_name or event.neighborhood
    event_id = generate_event_id(event.title, event.start_at, place)

    series_id = series_name = None
    if event.recurring:
        series_id = generate_series_id(event.title, place)
        series_name = event.title

    rng = rng or random.Random(f"{seed}:{event_id}")
    short_why = editorial.short_why if editorial and editorial.short_why else None
    editorial_why = editorial.editorial_why if editorial and editorial.editorial_why else None

    ticket_url = event.ticket_url
    if not ticket_url and _is_priced(event):
        ticket_url = event.source_url

    fields = event.model_dump(exclude={"ticket_url"})
    fields["neighborhood"] = event.neighborhood or event.city

    return IRLEvent(
        **fields,
        id=event_id,
        timezone=CITY_TIMEZONES[event.city],
        venue_id=venue_id,
        series_id=series_id,
        series_name=series_name,
        editor_pick=is_editor_pick(event),
        short_why=short_why or default_short_why(event, rng),
        editorial_why=editorial_why or default_editorial_why(event),
        ticket_url=ticket_url,
        source=(
            EventSource(name=event.source_name, url=event.source_url)
            if event.source_url else None
        ),
    )


def canonicalize_all(
    events: Iterable[RawEvent],
    directory: Optional[VenueDirectory] = None,
    seed: int = DEFAULT_SEED,
) -> list[IRLEvent]:
    """Canonicalize a batch of merged events."""
    directory = directory or get_default_directory()
    events = list(events)
    canonical = [canonicalize(e, directory, seed=seed) for e in events]

    coverage = directory.coverage(events)
    logger.info(
        "canonicalization_complete",
        events=len(canonical),
        venues_matched=coverage["matched"],
        venues_total=coverage["total"],
        series=len({e.series_id for e in canonical if e.series_id}),
        editor_picks=sum(1 for e in canonical if e.editor_pick),
    )
    return canonical
