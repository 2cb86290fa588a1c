"""
Curated recurring events.

Verified weekly happenings at Miami and Fort Lauderdale venues, expanded into
dated occurrences for the next few weeks. No network access.
"""

from datetime import date
from typing import Any, Literal, Optional

import structlog
from pydantic import BaseModel

from ..canonical import price_label_for
from ..models import City, RawEvent
from .base import weekly_occurrences
from .registry import register_source

logger = structlog.get_logger()

SOURCE_NAME = "Curated Recurring"
DEFAULT_WEEKS = 4

MON, TUE, WED, THU, FRI, SAT, SUN = range(7)


class RecurringTemplate(BaseModel):
    name: str
    venue: str
    address: str
    neighborhood: str
    city: City = "Miami"
    lat: float
    lng: float
    weekdays: list[int]
    time: str
    category: str
    description: str
    tags: list[str]
    price: float = 0
    is_outdoor: bool = False
    source_url: str
    frequency: Literal["weekly", "biweekly", "monthly"] = "weekly"


RECURRING_EVENTS: list[RecurringTemplate] = [
    RecurringTemplate(
        name="Sunday Pool Party at The Standard",
        venue="The Standard Spa Miami Beach",
        address="40 Island Ave, Miami Beach, FL 33139",
        neighborhood="Miami Beach",
        lat=25.7917, lng=-80.1574,
        weekdays=[SUN], time="12:00",
        category="Nightlife",
        description="Sunday pool party with DJs, cocktails, and Biscayne Bay views.",
        tags=["dj", "waterfront", "dancing", "local-favorite"],
        price=50, is_outdoor=True,
        source_url="https://standardhotels.com/miami",
    ),
    RecurringTemplate(
        name="Disco Domingo by Tremendo",
        venue="Gramps",
        address="176 NW 24th St, Miami, FL 33127",
        neighborhood="Wynwood",
        lat=25.8003, lng=-80.1989,
        weekdays=[SUN], time="16:00",
        category="Music",
        description=(
            "Latin disco, funk, and dance party powered by Tremendo Sound System. "
            "Daytime vibes, outdoor dancing."
        ),
        tags=["dj", "latin", "dancing", "local-favorite", "free-event"],
        is_outdoor=True,
        source_url="https://www.instagram.com/tremendosoundsystems/",
        frequency="biweekly",
    ),
    RecurringTemplate(
        name="Jazz at Lagniappe",
        venue="Lagniappe",
        address="3425 NE 2nd Ave, Miami, FL 33137",
        neighborhood="Midtown",
        lat=25.8089, lng=-80.1917,
        weekdays=[WED, THU, FRI, SAT, SUN], time="20:00",
        category="Music",
        description="Live jazz and wine bar in Midtown. Rotating musicians, cheese boards.",
        tags=["live-music", "jazz", "wine-tasting", "local-favorite"],
        is_outdoor=True,
        source_url="https://lagniappehouse.com/",
    ),
    RecurringTemplate(
        name="Salsa Night at Ball & Chain",
        venue="Ball & Chain",
        address="1513 SW 8th St, Miami, FL 33135",
        neighborhood="Little Havana",
        lat=25.7655, lng=-80.2194,
        weekdays=[THU, FRI, SAT], time="21:00",
        category="Music",
        description="Live Cuban bands and salsa dancing on Calle Ocho since 1935.",
        tags=["live-music", "latin", "dancing", "local-favorite"],
        price=10,
        source_url="https://ballandchainmiami.com/",
    ),
    RecurringTemplate(
        name="Free Second Saturdays at PAMM",
        venue="Pérez Art Museum Miami",
        address="1103 Biscayne Blvd, Miami, FL 33132",
        neighborhood="Downtown Miami",
        lat=25.7859, lng=-80.1863,
        weekdays=[SAT], time="11:00",
        category="Art",
        description="Free admission to PAMM's galleries and bayfront terrace.",
        tags=["museum", "art-gallery", "free-event", "waterfront"],
        source_url="https://www.pamm.org/",
        frequency="monthly",
    ),
    RecurringTemplate(
        name="Sunset Yoga at South Pointe Park",
        venue="South Pointe Park",
        address="1 Washington Ave, Miami Beach, FL 33139",
        neighborhood="South Beach",
        lat=25.7650, lng=-80.1340,
        weekdays=[TUE, THU], time="18:30",
        category="Fitness",
        description="Community yoga on the lawn by the pier. Bring a mat.",
        tags=["yoga", "sunset", "park", "free-event", "waterfront"],
        is_outdoor=True,
        source_url="https://www.miamibeachfl.gov/",
    ),
    RecurringTemplate(
        name="Coconut Grove Saturday Organic Market",
        venue="Coconut Grove Organic Market",
        address="3300 Grand Ave, Miami, FL 33133",
        neighborhood="Coconut Grove",
        lat=25.7280, lng=-80.2437,
        weekdays=[SAT], time="10:00",
        category="Food & Drink",
        description="Long-running organic farmers market with raw food stalls and produce.",
        tags=["food-market", "local-favorite"],
        is_outdoor=True,
        source_url="https://www.coconutgroveorganicmarket.com/",
    ),
    RecurringTemplate(
        name="Trivia Tuesday at Funky Buddha",
        venue="Funky Buddha Brewery",
        address="1201 NE 38th St, Oakland Park, FL 33334",
        neighborhood="Oakland Park",
        city="Fort Lauderdale",
        lat=26.1717, lng=-80.1323,
        weekdays=[TUE], time="19:00",
        category="Food & Drink",
        description="Team trivia in the taproom with craft beer specials.",
        tags=["craft-beer", "local-favorite"],
        source_url="https://funkybuddhabrewery.com/",
    ),
    RecurringTemplate(
        name="Las Olas Sunday Market",
        venue="Las Olas Boulevard",
        address="1000 E Las Olas Blvd, Fort Lauderdale, FL 33301",
        neighborhood="Las Olas",
        city="Fort Lauderdale",
        lat=26.1194, lng=-80.1347,
        weekdays=[SUN], time="09:00",
        category="Food & Drink",
        description="Farmers market with local produce, flowers, and prepared food.",
        tags=["food-market", "free-event"],
        is_outdoor=True,
        source_url="https://www.lasolasboulevard.com/",
    ),
    RecurringTemplate(
        name="Bonnet House Twilight Tour",
        venue="Bonnet House Museum & Gardens",
        address="900 N Birch Rd, Fort Lauderdale, FL 33304",
        neighborhood="Fort Lauderdale Beach",
        city="Fort Lauderdale",
        lat=26.1330, lng=-80.1068,
        weekdays=[THU], time="18:00",
        category="Culture",
        description="Evening guided tour of the historic estate and gardens.",
        tags=["museum", "sunset", "local-favorite"],
        price=30, is_outdoor=True,
        source_url="https://www.bonnethouse.org/",
        frequency="biweekly",
    ),
]


def expand_template(
    template: RecurringTemplate,
    weeks: int = DEFAULT_WEEKS,
    today: Optional[date] = None,
) -> list[RawEvent]:
    """Dated occurrences of one template."""
    return [
        RawEvent(
            title=template.name,
            description=template.description,
            start_at=start_at,
            venue_name=template.venue,
            address=template.address,
            neighborhood=template.neighborhood,
            lat=template.lat,
            lng=template.lng,
            city=template.city,
            category=template.category,
            tags=template.tags,
            is_outdoor=template.is_outdoor,
            price_label=price_label_for(template.price),
            price_amount=template.price,
            source_name=SOURCE_NAME,
            source_url=template.source_url,
            recurring=True,
            recurrence_pattern=template.frequency,
        )
        for start_at in weekly_occurrences(
            template.weekdays, template.time, weeks, today, template.frequency
        )
    ]


def curated_recurring(
    weeks: int = DEFAULT_WEEKS,
    today: Optional[date] = None,
    templates: Optional[list[RecurringTemplate]] = None,
) -> list[RawEvent]:
    """All curated recurring events for the next weeks."""
    events = [
        event
        for template in (templates if templates is not None else RECURRING_EVENTS)
        for event in expand_template(template, weeks, today)
    ]
    logger.info("recurring_events_generated", source=SOURCE_NAME, count=len(events), weeks=weeks)
    return events


@register_source(SOURCE_NAME)
def curated_recurring_source(config: dict[str, Any]) -> list[RawEvent]:
    weeks = config.get("sources", {}).get("recurring_weeks", DEFAULT_WEEKS)
    return curated_recurring(weeks=weeks)
