"""
Data-quality checks run on schema-valid candidates before deduplication.

Checks, cheapest first:
- Date sanity: events starting before today, or more than max_future_days
  ahead, are dropped
- Coordinate bounds: coordinates outside the Miami / Fort Lauderdale box are
  cleared, leaving the venue for location verification to geocode
- Category repair: a category none of whose keywords appear in the title or
  description is replaced by the first category whose keywords do
"""

from datetime import date, timedelta
from typing import Iterable, Optional

import structlog

from .enrichment.geocoding import in_metro_bounds
from .models import RawEvent, ValidationReport
from .sources.base import CATEGORY_KEYWORDS, mentions

logger = structlog.get_logger()

# Furthest accepted start day, counted from today
MAX_FUTURE_DAYS = 730


def date_is_sane(
    event: RawEvent, today: date, max_future_days: int = MAX_FUTURE_DAYS
) -> bool:
    """Whether the event starts between today and max_future_days from today."""
    return today <= event.start_date <= today + timedelta(days=max_future_days)


def clear_out_of_bounds(event: RawEvent) -> RawEvent:
    """Copy of event without coordinates if they fall outside the metro box."""
    if not event.has_coordinates or in_metro_bounds(event.lat, event.lng):
        return event
    return event.model_copy(update={"lat": None, "lng": None})


def fix_category(event: RawEvent) -> RawEvent:
    """
    Reassign a category that nothing in the title or description supports.

    The category is kept when one of its keywords appears, or when no other
    category's keywords do.
    """
    text = f" {event.title} {event.description} ".lower()
    keywords = CATEGORY_KEYWORDS.get(event.category)
    if keywords and mentions(text, keywords):
        return event

    for category, candidate_keywords in CATEGORY_KEYWORDS.items():
        if category != event.category and mentions(text, candidate_keywords):
            return event.model_copy(update={"category": category})
    return event


def validate_events(
    events: Iterable[RawEvent],
    today: Optional[date] = None,
    max_future_days: int = MAX_FUTURE_DAYS,
    fix_categories: bool = True,
) -> tuple[list[RawEvent], ValidationReport]:
    """
    Run every check over a batch.

    Args:
        events: Schema-valid candidates
        today: Reference day for the date window (default: today)
        max_future_days: Furthest start day accepted, counted from today
        fix_categories: Whether to repair unsupported categories

    Returns:
        Tuple of (kept events in input order, report)
    """
    today = today or date.today()
    events = list(events)
    report = ValidationReport(total_in=len(events))
    kept: list[RawEvent] = []

    for event in events:
        if not date_is_sane(event, today, max_future_days):
            report.blocked_by_date += 1
            logger.debug("event_blocked_by_date", title=event.title, start_at=event.start_at)
            continue

        checked = clear_out_of_bounds(event)
        if checked is not event:
            report.coordinates_cleared += 1
            logger.debug(
                "coordinates_out_of_bounds", title=event.title, lat=event.lat, lng=event.lng
            )

        if fix_categories:
            fixed = fix_category(checked)
            if fixed.category != checked.category:
                report.categories_fixed += 1
                logger.debug(
                    "category_fixed",
                    title=event.title,
                    old=checked.category,
                    new=fixed.category,
                )
            checked = fixed

        kept.append(checked)

    report.total_out = len(kept)
    logger.info("validation_complete", **report.model_dump())
    return kept, report
