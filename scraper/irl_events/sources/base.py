"""Helpers shared by source adapters."""

import html
import re
from datetime import date, datetime, timedelta
from typing import Optional

from ..canonical import price_label_for

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "Music": ("concert", "music", "dj", "band", "live music", "jazz", "vinyl"),
    "Art": ("art", "gallery", "exhibition", "museum"),
    "Culture": ("culture", "theater", "theatre", "dance", "ballet", "film", "cinema"),
    "Food & Drink": (
        "food", "drink", "wine", "beer", "cocktail", "dining", "brunch",
        "tasting", "chef", "market",
    ),
    "Fitness": ("fitness", "yoga", "pilates", "running", "cycling", "workout", "run club"),
    "Wellness": ("wellness", "meditation", "mindfulness", "spa", "breathwork"),
    "Sports": ("game", "match", "tournament", "basketball", "soccer", " vs "),
    "Comedy": ("comedy", "stand-up", "improv"),
    "Family": ("family", "kids", "children"),
    "Community": ("community", "social", "networking", "meetup"),
    "Nightlife": ("nightlife", "club", "party"),
    "Outdoors": ("outdoor", "park", "beach", "garden", "nature", "hike"),
}

TAG_KEYWORDS: dict[str, tuple[str, ...]] = {
    "live-music": ("live music", "live band", "concert"),
    "dj": ("dj", "vinyl"),
    "happy-hour": ("happy hour",),
    "brunch": ("brunch",),
    "rooftop": ("rooftop",),
    "waterfront": ("waterfront", "bay", "ocean", "marina"),
    "art-gallery": ("gallery", "exhibition"),
    "museum": ("museum",),
    "theater": ("theater", "theatre"),
    "comedy": ("comedy", "stand-up"),
    "yoga": ("yoga",),
    "running": ("run club", "running", "5k"),
    "beach": ("beach",),
    "park": ("park",),
    "food-market": ("farmers market", "food market", "smorgasburg"),
    "wine-tasting": ("wine",),
    "craft-beer": ("craft beer", "brewery"),
    "cocktails": ("cocktail", "mixology"),
    "dancing": ("dancing", "dance party", "salsa"),
    "latin": ("latin", "salsa", "bachata", "reggaeton"),
    "jazz": ("jazz",),
    "electronic": ("electronic", "techno", "house music"),
    "sunset": ("sunset",),
    "family-friendly": ("family", "kids"),
    "free-event": ("free",),
    "workshop": ("workshop", "class"),
    "meditation": ("meditation",),
}

OUTDOOR_KEYWORDS = (
    "outdoor", "outside", "park", "beach", "garden", "patio", "rooftop",
    "pool", "waterfront", "open air",
)

MAX_SOURCE_TAGS = 5


def mentions(text: str, keywords: tuple[str, ...]) -> bool:
    """Whole-word keyword hit, so "art" does not match "party"."""
    return any(re.search(rf"\b{re.escape(k.strip())}\b", text) for k in keywords)


def clean_text(text: Optional[str]) -> str:
    """Unescape HTML entities and collapse whitespace."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", html.unescape(text)).strip()


def parse_price(text: Optional[str]) -> tuple[Optional[str], Optional[float]]:
    """
    Price label and amount from free text such as "$15 advance" or "Free entry".

    Returns:
        (label, amount); (None, None) when no price is stated
    """
    if not text:
        return None, None
    lower = text.lower()
    if "free" in lower:
        return "Free", 0.0
    match = re.search(r"\$\s?(\d+(?:\.\d{1,2})?)", text)
    if not match:
        return None, None
    amount = float(match.group(1))
    return price_label_for(amount), amount


def categorize(title: str, description: str = "", venue: str = "") -> str:
    """First category whose keywords appear in the text, else Community."""
    text = f" {title} {description} {venue} ".lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if mentions(text, keywords):
            return category
    return "Community"


def generate_tags(title: str, description: str, category: str) -> list[str]:
    text = f"{title} {description}".lower()
    tags = [tag for tag, keywords in TAG_KEYWORDS.items() if mentions(text, keywords)]
    if category == "Music" and "live-music" not in tags and "dj" not in tags:
        tags.append("live-music")
    return tags[:MAX_SOURCE_TAGS]


def looks_outdoor(title: str, description: str = "", venue: str = "") -> bool:
    text = f"{title} {description} {venue}".lower()
    return mentions(text, OUTDOOR_KEYWORDS)


def weekly_occurrences(
    weekdays: list[int],
    time: str,
    weeks: int,
    today: Optional[date] = None,
    frequency: str = "weekly",
) -> list[str]:
    """
    Local start timestamps of a recurring event after today.

    Args:
        weekdays: Days of the week, Monday = 0
        time: Local start time "HH:MM"
        weeks: Number of weeks to generate, starting with the current one
        today: Reference day (default: today)
        frequency: "weekly", "biweekly" (every other week) or "monthly"
            (every fourth week)

    Returns:
        Sorted ISO-8601 local timestamps, today excluded
    """
    today = today or date.today()
    step = {"weekly": 1, "biweekly": 2, "monthly": 4}.get(frequency, 1)
    starts = []
    for week in range(0, weeks, step):
        week_start = today + timedelta(days=7 * week)
        for weekday in weekdays:
            days_until = (weekday - week_start.weekday()) % 7
            if week == 0 and days_until == 0:
                continue
            day = week_start + timedelta(days=days_until)
            starts.append(f"{day.isoformat()}T{time}:00")
    return sorted(starts, key=datetime.fromisoformat)
