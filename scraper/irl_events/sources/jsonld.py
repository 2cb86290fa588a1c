"""
schema.org Event extraction from venue and listing pages.

Cost: Free (uses httpx + BeautifulSoup)
Use Case: Venue calendars and ticketing pages that embed JSON-LD

Pages are configured under sources.jsonld as {"url", "name", "city"}.
Extracted records are returned as camelCase dicts and validated by the
aggregator like any other candidate.
"""

import json
from typing import Any, Iterator, Optional

import httpx
import structlog
from bs4 import BeautifulSoup
from dateutil import tz
from dateutil.parser import isoparse

from ..models import CITY_TIMEZONES
from .base import categorize, clean_text, generate_tags, looks_outdoor, parse_price
from .registry import register_source
from .url_validator import validate_scrape_url

logger = structlog.get_logger()

SOURCE_NAME = "jsonld"
USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def _iter_nodes(data: Any) -> Iterator[dict[str, Any]]:
    """Walk lists and @graph containers of a JSON-LD document."""
    if isinstance(data, list):
        for item in data:
            yield from _iter_nodes(item)
    elif isinstance(data, dict):
        if "@graph" in data:
            yield from _iter_nodes(data["@graph"])
        else:
            yield data


def _is_event(node: dict[str, Any]) -> bool:
    types = node.get("@type", [])
    if isinstance(types, str):
        types = [types]
    return any(isinstance(t, str) and t.endswith("Event") for t in types)


def extract_event_nodes(html: str) -> list[dict[str, Any]]:
    """All schema.org Event objects embedded in a page."""
    soup = BeautifulSoup(html, "html.parser")
    nodes = []
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except json.JSONDecodeError:
            logger.debug("jsonld_block_unparseable")
            continue
        nodes.extend(node for node in _iter_nodes(data) if _is_event(node))
    return nodes


def local_timestamp(value: Optional[str], city: str) -> Optional[str]:
    """ISO timestamp converted to the metro's wall-clock time, offset dropped."""
    if not value:
        return None
    try:
        parsed = isoparse(value)
    except (ValueError, OverflowError):
        return value
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tz.gettz(CITY_TIMEZONES.get(city, "America/New_York")))
        parsed = parsed.replace(tzinfo=None)
    return parsed.isoformat(timespec="seconds")


def _first(value: Any) -> Any:
    return value[0] if isinstance(value, list) and value else value


def _image_url(value: Any) -> Optional[str]:
    value = _first(value)
    if isinstance(value, dict):
        value = value.get("url")
    return value if isinstance(value, str) and value.startswith("http") else None


def _address_text(address: Any) -> Optional[str]:
    if isinstance(address, str):
        return clean_text(address) or None
    if isinstance(address, dict):
        parts = [
            address.get("streetAddress"),
            address.get("addressLocality"),
            address.get("addressRegion"),
            address.get("postalCode"),
        ]
        text = ", ".join(clean_text(p) for p in parts if p)
        return text or None
    return None


def _coordinate(geo: dict[str, Any], key: str) -> Optional[float]:
    try:
        return float(geo[key])
    except (KeyError, TypeError, ValueError):
        return None


def node_to_candidate(
    node: dict[str, Any],
    page_url: str,
    city: str = "Miami",
    source_name: str = SOURCE_NAME,
) -> dict[str, Any]:
    """Map one schema.org Event to a camelCase candidate dict."""
    title = clean_text(node.get("name"))
    description = clean_text(node.get("description"))

    location = _first(node.get("location")) or {}
    if isinstance(location, str):
        location = {"name": location}
    venue_name = clean_text(location.get("name")) or None
    geo = location.get("geo") or {}

    offers = _first(node.get("offers")) or {}
    price_label, price_amount = None, None
    if isinstance(offers, dict) and offers.get("price") not in (None, ""):
        price_label, price_amount = parse_price(f"${offers['price']}")
        if price_amount == 0:
            price_label = "Free"
    elif node.get("isAccessibleForFree") is True:
        price_label, price_amount = "Free", 0.0

    category = categorize(title, description, venue_name or "")
    event_url = node.get("url") if isinstance(node.get("url"), str) else None

    candidate = {
        "title": title,
        "description": description,
        "startAt": local_timestamp(node.get("startDate"), city),
        "endAt": local_timestamp(node.get("endDate"), city),
        "venueName": venue_name,
        "address": _address_text(location.get("address")),
        "lat": _coordinate(geo, "latitude"),
        "lng": _coordinate(geo, "longitude"),
        "city": city,
        "category": category,
        "tags": generate_tags(title, description, category),
        "isOutdoor": looks_outdoor(title, description, venue_name or ""),
        "priceLabel": price_label,
        "priceAmount": price_amount,
        "ticketUrl": offers.get("url") if isinstance(offers, dict) else None,
        "image": _image_url(node.get("image")),
        "sourceName": source_name,
        "sourceUrl": event_url or page_url,
    }
    return {key: value for key, value in candidate.items() if value is not None}


async def scrape_jsonld_page(
    url: str,
    city: str = "Miami",
    source_name: str = SOURCE_NAME,
    client: Optional[httpx.AsyncClient] = None,
) -> list[dict[str, Any]]:
    """
    Fetch a page and return its embedded events as candidates.

    Raises:
        UnsafeURLError: If the URL fails validation
        httpx.HTTPError: On network or HTTP failure
    """
    url = validate_scrape_url(url)
    headers = {"User-Agent": USER_AGENT, "Accept": "text/html,application/xhtml+xml"}

    if client is None:
        async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as owned:
            response = await owned.get(url, headers=headers)
    else:
        response = await client.get(url, headers=headers)
    response.raise_for_status()

    nodes = extract_event_nodes(response.text)
    logger.info("jsonld_page_scraped", url=url, events=len(nodes))
    return [node_to_candidate(node, url, city, source_name) for node in nodes]


@register_source(SOURCE_NAME)
async def jsonld_source(config: dict[str, Any]) -> list[dict[str, Any]]:
    """Scrape every configured JSON-LD page; one failing page fails the source."""
    pages = config.get("sources", {}).get("jsonld", [])
    candidates: list[dict[str, Any]] = []
    async with httpx.AsyncClient(timeout=30.0, follow_redirects=True) as client:
        for page in pages:
            candidates.extend(await scrape_jsonld_page(
                page["url"],
                city=page.get("city", "Miami"),
                source_name=page.get("name", SOURCE_NAME),
                client=client,
            ))
    return candidates
