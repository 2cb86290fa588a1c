"""
Geocoding via OpenStreetMap Nominatim.

Cost: Free, but the usage policy allows at most one request per second and
requires an identifying User-Agent.
"""

import asyncio
import math
from typing import Any, Literal, Optional

import httpx
import structlog
from pydantic import BaseModel

from ..resilience import CircuitBreaker, retry_with_backoff

logger = structlog.get_logger()

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"
USER_AGENT = "IRL-Miami-Events-Scraper/1.0"
RATE_LIMIT_INTERVAL = 1.1  # seconds between requests
EARTH_RADIUS_MILES = 3959

# Generous bounding box around Miami-Dade and Broward
METRO_BOUNDS = {
    "min_lat": 25.1,
    "max_lat": 26.5,
    "min_lng": -80.9,
    "max_lng": -79.9,
}


class GeocodeResult(BaseModel):
    """A single Nominatim match."""

    lat: float
    lng: float
    display_name: str
    confidence: Literal["high", "medium", "low"]


class RateLimiter:
    """Spaces calls at least interval seconds apart, across concurrent callers."""

    def __init__(self, interval: float = RATE_LIMIT_INTERVAL):
        self.interval = interval
        self.last_call: Optional[float] = None
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        """Wait if needed to respect rate limit."""
        async with self._lock:
            loop = asyncio.get_running_loop()
            if self.last_call is not None:
                elapsed = loop.time() - self.last_call
                if elapsed < self.interval:
                    await asyncio.sleep(self.interval - elapsed)
            self.last_call = loop.time()


def calculate_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in miles (haversine)."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def in_metro_bounds(lat: Optional[float], lng: Optional[float]) -> bool:
    """True when the point lies inside the Miami / Fort Lauderdale box."""
    if lat is None or lng is None:
        return False
    return (
        METRO_BOUNDS["min_lat"] <= lat <= METRO_BOUNDS["max_lat"]
        and METRO_BOUNDS["min_lng"] <= lng <= METRO_BOUNDS["max_lng"]
    )


def _confidence(importance: float) -> Literal["high", "medium", "low"]:
    if importance > 0.5:
        return "high"
    if importance > 0.3:
        return "medium"
    return "low"


def parse_nominatim(results: list[dict[str, Any]]) -> Optional[GeocodeResult]:
    """First Nominatim result as a GeocodeResult, or None when empty."""
    if not results:
        return None
    top = results[0]
    return GeocodeResult(
        lat=float(top["lat"]),
        lng=float(top["lon"]),
        display_name=top.get("display_name", ""),
        confidence=_confidence(float(top.get("importance") or 0)),
    )


class Geocoder:
    """
    Async Nominatim client.

    Transient failures (network errors, 429 and 5xx) are retried with
    backoff; every attempt goes through the shared rate limiter. Other
    errors propagate to the caller.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        rate_limiter: Optional[RateLimiter] = None,
        breaker: Optional[CircuitBreaker] = None,
        base_url: str = NOMINATIM_URL,
        user_agent: str = USER_AGENT,
    ):
        self._client = client
        self._owns_client = client is None
        self.rate_limiter = rate_limiter or RateLimiter()
        self.breaker = breaker or CircuitBreaker(name="nominatim", failure_threshold=5)
        self.base_url = base_url
        self.user_agent = user_agent

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=15.0)
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "Geocoder":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @retry_with_backoff(max_attempts=3, base_delay=2.0, max_delay=10.0)
    async def _search(self, query: str) -> list[dict[str, Any]]:
        await self.rate_limiter.wait()
        response = await self.client.get(
            self.base_url,
            params={"q": query, "format": "json", "limit": 1, "countrycodes": "us"},
            headers={
                "User-Agent": self.user_agent,
                "Accept": "application/json",
                "Accept-Language": "en-US,en;q=0.9",
            },
        )
        response.raise_for_status()
        return response.json()

    async def geocode(self, address: str) -> Optional[GeocodeResult]:
        """
        Geocode a free-form address.

        Returns:
            GeocodeResult, or None when Nominatim has no match

        Raises:
            httpx.HTTPError: After retries are exhausted
            CircuitBreakerOpenError: When Nominatim has been failing
        """
        results = await self.breaker.call(self._search(address))
        result = parse_nominatim(results)
        logger.debug(
            "geocoded",
            address=address,
            found=result is not None,
            confidence=result.confidence if result else None,
        )
        return result
