"""
Location verification for canonical events.

Events with missing or out-of-metro coordinates are checked against a
geocoder. A failed or inconclusive check never removes data: the event keeps
the coordinates it already had.
"""

from typing import Literal, Optional, Protocol, Sequence

import structlog
from pydantic import BaseModel, Field

from ..models import IRLEvent
from ..resilience import with_default
from .cache import KeyValueStore, MemoryCache, cache_key
from .geocoding import GeocodeResult, Geocoder, calculate_distance, in_metro_bounds

logger = structlog.get_logger()

# Current coordinates this close to the geocoded point are left alone
KEEP_WITHIN_MILES = 0.2
DEFAULT_MAX_EVENTS = 50

Confidence = Literal["high", "medium", "low", "unverified"]


class LocationVerification(BaseModel):
    """Outcome of checking one venue's coordinates."""

    lat: Optional[float] = None
    lng: Optional[float] = None
    confidence: Confidence
    was_changed: bool = False
    reasoning: str = ""


class LocationCorrection(BaseModel):
    event_id: str
    venue_name: str
    old_lat: Optional[float] = None
    old_lng: Optional[float] = None
    new_lat: float
    new_lng: float
    reasoning: str


class VerificationReport(BaseModel):
    """Counts and corrections from one verification pass."""

    checked: int = 0
    verified: int = 0
    corrected: int = 0
    unverified: int = 0
    issues: list[LocationCorrection] = Field(default_factory=list)


class LocationVerifier(Protocol):
    async def verify(
        self,
        venue_name: str,
        address: str,
        lat: Optional[float],
        lng: Optional[float],
        city: str,
    ) -> LocationVerification: ...


def full_address(address: str, city: str) -> str:
    """Append city and state unless the address already names the city."""
    if city.lower() in address.lower():
        return address
    return f"{address}, {city}, FL"


def decide_location(
    geocoded: Optional[GeocodeResult],
    lat: Optional[float],
    lng: Optional[float],
) -> LocationVerification:
    """
    Choose coordinates given a geocode result and the current values.

    Rules:
    - in-bounds geocode within KEEP_WITHIN_MILES of current: keep current
    - in-bounds geocode otherwise: take the geocode
    - no usable geocode, current in bounds: keep current at low confidence
    - nothing usable: unverified, current values returned unchanged
    """
    current_ok = in_metro_bounds(lat, lng)

    if geocoded is not None and in_metro_bounds(geocoded.lat, geocoded.lng):
        if current_ok:
            distance = calculate_distance(lat, lng, geocoded.lat, geocoded.lng)
            if distance <= KEEP_WITHIN_MILES:
                return LocationVerification(
                    lat=lat,
                    lng=lng,
                    confidence=geocoded.confidence,
                    reasoning=f"Current coordinates within {distance:.2f} mi of geocoded address",
                )
            reasoning = f"Current coordinates {distance:.2f} mi from geocoded address"
        elif lat is None or lng is None:
            reasoning = "No coordinates; using geocoded address"
        else:
            reasoning = "Current coordinates outside metro area; using geocoded address"
        return LocationVerification(
            lat=geocoded.lat,
            lng=geocoded.lng,
            confidence=geocoded.confidence,
            was_changed=True,
            reasoning=reasoning,
        )

    if current_ok:
        return LocationVerification(
            lat=lat,
            lng=lng,
            confidence="low",
            reasoning="Geocoding gave no in-bounds match; kept current coordinates",
        )

    return LocationVerification(
        lat=lat,
        lng=lng,
        confidence="unverified",
        reasoning="No usable geocode and current coordinates missing or out of bounds",
    )


class GeocodingLocationVerifier:
    """Rule-based verifier backed by Nominatim, with geocodes cached per address."""

    def __init__(self, geocoder: Geocoder, cache: Optional[KeyValueStore] = None):
        self.geocoder = geocoder
        self.cache = cache if cache is not None else MemoryCache()

    async def _lookup(self, query: str) -> Optional[GeocodeResult]:
        key = cache_key("geocode", query)
        cached = self.cache.get(key)
        if cached is not None:
            return GeocodeResult.model_validate(cached)

        result = await with_default(
            self.geocoder.geocode, None, query, log_context={"address": query}
        )
        # Misses are not cached so the next run can retry them
        if result is not None:
            self.cache.set(key, result.model_dump())
        return result

    async def verify(
        self,
        venue_name: str,
        address: str,
        lat: Optional[float],
        lng: Optional[float],
        city: str,
    ) -> LocationVerification:
        query = full_address(address or venue_name, city)
        geocoded = await self._lookup(query)
        if geocoded is None and address and venue_name:
            geocoded = await self._lookup(full_address(venue_name, city))
        return decide_location(geocoded, lat, lng)


def needs_verification(event: IRLEvent, only_null_coords: bool = False) -> bool:
    """Events naming a place whose coordinates are missing (or out of bounds)."""
    if not event.address and not event.venue_name:
        return False
    if not event.has_coordinates:
        return True
    if only_null_coords:
        return False
    return not in_metro_bounds(event.lat, event.lng)


async def verify_locations(
    events: Sequence[IRLEvent],
    verifier: LocationVerifier,
    max_events: int = DEFAULT_MAX_EVENTS,
    only_null_coords: bool = False,
) -> tuple[list[IRLEvent], VerificationReport]:
    """
    Check and correct coordinates of suspect events.

    Args:
        events: Canonical events
        verifier: Location verifier
        max_events: Upper bound on verifier calls per run
        only_null_coords: Skip events whose coordinates are merely out of bounds

    Returns:
        Tuple of (events in input order, report)
    """
    report = VerificationReport()
    candidates = [e for e in events if needs_verification(e, only_null_coords)][:max_events]
    if not candidates:
        logger.info("location_verification_skipped", reason="nothing_to_verify")
        return list(events), report

    corrected: dict[str, IRLEvent] = {}
    for event in candidates:
        report.checked += 1
        result = await with_default(
            verifier.verify,
            None,
            event.venue_name or "",
            event.address or event.venue_name or "",
            event.lat,
            event.lng,
            event.city,
            log_context={"event_id": event.id},
        )
        if result is None or result.confidence == "unverified":
            report.unverified += 1
            continue

        report.verified += 1
        if result.was_changed and result.lat is not None and result.lng is not None:
            report.corrected += 1
            report.issues.append(LocationCorrection(
                event_id=event.id,
                venue_name=event.venue_name or "Unknown",
                old_lat=event.lat,
                old_lng=event.lng,
                new_lat=result.lat,
                new_lng=result.lng,
                reasoning=result.reasoning,
            ))
            corrected[event.id] = event.model_copy(update={"lat": result.lat, "lng": result.lng})

    logger.info(
        "location_verification_complete",
        checked=report.checked,
        verified=report.verified,
        corrected=report.corrected,
        unverified=report.unverified,
    )
    return [corrected.get(e.id, e) for e in events], report
