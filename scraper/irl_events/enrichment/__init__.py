"""Optional enrichment stages: location verification and editorial copy."""

from .cache import KeyValueStore, MemoryCache, PersistentCache, cache_key
from .editorial import AnthropicEditorialWriter, EditorialEnricher, EditorialWriter
from .geocoding import Geocoder, GeocodeResult, calculate_distance, in_metro_bounds
from .location import (
    GeocodingLocationVerifier,
    LocationVerification,
    LocationVerifier,
    VerificationReport,
    verify_locations,
)

__all__ = [
    "KeyValueStore",
    "MemoryCache",
    "PersistentCache",
    "cache_key",
    "AnthropicEditorialWriter",
    "EditorialEnricher",
    "EditorialWriter",
    "Geocoder",
    "GeocodeResult",
    "calculate_distance",
    "in_metro_bounds",
    "GeocodingLocationVerifier",
    "LocationVerification",
    "LocationVerifier",
    "VerificationReport",
    "verify_locations",
]
