"""
IRL events scraper.

Collects candidate events for Miami and Fort Lauderdale from source adapters,
merges duplicates, canonicalizes them into the app's feed schema, optionally
enriches locations and editorial copy, and writes per-city JSON snapshots.
"""

__version__ = "0.3.0"
