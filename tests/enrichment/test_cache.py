"""Tests for the enrichment caches."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from scraper.irl_events.enrichment.cache import MemoryCache, PersistentCache, cache_key

START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class Clock:
    """Settable clock for TTL tests."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> Clock:
    return Clock()


class TestCacheKey:
    """Tests for cache_key."""

    def test_slugifies_parts(self):
        assert cache_key("Jazz Night!", "Music", "Lagniappe House") == (
            "jazz-night|music|lagniappe-house"
        )

    def test_none_parts(self):
        assert cache_key("Open Mic", None) == "open-mic|"

    def test_case_and_punctuation_insensitive(self):
        assert cache_key("Ball & Chain") == cache_key("ball  &  CHAIN") == "ball-chain"


class TestMemoryCache:
    """Tests for MemoryCache."""

    def test_get_set(self):
        cache = MemoryCache()
        assert cache.get("missing") is None
        cache.set("key", {"lat": 25.8})
        assert cache.get("key") == {"lat": 25.8}
        assert len(cache) == 1
        cache.flush()


class TestPersistentCache:
    """Tests for PersistentCache."""

    def test_round_trip(self, tmp_path, clock):
        path = tmp_path / "geocode.json"
        cache = PersistentCache(path, ttl_days=30, clock=clock)
        cache.set("geocode|gramps", {"lat": 25.8002, "lng": -80.1946})
        cache.flush()

        reloaded = PersistentCache(path, ttl_days=30, clock=clock)
        assert reloaded.get("geocode|gramps") == {"lat": 25.8002, "lng": -80.1946}

    def test_file_format(self, tmp_path, clock):
        path = tmp_path / "editorial.json"
        cache = PersistentCache(path, ttl_days=7, clock=clock)
        cache.set("key", "value")
        cache.flush()

        data = json.loads(path.read_text())
        assert data == {
            "version": 1,
            "entries": {"key": {"value": "value", "cachedAt": START.isoformat()}},
        }

    def test_expired_entries_dropped(self, tmp_path, clock):
        cache = PersistentCache(tmp_path / "c.json", ttl_days=7, clock=clock)
        cache.set("key", "value")
        cache.flush()

        clock.advance(days=7, seconds=1)
        assert cache.get("key") is None
        assert cache.dirty
        assert len(cache) == 0

    def test_entry_valid_until_ttl(self, tmp_path, clock):
        cache = PersistentCache(tmp_path / "c.json", ttl_days=7, clock=clock)
        cache.set("key", "value")
        clock.advance(days=6, hours=23)
        assert cache.get("key") == "value"

    def test_flush_only_when_dirty(self, tmp_path, clock):
        path = tmp_path / "c.json"
        cache = PersistentCache(path, ttl_days=7, clock=clock)
        cache.flush()
        assert not path.exists()

    def test_flush_creates_parent_dirs(self, tmp_path, clock):
        path = tmp_path / ".cache" / "nested" / "c.json"
        cache = PersistentCache(path, ttl_days=7, clock=clock)
        cache.set("key", 1)
        cache.flush()
        assert path.exists()
        assert not cache.dirty

    @pytest.mark.parametrize(
        "content",
        ["{broken", '{"version": 99, "entries": {"k": {}}}', "[1, 2, 3]"],
    )
    def test_unusable_file_starts_empty(self, tmp_path, clock, content):
        path = tmp_path / "c.json"
        path.write_text(content)
        cache = PersistentCache(path, ttl_days=7, clock=clock)
        assert len(cache) == 0
        assert cache.get("k") is None

    def test_malformed_entry_treated_as_expired(self, tmp_path, clock):
        path = tmp_path / "c.json"
        path.write_text(json.dumps({"version": 1, "entries": {"k": {"value": 1}}}))
        cache = PersistentCache(path, ttl_days=7, clock=clock)
        assert cache.get("k") is None

    def test_stats(self, tmp_path, clock):
        cache = PersistentCache(tmp_path / "c.json", ttl_days=7, clock=clock)
        cache.set("old", 1)
        clock.advance(days=8)
        cache.set("new", 2)
        assert cache.stats() == {"total": 2, "valid": 1, "expired": 1}
