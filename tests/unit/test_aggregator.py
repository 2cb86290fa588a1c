"""Tests for the run pipeline."""

from datetime import date

import pytest

from scraper.irl_events.aggregator import Aggregator, split_by_city, validate_candidates
from scraper.irl_events.config import deep_merge, get_default_config

TODAY = date(2026, 3, 1)


def jazz_dict(**overrides) -> dict:
    candidate = {
        "title": "Jazz Night",
        "startAt": "2026-03-05T20:00:00",
        "venueName": "Lagniappe",
        "city": "Miami",
        "category": "Music",
        "sourceName": "listing",
    }
    candidate.update(overrides)
    return candidate


class TestValidateCandidates:
    """Tests for candidate validation."""

    def test_mixed_inputs(self, sample_event):
        valid, invalid = validate_candidates([
            sample_event,
            jazz_dict(),
            jazz_dict(title=""),
            jazz_dict(startAt="whenever"),
            jazz_dict(category="Raves"),
        ])
        assert len(valid) == 2
        assert invalid == 3
        assert valid[1].venue_name == "Lagniappe"


class TestSplitByCity:
    """Tests for split_by_city."""

    def test_both_metros_always_present(self, canonical_event):
        assert split_by_city([canonical_event]) == {
            "Miami": [canonical_event],
            "Fort Lauderdale": [],
        }


class TestAggregator:
    """Tests for Aggregator."""

    def test_default_sources_from_config(self):
        aggregator = Aggregator()
        assert list(aggregator.sources) == ["Curated Recurring"]

    def test_jsonld_enabled_by_pages(self):
        config = deep_merge(
            get_default_config(),
            {"sources": {"jsonld": [{"url": "https://example.com/events"}]}},
        )
        assert "jsonld" in Aggregator(config=config).sources

    def test_unknown_source_skipped(self):
        config = deep_merge(get_default_config(), {"sources": {"enabled": ["Nope"]}})
        assert Aggregator(config=config).sources == {}

    @pytest.mark.asyncio
    async def test_sync_and_async_adapters(self, directory, sample_candidates):
        async def async_source(config):
            return [jazz_dict(sourceName="async")]

        aggregator = Aggregator(
            sources={"sync": lambda config: sample_candidates, "async": async_source},
            directory=directory,
        )
        candidates, results = await aggregator.collect()
        assert len(candidates) == 7
        assert [(r.source, r.count, r.status) for r in results] == [
            ("sync", 6, "success"),
            ("async", 1, "success"),
        ]

    @pytest.mark.asyncio
    async def test_failing_source_captured(self, directory):
        def broken(config):
            raise RuntimeError("site is down")

        aggregator = Aggregator(
            sources={"broken": broken, "ok": lambda config: [jazz_dict()]},
            directory=directory,
            today=TODAY,
        )
        result = await aggregator.aggregate()
        broken_result = result.results[0]
        assert broken_result.status == "error"
        assert broken_result.errors == ["RuntimeError: site is down"]
        assert len(result.events) == 1

    @pytest.mark.asyncio
    async def test_aggregate(self, directory, sample_candidates):
        aggregator = Aggregator(
            sources={"pool": lambda config: [*sample_candidates, jazz_dict(title="")]},
            directory=directory,
            today=TODAY,
        )
        result = await aggregator.aggregate()

        assert result.stats.total == 7
        assert result.stats.invalid == 1
        assert result.stats.deduplicated == 4
        assert result.stats.by_source == {
            "venue-site": 3, "listing": 1, "ticketing": 1, "instagram": 1,
        }
        starts = [(e.start_at, e.title) for e in result.events]
        assert starts == sorted(starts)
        assert all(e.id for e in result.events)

    @pytest.mark.asyncio
    async def test_seed_from_config(self, directory, sample_candidates):
        def run(seed):
            config = deep_merge(get_default_config(), {"canonical": {"seed": seed}})
            return Aggregator(
                sources={"pool": lambda config: sample_candidates},
                config=config,
                directory=directory,
                today=TODAY,
            ).aggregate()

        first = await run(5)
        again = await run(5)
        assert first.events
        assert [e.short_why for e in first.events] == [e.short_why for e in again.events]

    @pytest.mark.asyncio
    async def test_metros_deduplicated_separately(self, directory):
        """A shared title on the same day survives in both metros."""
        pool = [
            jazz_dict(
                title="Sunset Yoga", venueName=None, neighborhood="South Beach", category="Fitness"
            ),
            jazz_dict(
                title="Sunset Yoga",
                venueName=None,
                neighborhood="Las Olas",
                city="Fort Lauderdale",
                category="Fitness",
            ),
        ]
        aggregator = Aggregator(
            sources={"pool": lambda config: pool}, directory=directory, today=TODAY
        )
        result = await aggregator.aggregate()
        counts = {city: len(events) for city, events in split_by_city(result.events).items()}
        assert counts == {"Miami": 1, "Fort Lauderdale": 1}

    @pytest.mark.asyncio
    async def test_quality_checks_applied(self, directory):
        pool = [
            jazz_dict(),
            jazz_dict(title="Last Year's Gala", startAt="2025-03-05T20:00:00"),
            jazz_dict(title="Far Future Fest", startAt="2029-03-05T20:00:00"),
            jazz_dict(title="Misplaced Show", venueName="Gramps", lat=40.7128, lng=-74.0060),
        ]
        aggregator = Aggregator(
            sources={"pool": lambda config: pool}, directory=directory, today=TODAY
        )
        result = await aggregator.aggregate()

        assert result.validation.blocked_by_date == 2
        assert result.validation.coordinates_cleared == 1
        assert sorted(e.title for e in result.events) == ["Jazz Night", "Misplaced Show"]
        misplaced = next(e for e in result.events if e.title == "Misplaced Show")
        # Directory coordinates fill the cleared pin
        assert (misplaced.lat, misplaced.lng) == (25.8002, -80.1946)

    @pytest.mark.asyncio
    async def test_future_window_from_config(self, directory):
        config = deep_merge(get_default_config(), {"validation": {"max_future_days": 3}})
        aggregator = Aggregator(
            sources={"pool": lambda config: [jazz_dict()]},
            config=config,
            directory=directory,
            today=TODAY,
        )
        result = await aggregator.aggregate()
        assert result.events == []
        assert result.validation.blocked_by_date == 1
