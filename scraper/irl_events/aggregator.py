"""
Run pipeline: collect candidates from every source, drop invalid ones, run
the data-quality checks, deduplicate each metro and canonicalize.
"""

import asyncio
import inspect
import time
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, TypeVar

import structlog
from pydantic import ValidationError

from .canonical import DEFAULT_SEED, canonicalize_all
from .config import get_default_config
from .dedup import deduplicate, format_audit_summary
from .models import AggregationResult, AggregationStats, RawEvent, ScrapeResult
from .sources import SOURCES, Candidate, SourceAdapter
from .validation import MAX_FUTURE_DAYS, validate_events
from .venues import VenueDirectory, get_default_directory

logger = structlog.get_logger()

E = TypeVar("E", bound=RawEvent)


def validate_candidates(
    candidates: Iterable[Candidate],
) -> tuple[list[RawEvent], int]:
    """
    Turn raw candidates into RawEvents, dropping the malformed ones.

    Returns:
        Tuple of (valid events, number dropped)
    """
    valid: list[RawEvent] = []
    invalid = 0
    for candidate in candidates:
        if isinstance(candidate, RawEvent):
            valid.append(candidate)
            continue
        try:
            valid.append(RawEvent.model_validate(candidate))
        except ValidationError as e:
            invalid += 1
            logger.warning(
                "invalid_candidate_dropped",
                title=candidate.get("title") if isinstance(candidate, dict) else None,
                source=candidate.get("sourceName") if isinstance(candidate, dict) else None,
                errors=e.error_count(),
            )
    return valid, invalid


def split_by_city(events: Iterable[E]) -> dict[str, list[E]]:
    """Events grouped by metro, every metro present."""
    by_city: dict[str, list[E]] = {"Miami": [], "Fort Lauderdale": []}
    for event in events:
        by_city.setdefault(event.city, []).append(event)
    return by_city


class Aggregator:
    """
    Runs the configured sources and merges their output.

    Args:
        sources: name -> adapter (default: every registered source named in
            config["sources"]["enabled"] plus "jsonld" when pages are configured)
        config: Run config dict
        directory: Venue directory (default: built-in)
        today: Reference day for the date window (default: today)
    """

    def __init__(
        self,
        sources: Optional[Mapping[str, SourceAdapter]] = None,
        config: Optional[dict[str, Any]] = None,
        directory: Optional[VenueDirectory] = None,
        today: Optional[date] = None,
    ):
        self.config = config or get_default_config()
        self.sources = dict(sources) if sources is not None else self._enabled_sources()
        self.directory = directory or get_default_directory()
        self.today = today

    def _enabled_sources(self) -> dict[str, SourceAdapter]:
        source_config = self.config.get("sources", {})
        names = list(source_config.get("enabled", []))
        if source_config.get("jsonld") and "jsonld" not in names:
            names.append("jsonld")

        enabled = {}
        for name in names:
            if name not in SOURCES:
                logger.warning("unknown_source_skipped", source=name)
                continue
            enabled[name] = SOURCES[name]
        return enabled

    async def _run_source(
        self, name: str, adapter: SourceAdapter
    ) -> tuple[list[Candidate], ScrapeResult]:
        started = time.perf_counter()
        try:
            output = adapter(self.config)
            if inspect.isawaitable(output):
                output = await output
            candidates = list(output)
        except Exception as e:
            duration_ms = int((time.perf_counter() - started) * 1000)
            logger.error("source_failed", source=name, error_type=type(e).__name__, error=str(e))
            return [], ScrapeResult(
                source=name,
                status="error",
                errors=[f"{type(e).__name__}: {e}"],
                duration_ms=duration_ms,
            )

        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info("source_complete", source=name, count=len(candidates), duration_ms=duration_ms)
        return candidates, ScrapeResult(source=name, count=len(candidates), duration_ms=duration_ms)

    async def collect(self) -> tuple[list[Candidate], list[ScrapeResult]]:
        """Run every source concurrently; a failing source yields an error result."""
        outcomes = await asyncio.gather(
            *(self._run_source(name, adapter) for name, adapter in self.sources.items())
        )
        candidates = [c for source_candidates, _ in outcomes for c in source_candidates]
        return candidates, [result for _, result in outcomes]

    def _deduplicate_by_city(self, events: list[RawEvent]) -> list[RawEvent]:
        """Deduplicate each metro separately; metros never share events."""
        dedup_config = self.config.get("deduplication", {})
        merged: list[RawEvent] = []
        for city, city_events in split_by_city(events).items():
            dedupe_result = deduplicate(
                city_events,
                self.directory,
                title_threshold=dedup_config.get("title_threshold", 0.7),
                venue_title_threshold=dedup_config.get("venue_title_threshold", 0.3),
                max_tags=dedup_config.get("max_tags", 5),
            )
            logger.debug("dedup_audit", city=city, summary=format_audit_summary(dedupe_result))
            merged.extend(dedupe_result.events)
        return merged

    async def aggregate(self) -> AggregationResult:
        """Collect, validate, deduplicate per metro and canonicalize."""
        started = datetime.now()
        candidates, results = await self.collect()
        valid, invalid = validate_candidates(candidates)

        validation_config = self.config.get("validation", {})
        checked, validation = validate_events(
            valid,
            today=self.today,
            max_future_days=validation_config.get("max_future_days", MAX_FUTURE_DAYS),
            fix_categories=validation_config.get("fix_categories", True),
        )
        merged = self._deduplicate_by_city(checked)

        seed = self.config.get("canonical", {}).get("seed", DEFAULT_SEED)
        events = canonicalize_all(merged, self.directory, seed=seed)
        events.sort(key=lambda e: (e.start_at, e.title))

        by_source: dict[str, int] = {}
        for event in valid:
            by_source[event.source_name] = by_source.get(event.source_name, 0) + 1

        stats = AggregationStats(
            total=len(candidates),
            invalid=invalid,
            deduplicated=len(events),
            by_source=by_source,
        )
        logger.info(
            "aggregation_complete",
            sources=len(results),
            failed_sources=sum(1 for r in results if r.status == "error"),
            candidates=stats.total,
            invalid=stats.invalid,
            blocked=validation.blocked_by_date,
            events=stats.deduplicated,
            duration_s=round((datetime.now() - started).total_seconds(), 2),
        )
        return AggregationResult(
            events=events, results=results, stats=stats, validation=validation
        )
