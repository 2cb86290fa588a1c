"""
Command-line entry point.

Run with: python -m scraper.irl_events [--config run.json] [--output-dir data]

Collects, merges and canonicalizes events, optionally enriches locations and
editorial copy, then writes the per-city snapshots and a delta report
against the previous run.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Optional

import structlog

from .aggregator import Aggregator, split_by_city
from .config import load_config
from .enrichment import (
    AnthropicEditorialWriter,
    EditorialEnricher,
    Geocoder,
    GeocodingLocationVerifier,
    PersistentCache,
    verify_locations,
)
from .enrichment.geocoding import RateLimiter
from .logging_config import configure_logging
from .models import AggregationResult, IRLEvent
from .snapshot import (
    ALL_EVENTS_FILE,
    SnapshotError,
    compute_delta,
    load_snapshot,
    write_delta_report,
    write_snapshot,
)

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m scraper.irl_events",
        description="Scrape, merge and publish Miami / Fort Lauderdale events.",
    )
    parser.add_argument("--config", type=Path, help="JSON config file (overrides defaults)")
    parser.add_argument("--output-dir", type=Path, help="Directory for the JSON feeds")
    parser.add_argument(
        "--test", action="store_true", help="Run the pipeline and print samples without writing"
    )
    parser.add_argument(
        "--no-enrich", action="store_true", help="Skip location and editorial enrichment"
    )
    parser.add_argument("--seed", type=int, help="Seed for template copy selection")
    parser.add_argument(
        "--log-format", choices=["json", "console"], default="console", help="Log renderer"
    )
    parser.add_argument("--log-level", default="INFO", help="Log level (DEBUG, INFO, ...)")
    return parser


def _flush_quietly(cache: PersistentCache) -> None:
    try:
        cache.flush()
    except OSError as e:
        logger.warning("cache_flush_failed", path=str(cache.path), error=str(e))


async def enrich(events: list[IRLEvent], config: dict[str, Any]) -> list[IRLEvent]:
    """Location verification then editorial copy, each optional per config."""
    enrichment = config["enrichment"]
    cache_dir = Path(enrichment["cache_dir"])

    location = enrichment["location"]
    if location["enabled"]:
        cache = PersistentCache(cache_dir / "geocode.json", location["cache_ttl_days"])
        async with Geocoder(rate_limiter=RateLimiter(location["geocode_interval"])) as geocoder:
            events, _ = await verify_locations(
                events,
                GeocodingLocationVerifier(geocoder, cache),
                max_events=location["max_events"],
                only_null_coords=location["only_null_coords"],
            )
        _flush_quietly(cache)

    editorial = enrichment["editorial"]
    if editorial["enabled"]:
        writer = AnthropicEditorialWriter(model=editorial["model"])
        if not writer.enabled:
            logger.info("editorial_enrichment_skipped", reason="ANTHROPIC_API_KEY not set")
        else:
            cache = PersistentCache(cache_dir / "editorial.json", editorial["cache_ttl_days"])
            enricher = EditorialEnricher(
                writer,
                cache,
                max_concurrency=editorial["max_concurrency"],
                max_events=editorial["max_events"],
            )
            try:
                events = await enricher.enrich(events)
            finally:
                await writer.aclose()

    return events


def print_summary(result: AggregationResult, events: list[IRLEvent]) -> None:
    stats = result.stats
    print(f"Candidates: {stats.total} ({stats.invalid} invalid)")
    validation = result.validation
    print(
        f"Validation: {validation.blocked_by_date} blocked by date, "
        f"{validation.coordinates_cleared} coordinates cleared, "
        f"{validation.categories_fixed} categories fixed"
    )
    print(f"Events after merge: {stats.deduplicated}")
    for city, city_events in split_by_city(events).items():
        print(f"  {city}: {len(city_events)}")
    print("Sources:")
    for source in result.results:
        line = f"  {source.source}: {source.count} ({source.status})"
        if source.errors:
            line += " - " + "; ".join(source.errors)
        print(line)


def print_samples(events: list[IRLEvent], limit: int = 5) -> None:
    print("Sample events:")
    for event in events[:limit]:
        venue = event.venue_name or event.neighborhood
        print(f"  - {event.start_at} {event.title} @ {venue} [{event.id}]")
        print(f"    {event.short_why}")


async def run(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
    except (OSError, ValueError) as e:
        logger.error("config_error", error=str(e))
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    if args.output_dir is not None:
        config["output"]["dir"] = str(args.output_dir)
    if args.seed is not None:
        config["canonical"]["seed"] = args.seed

    result = await Aggregator(config=config).aggregate()
    events = result.events
    if not args.no_enrich:
        events = await enrich(events, config)

    print_summary(result, events)
    if args.test:
        print_samples(events)
        return 0

    output_dir = Path(config["output"]["dir"])
    try:
        previous = load_snapshot(output_dir / ALL_EVENTS_FILE)
        write_snapshot(
            events,
            output_dir,
            results=result.results,
            stats=result.stats,
            write_meta=config["output"]["write_meta"],
        )
        if config["output"]["delta_report"]:
            delta = compute_delta(previous, events)
            write_delta_report(delta, output_dir)
            print(
                f"Delta: +{len(delta.added)} -{len(delta.removed)} "
                f"~{len(delta.modified)} ({delta.past_dropped} past)"
            )
    except SnapshotError as e:
        logger.error("snapshot_failed", error=str(e))
        print(f"Failed to write snapshot: {e}", file=sys.stderr)
        return 1

    print(f"Saved to: {output_dir}")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(json_output=args.log_format == "json", log_level=args.log_level)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
