"""
Run configuration as a plain versioned dict.

A config file is JSON and only needs the keys it overrides; everything else
comes from get_default_config(). API keys are never stored here, they are read
from the environment (ANTHROPIC_API_KEY).

Handles version migrations:
- v1 -> v2: flat dedup/recurring keys moved into sections, enrichment split
  into location and editorial
"""

import copy
import json
from pathlib import Path
from typing import Any, Optional, Union

import structlog

log = structlog.get_logger(__name__)

CURRENT_VERSION = 2

DEFAULT_EDITORIAL_MODEL = "claude-sonnet-4-20250514"


def get_default_config() -> dict[str, Any]:
    """Return the default run configuration."""
    return {
        "version": CURRENT_VERSION,
        "output": {
            "dir": "data",
            "write_meta": True,
            "delta_report": True,
        },
        "sources": {
            "enabled": ["Curated Recurring"],
            "recurring_weeks": 4,
            # Each page: {"url": ..., "name": ..., "city": "Miami"}
            "jsonld": [],
        },
        "deduplication": {
            "title_threshold": 0.7,
            "venue_title_threshold": 0.3,
            "max_tags": 5,
        },
        "validation": {
            "max_future_days": 730,
            "fix_categories": True,
        },
        "canonical": {
            "seed": 0,
        },
        "enrichment": {
            "cache_dir": ".cache",
            "location": {
                "enabled": True,
                "geocode_interval": 1.1,
                "cache_ttl_days": 30,
                "max_events": 50,
                "only_null_coords": False,
            },
            "editorial": {
                "enabled": True,
                "model": DEFAULT_EDITORIAL_MODEL,
                "cache_ttl_days": 7,
                "max_events": 100,
                "max_concurrency": 4,
            },
        },
    }


def deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge overrides into a copy of base; lists are replaced."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def migrate_config(config: dict[str, Any]) -> dict[str, Any]:
    """
    Migrate config from any version to current.

    Args:
        config: Raw config dict (may be any version)

    Returns:
        Config dict at CURRENT_VERSION
    """
    version = config.get("version", 1)

    if version == CURRENT_VERSION:
        return config

    log.info("migrating_config", from_version=version, to_version=CURRENT_VERSION)

    if version == 1:
        config = _migrate_v1_to_v2(config)

    config["version"] = CURRENT_VERSION
    return config


def _migrate_v1_to_v2(config: dict[str, Any]) -> dict[str, Any]:
    """
    Migrate v1 config to v2 format.

    Changes:
    - dedup_threshold -> deduplication.title_threshold
    - recurring_weeks -> sources.recurring_weeks
    - output_dir -> output.dir
    - enrichment.enabled (bool) -> enrichment.location.enabled and
      enrichment.editorial.enabled
    """
    migrated = copy.deepcopy(config)

    moves = {
        "dedup_threshold": ("deduplication", "title_threshold"),
        "recurring_weeks": ("sources", "recurring_weeks"),
        "output_dir": ("output", "dir"),
    }
    for old_key, (section, new_key) in moves.items():
        if old_key in migrated:
            migrated.setdefault(section, {})[new_key] = migrated.pop(old_key)
            log.info("migrated_config_key", old=old_key, new=f"{section}.{new_key}")

    enrichment = migrated.get("enrichment")
    if isinstance(enrichment, dict) and isinstance(enrichment.get("enabled"), bool):
        enabled = enrichment.pop("enabled")
        enrichment.setdefault("location", {})["enabled"] = enabled
        enrichment.setdefault("editorial", {})["enabled"] = enabled
        log.info("split_enrichment_toggle", enabled=enabled)

    return migrated


def load_config(path: Optional[Union[str, Path]] = None) -> dict[str, Any]:
    """
    Load a JSON config file over the defaults.

    Args:
        path: Config file; None returns the defaults

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file is not valid JSON or fails validation
    """
    defaults = get_default_config()
    if path is None:
        return defaults

    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Config {path} is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ValueError(f"Config {path} must contain a JSON object")

    config = deep_merge(defaults, migrate_config(raw))
    errors = validate_config(config)
    if errors:
        raise ValueError(f"Invalid config {path}: " + "; ".join(errors))

    log.info("config_loaded", path=str(path), version=config["version"])
    return config


def validate_config(config: dict[str, Any]) -> list[str]:
    """
    Validate config and return list of errors.

    Returns:
        List of error messages (empty if valid)
    """
    errors: list[str] = []

    version = config.get("version", 1)
    if version > CURRENT_VERSION:
        errors.append(
            f"Config version {version} is newer than supported version {CURRENT_VERSION}"
        )

    dedup = config.get("deduplication", {})
    for key in ("title_threshold", "venue_title_threshold"):
        value = dedup.get(key)
        if value is not None and not 0 < value <= 1:
            errors.append(f"Invalid deduplication.{key}: {value} (must be 0-1)")
    if (
        dedup.get("title_threshold") is not None
        and dedup.get("venue_title_threshold") is not None
        and dedup["venue_title_threshold"] > dedup["title_threshold"]
    ):
        errors.append("deduplication.venue_title_threshold must not exceed title_threshold")
    max_tags = dedup.get("max_tags")
    if max_tags is not None and max_tags < 1:
        errors.append(f"Invalid deduplication.max_tags: {max_tags} (must be >= 1)")

    sources = config.get("sources", {})
    weeks = sources.get("recurring_weeks")
    if weeks is not None and weeks < 1:
        errors.append(f"Invalid sources.recurring_weeks: {weeks} (must be >= 1)")
    for i, page in enumerate(sources.get("jsonld", [])):
        if not isinstance(page, dict) or not page.get("url"):
            errors.append(f"sources.jsonld[{i}] needs a url")

    max_future = config.get("validation", {}).get("max_future_days")
    if max_future is not None and max_future < 1:
        errors.append(f"Invalid validation.max_future_days: {max_future} (must be >= 1)")

    seed = config.get("canonical", {}).get("seed")
    if seed is not None and not isinstance(seed, int):
        errors.append(f"canonical.seed must be an integer, got {seed!r}")

    enrichment = config.get("enrichment", {})
    interval = enrichment.get("location", {}).get("geocode_interval")
    if interval is not None and interval < 1.0:
        # Nominatim usage policy: at most one request per second
        errors.append(f"enrichment.location.geocode_interval must be >= 1.0, got {interval}")
    for section in ("location", "editorial"):
        ttl = enrichment.get(section, {}).get("cache_ttl_days")
        if ttl is not None and ttl <= 0:
            errors.append(f"enrichment.{section}.cache_ttl_days must be positive")
    concurrency = enrichment.get("editorial", {}).get("max_concurrency")
    if concurrency is not None and concurrency < 1:
        errors.append("enrichment.editorial.max_concurrency must be >= 1")

    return errors
