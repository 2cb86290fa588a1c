"""
Feed snapshots and run-to-run delta reports.

Output files (camelCase keys, sorted, 2-space indent, null fields omitted):
- events.miami.json / events.fll.json: per-metro feeds
- events.json: all events
- scrape-meta.json: per-source results and run counts
- delta-report.json: changes against the previous events.json
"""

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence, Union

import structlog
from dateutil.parser import isoparse
from pydantic import Field

from .aggregator import split_by_city
from .models import AggregationStats, CamelModel, IRLEvent, ScrapeResult

logger = structlog.get_logger()

CITY_FILES = {
    "Miami": "events.miami.json",
    "Fort Lauderdale": "events.fll.json",
}
ALL_EVENTS_FILE = "events.json"
META_FILE = "scrape-meta.json"
DELTA_FILE = "delta-report.json"

# Regenerated every run, so changes here are not reported as modifications
EDITORIAL_FIELDS = frozenset({"shortWhy", "editorialWhy"})


class SnapshotError(Exception):
    """Raised when snapshot files cannot be read or written."""


class DeltaReport(CamelModel):
    """Differences between the previous and current feed."""

    generated_at: datetime
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    past_dropped: int = 0
    modified: list[str] = Field(default_factory=list)
    unchanged: int = 0

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.removed or self.modified)


def _dumps(data: Any) -> str:
    return json.dumps(data, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def _write_atomic(path: Path, text: str) -> None:
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, path)
    except OSError:
        Path(tmp).unlink(missing_ok=True)
        raise


def _feed(events: Iterable[IRLEvent]) -> list[dict[str, Any]]:
    return [event.to_feed_dict() for event in events]


def write_snapshot(
    events: Sequence[IRLEvent],
    output_dir: Union[str, Path],
    results: Optional[Sequence[ScrapeResult]] = None,
    stats: Optional[AggregationStats] = None,
    write_meta: bool = True,
    now: Optional[datetime] = None,
) -> dict[str, Path]:
    """
    Write the per-city feeds, the combined feed and run metadata.

    Returns:
        Mapping of file name to written path

    Raises:
        SnapshotError: If any file cannot be written
    """
    output_dir = Path(output_dir)
    now = now or datetime.now()
    by_city = split_by_city(events)

    payloads: dict[str, str] = {
        CITY_FILES[city]: _dumps(_feed(city_events))
        for city, city_events in by_city.items()
        if city in CITY_FILES
    }
    payloads[ALL_EVENTS_FILE] = _dumps(_feed(events))
    if write_meta:
        payloads[META_FILE] = _dumps({
            "generatedAt": now.isoformat(timespec="seconds"),
            "total": len(events),
            "byCity": {city: len(city_events) for city, city_events in by_city.items()},
            "sources": [r.model_dump(mode="json") for r in results or []],
            "stats": stats.model_dump(mode="json") if stats else None,
        })

    written: dict[str, Path] = {}
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        for name, text in payloads.items():
            path = output_dir / name
            _write_atomic(path, text)
            written[name] = path
    except OSError as e:
        raise SnapshotError(f"Failed to write snapshot to {output_dir}: {e}") from e

    logger.info(
        "snapshot_written",
        output_dir=str(output_dir),
        files=sorted(written),
        events=len(events),
    )
    return written


def load_snapshot(path: Union[str, Path]) -> list[dict[str, Any]]:
    """
    Previous feed as a list of camelCase dicts; empty when the file is absent.

    Raises:
        SnapshotError: If the file exists but is not a JSON list
    """
    path = Path(path)
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise SnapshotError(f"Failed to read snapshot {path}: {e}") from e
    if not isinstance(data, list):
        raise SnapshotError(f"Snapshot {path} is not a list of events")
    return data


def _starts_after(event: dict[str, Any], now: datetime) -> bool:
    try:
        start = isoparse(event["startAt"])
    except (KeyError, TypeError, ValueError):
        return False
    return start.replace(tzinfo=None) > now.replace(tzinfo=None)


def _material(event: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in event.items() if k not in EDITORIAL_FIELDS}


def compute_delta(
    previous: Sequence[dict[str, Any]],
    current: Sequence[Union[IRLEvent, dict[str, Any]]],
    now: Optional[datetime] = None,
) -> DeltaReport:
    """
    Compare two feeds by event ID.

    Removed lists only previous events that have not started yet; events
    that simply went into the past are counted in past_dropped. Modified
    ignores editorial copy.
    """
    now = now or datetime.now()
    current_dicts = [e.to_feed_dict() if isinstance(e, IRLEvent) else e for e in current]
    before = {e["id"]: e for e in previous if "id" in e}
    after = {e["id"]: e for e in current_dicts if "id" in e}

    report = DeltaReport(generated_at=now)
    report.added = sorted(set(after) - set(before))

    for event_id in sorted(set(before) - set(after)):
        if _starts_after(before[event_id], now):
            report.removed.append(event_id)
        else:
            report.past_dropped += 1

    for event_id in sorted(set(before) & set(after)):
        if _material(before[event_id]) != _material(after[event_id]):
            report.modified.append(event_id)
        else:
            report.unchanged += 1

    logger.info(
        "delta_computed",
        added=len(report.added),
        removed=len(report.removed),
        past_dropped=report.past_dropped,
        modified=len(report.modified),
        unchanged=report.unchanged,
    )
    return report


def write_delta_report(report: DeltaReport, output_dir: Union[str, Path]) -> Path:
    """
    Write delta-report.json.

    Raises:
        SnapshotError: If the file cannot be written
    """
    output_dir = Path(output_dir)
    path = output_dir / DELTA_FILE
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        _write_atomic(path, _dumps(report.model_dump(mode="json", by_alias=True)))
    except OSError as e:
        raise SnapshotError(f"Failed to write delta report to {path}: {e}") from e
    return path
