"""
Disk-backed JSON cache for enrichment results.

Location lookups are cached per venue (30 days) and editorial copy per event
(7 days), so scheduled runs only call external services for new events.
The cache changes cost, never results.
"""

import json
import os
import re
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Protocol, Union

import structlog

logger = structlog.get_logger()

CACHE_FORMAT_VERSION = 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeyValueStore(Protocol):
    """Minimal store interface used by the enrichment stages."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any) -> None: ...

    def flush(self) -> None: ...


class MemoryCache:
    """In-process store with no expiry, for tests and --no-cache runs."""

    def __init__(self) -> None:
        self.entries: dict[str, Any] = {}

    def get(self, key: str) -> Optional[Any]:
        return self.entries.get(key)

    def set(self, key: str, value: Any) -> None:
        self.entries[key] = value

    def flush(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self.entries)


class PersistentCache:
    """
    JSON file cache with a time-to-live.

    File layout: {"version": 1, "entries": {key: {"value": ..., "cachedAt": iso}}}.
    Expired entries are dropped when read. The file is only rewritten by
    flush() and only when something changed.
    """

    def __init__(
        self,
        path: Union[str, Path],
        ttl_days: float,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.path = Path(path)
        self.ttl = timedelta(days=ttl_days)
        self.clock = clock
        self.dirty = False
        self.entries: dict[str, dict[str, Any]] = self._load()

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("cache_unreadable", path=str(self.path), error=str(e))
            return {}
        if not isinstance(data, dict) or data.get("version") != CACHE_FORMAT_VERSION:
            logger.warning("cache_version_mismatch", path=str(self.path))
            return {}
        entries = data.get("entries")
        return entries if isinstance(entries, dict) else {}

    def _expired(self, entry: dict[str, Any]) -> bool:
        try:
            cached_at = datetime.fromisoformat(entry["cachedAt"])
        except (KeyError, TypeError, ValueError):
            return True
        if cached_at.tzinfo is None:
            cached_at = cached_at.replace(tzinfo=timezone.utc)
        return self.clock() - cached_at > self.ttl

    def get(self, key: str) -> Optional[Any]:
        entry = self.entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            del self.entries[key]
            self.dirty = True
            return None
        return entry.get("value")

    def set(self, key: str, value: Any) -> None:
        self.entries[key] = {"value": value, "cachedAt": self.clock().isoformat()}
        self.dirty = True

    def flush(self) -> None:
        """Write to disk if anything changed since the last flush."""
        if not self.dirty:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"version": CACHE_FORMAT_VERSION, "entries": self.entries}
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp, self.path)
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise
        self.dirty = False
        logger.debug("cache_flushed", path=str(self.path), entries=len(self.entries))

    def stats(self) -> dict[str, int]:
        expired = sum(1 for entry in self.entries.values() if self._expired(entry))
        return {
            "total": len(self.entries),
            "valid": len(self.entries) - expired,
            "expired": expired,
        }

    def __len__(self) -> int:
        return len(self.entries)


def cache_key(*parts: Optional[str]) -> str:
    """Join slugified parts with "|" (None and empty parts become "")."""
    slugs = []
    for part in parts:
        slug = re.sub(r"[^a-z0-9]+", "-", (part or "").lower()).strip("-")
        slugs.append(slug)
    return "|".join(slugs)
