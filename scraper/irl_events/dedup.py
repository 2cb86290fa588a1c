"""
Similarity and merge engine for event candidates.

Candidates from every source are pooled, sorted by quality and grouped:
- Exact key: significant title words + calendar day + venue (or neighborhood)
- Fuzzy: pairwise duplicate predicate against each existing group's anchor

Each group is folded into one record that keeps the anchor's fields and
fills gaps from the other candidates. Gap filling can make two anchors
duplicates after the pass, so matching groups are folded together until
no pair of anchors matches.

Events in different metros are never duplicates.

Fuzzy grouping is O(n * g) where g is the number of groups so far, so a run
with no exact-key hits is quadratic. That is fine for the few thousand
candidates a run produces and is the first thing to revisit if volume grows.
"""

import hashlib
import itertools
import re
from typing import Iterable, Optional

import structlog

from .models import DedupeResult, DuplicateMatch, EventGroup, RawEvent
from .venues import VenueDirectory, get_default_directory

logger = structlog.get_logger()


# Title similarity at or above which events on the same day are duplicates
TITLE_DUPLICATE_THRESHOLD = 0.7

# Title similarity needed when the venues are equivalent
VENUE_TITLE_THRESHOLD = 0.3

# Merged records keep at most this many tags
MAX_MERGED_TAGS = 5

# Artist residues must be longer than this to be compared
MIN_ARTIST_LENGTH = 5

STOP_WORDS = frozenset({"the", "at", "and", "for", "with"})

# Billing words that pad titles without identifying the event
COMPARISON_STOP_WORDS = STOP_WORDS | {"presents", "featuring", "feat", "live"}

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_TRAILING_VENUE_CLAUSE = re.compile(
    r"\s*(?:\blive\s+at\b|\bat\b|\bpresents\b|@)\s*\S.*$",
    re.IGNORECASE,
)


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    if not text:
        return ""
    text = _PUNCTUATION.sub("", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def significant_words(
    title: Optional[str], stop_words: frozenset[str] = STOP_WORDS
) -> set[str]:
    """Words of a title that identify the event (length > 2, not stop words)."""
    return {
        word
        for word in normalize_text(title).split()
        if len(word) > 2 and word not in stop_words
    }


def title_similarity(a: str, b: str) -> float:
    """Jaccard index over significant title words (0 if either set is empty)."""
    words_a = significant_words(a, COMPARISON_STOP_WORDS)
    words_b = significant_words(b, COMPARISON_STOP_WORDS)
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


def location_key(event: RawEvent) -> str:
    """Normalized venue, else neighborhood, else the metro name."""
    return (
        normalize_text(event.venue_name)
        or normalize_text(event.neighborhood)
        or event.city.lower()
    )


def dedupe_key(event: RawEvent) -> str:
    """Deterministic identity key; word order and time-of-day are ignored.

    Titles with no significant words ("DJ", "5K") use the whole normalized
    title instead, so unrelated short titles keep distinct keys.
    """
    words = " ".join(sorted(significant_words(event.title))) or normalize_text(event.title)
    key_string = f"{words}|{event.start_date.isoformat()}|{location_key(event)}"
    return hashlib.md5(key_string.encode()).hexdigest()[:16]


def venues_equivalent(
    a: RawEvent, b: RawEvent, directory: Optional[VenueDirectory] = None
) -> bool:
    """Whether two candidates name the same venue.

    Loose containment ("Lagniappe" vs "Lagniappe House") is deliberate:
    sources abbreviate venue names far more often than two distinct venues
    share a name fragment.
    """
    venue_a = (a.venue_name or "").strip().lower()
    venue_b = (b.venue_name or "").strip().lower()
    if not venue_a or not venue_b:
        return False

    if venue_a == venue_b:
        return True

    directory = directory or get_default_directory()
    id_a = directory.resolve_id(a.venue_name)
    if id_a and id_a == directory.resolve_id(b.venue_name):
        return True

    return venue_a in venue_b or venue_b in venue_a


def extract_artist(title: str) -> str:
    """Strip a trailing "at/@/live at/presents <venue>" clause and normalize."""
    return normalize_text(_TRAILING_VENUE_CLAUSE.sub("", title, count=1))


def _neighborhoods_match(a: RawEvent, b: RawEvent) -> bool:
    hood_a = (a.neighborhood or "").strip()
    hood_b = (b.neighborhood or "").strip()
    return bool(hood_a) and hood_a == hood_b


def _artists_match(a: RawEvent, b: RawEvent) -> bool:
    artist_a = extract_artist(a.title)
    artist_b = extract_artist(b.title)
    if len(artist_a) <= MIN_ARTIST_LENGTH or len(artist_b) <= MIN_ARTIST_LENGTH:
        return False
    return artist_a == artist_b or artist_a in artist_b or artist_b in artist_a


def duplicate_rule(
    a: RawEvent,
    b: RawEvent,
    directory: Optional[VenueDirectory] = None,
    title_threshold: float = TITLE_DUPLICATE_THRESHOLD,
    venue_title_threshold: float = VENUE_TITLE_THRESHOLD,
) -> Optional[str]:
    """
    Name of the rule that makes a and b duplicates, or None.

    Rules, in order:
    - title: title similarity >= title_threshold, whatever the venue
    - venue_title: same venue and similarity >= venue_title_threshold
    - venue_time: same venue and the exact same start timestamp
    - artist: same billed act once venue clauses are stripped, at the same
      venue or in the same neighborhood

    Events in different metros or on different calendar days are never
    duplicates.
    """
    if a.city != b.city or a.start_date != b.start_date:
        return None

    similarity = title_similarity(a.title, b.title)
    if similarity >= title_threshold:
        return "title"

    same_venue = venues_equivalent(a, b, directory)
    if same_venue and similarity >= venue_title_threshold:
        return "venue_title"

    if same_venue and a.start_datetime == b.start_datetime:
        return "venue_time"

    if (same_venue or _neighborhoods_match(a, b)) and _artists_match(a, b):
        return "artist"

    return None


def are_duplicates(
    a: RawEvent, b: RawEvent, directory: Optional[VenueDirectory] = None
) -> bool:
    """Whether two candidates describe the same real-world event."""
    return duplicate_rule(a, b, directory) is not None


def merge_events(
    anchor: RawEvent, incoming: RawEvent, max_tags: int = MAX_MERGED_TAGS
) -> RawEvent:
    """
    Fold incoming into anchor, keeping the anchor's data where it has any.

    Coordinates, venue, address, image and source URL only fill gaps;
    the longer description wins; tags are unioned in first-seen order.
    Merging the same candidate twice gives the same result as once.
    """
    update: dict = {
        "tags": list(dict.fromkeys([*anchor.tags, *incoming.tags]))[:max_tags],
        "venue_name": anchor.venue_name or incoming.venue_name,
        "address": anchor.address or incoming.address,
        "image": anchor.image or incoming.image,
        "source_url": anchor.source_url or incoming.source_url,
    }

    if not anchor.has_coordinates and incoming.has_coordinates:
        update["lat"] = incoming.lat
        update["lng"] = incoming.lng

    if len(incoming.description) > len(anchor.description):
        update["description"] = incoming.description

    return anchor.model_copy(update=update)


def quality_sort_key(event: RawEvent) -> tuple:
    """Sort key putting the most complete candidates first.

    Coordinates first, then longer descriptions. The trailing fields only
    make the order independent of input order.
    """
    return (
        not event.has_coordinates,
        -len(event.description),
        event.title,
        event.start_at,
        event.venue_name or "",
        event.source_name,
        event.source_url or "",
    )


def _find_matching_group(
    candidate: RawEvent,
    groups: list[EventGroup],
    directory: VenueDirectory,
    title_threshold: float,
    venue_title_threshold: float,
) -> tuple[Optional[EventGroup], Optional[str]]:
    """First group whose anchor is a duplicate of candidate."""
    for group in groups:
        rule = duplicate_rule(
            group.anchor,
            candidate,
            directory,
            title_threshold=title_threshold,
            venue_title_threshold=venue_title_threshold,
        )
        if rule:
            return group, rule
    return None, None


def _anchor_rule(
    a: RawEvent,
    b: RawEvent,
    directory: VenueDirectory,
    title_threshold: float,
    venue_title_threshold: float,
) -> Optional[str]:
    if a.city == b.city and dedupe_key(a) == dedupe_key(b):
        return "exact_key"
    return duplicate_rule(
        a,
        b,
        directory,
        title_threshold=title_threshold,
        venue_title_threshold=venue_title_threshold,
    )


def _audit_match(kept: RawEvent, merged: RawEvent, rule: str) -> DuplicateMatch:
    return DuplicateMatch(
        kept_title=kept.title,
        merged_title=merged.title,
        merged_source=merged.source_name,
        rule=rule,
        title_similarity=title_similarity(kept.title, merged.title),
        reason=(
            f"Merged '{merged.title}' ({merged.source_name}) "
            f"into '{kept.title}' ({kept.source_name})"
        ),
    )


def _fold_matching_groups(
    groups: list[EventGroup],
    directory: VenueDirectory,
    title_threshold: float,
    venue_title_threshold: float,
    max_tags: int,
    audit_trail: list[DuplicateMatch],
) -> None:
    """Fold together groups whose anchors match, until none do."""
    merged = True
    while merged:
        merged = False
        for i, j in itertools.combinations(range(len(groups)), 2):
            kept, other = groups[i], groups[j]
            rule = _anchor_rule(
                kept.anchor, other.anchor, directory, title_threshold, venue_title_threshold
            )
            if rule is None:
                continue
            audit_trail.append(_audit_match(kept.anchor, other.anchor, rule))
            kept.anchor = merge_events(kept.anchor, other.anchor, max_tags)
            kept.members.extend(other.members)
            del groups[j]
            merged = True
            break


def deduplicate(
    candidates: Iterable[RawEvent],
    directory: Optional[VenueDirectory] = None,
    title_threshold: float = TITLE_DUPLICATE_THRESHOLD,
    venue_title_threshold: float = VENUE_TITLE_THRESHOLD,
    max_tags: int = MAX_MERGED_TAGS,
) -> DedupeResult:
    """
    Group candidates describing the same event and merge each group.

    Args:
        candidates: All candidates from one run, in any order
        directory: Venue directory for venue equivalence (default: built-in)
        title_threshold: Similarity that alone makes a duplicate
        venue_title_threshold: Similarity needed at an equivalent venue
        max_tags: Tag cap for merged records

    Returns:
        DedupeResult with one event per group, the groups and an audit trail
    """
    candidates = list(candidates)
    if not candidates:
        return DedupeResult(events=[], original_count=0, duplicates_removed=0)

    directory = directory or get_default_directory()
    groups: list[EventGroup] = []
    groups_by_key: dict[tuple[str, str], EventGroup] = {}
    audit_trail: list[DuplicateMatch] = []

    for candidate in sorted(candidates, key=quality_sort_key):
        key = dedupe_key(candidate)
        group = groups_by_key.get((candidate.city, key))
        rule = "exact_key" if group else None

        if group is None:
            group, rule = _find_matching_group(
                candidate, groups, directory, title_threshold, venue_title_threshold
            )

        if group is None:
            group = EventGroup(key=key, anchor=candidate, members=[candidate])
            groups.append(group)
            groups_by_key[(candidate.city, key)] = group
            continue

        audit_trail.append(_audit_match(group.anchor, candidate, rule))
        group.anchor = merge_events(group.anchor, candidate, max_tags)
        group.members.append(candidate)
        groups_by_key.setdefault((candidate.city, key), group)

    _fold_matching_groups(
        groups, directory, title_threshold, venue_title_threshold, max_tags, audit_trail
    )
    groups.sort(key=lambda group: quality_sort_key(group.anchor))

    events = [group.anchor for group in groups]
    result = DedupeResult(
        events=events,
        groups=groups,
        original_count=len(candidates),
        duplicates_removed=len(candidates) - len(events),
        audit_trail=audit_trail,
    )

    logger.info(
        "deduplication_complete",
        candidates=result.original_count,
        unique=len(events),
        duplicates_removed=result.duplicates_removed,
        exact_key_merges=sum(1 for m in audit_trail if m.rule == "exact_key"),
        fuzzy_merges=sum(1 for m in audit_trail if m.rule != "exact_key"),
    )
    return result


def merge(
    candidates: Iterable[RawEvent], directory: Optional[VenueDirectory] = None
) -> list[RawEvent]:
    """One merged record per distinct real-world event."""
    return deduplicate(candidates, directory).events


def format_audit_summary(result: DedupeResult) -> str:
    """Format audit trail as human-readable summary."""
    if not result.audit_trail:
        return "No duplicates found."

    lines = [
        "Deduplication Summary:",
        f"  Candidates: {result.original_count}",
        f"  Duplicates merged: {result.duplicates_removed}",
        f"  Unique events: {len(result.events)}",
        f"  Dedup rate: {result.dedup_rate:.1f}%",
        "",
        "Merged events:",
    ]

    for match in result.audit_trail:
        lines.append(
            f"  - {match.reason} "
            f"[{match.rule}, title similarity: {match.title_similarity:.0%}]"
        )

    return "\n".join(lines)
