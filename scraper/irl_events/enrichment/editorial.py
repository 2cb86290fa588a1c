"""
LLM-written editorial copy for canonical events.

Cost: one short and one long completion per new event; copy is cached per
(title, category, venue) for a week so recurring events are written once.
Without ANTHROPIC_API_KEY the writer is disabled and events keep the
template copy assigned during canonicalization.
"""

import asyncio
import os
from typing import Any, Optional, Protocol, Sequence

import anthropic
import structlog
from jinja2 import Environment

from ..models import EditorialCopy, IRLEvent
from ..resilience import CircuitBreaker, with_default
from .cache import KeyValueStore, MemoryCache, cache_key

logger = structlog.get_logger()

DEFAULT_MODEL = "claude-sonnet-4-20250514"

# SDK-level retries for transient API errors
MAX_RETRIES = 3

_env = Environment(autoescape=False, trim_blocks=True, lstrip_blocks=True)

_EVENT_CONTEXT = """\
Event: {{ e.title }}
Category: {{ e.category }}
Venue: {{ e.venue_name or 'Unknown' }}
Neighborhood: {{ e.neighborhood }}
City: {{ e.city }}
Tags: {{ e.tags | join(', ') }}
Price: {{ e.price_label or 'Varies' }}
"""

SHORT_WHY_PROMPT = _env.from_string(
    "Generate a short, punchy editorial hook (10-15 words max) for this event. "
    "It should make someone want to attend. Be specific to the event, not generic. "
    "No quotes around the response.\n\n"
    + _EVENT_CONTEXT
    + "Description: {{ e.description[:300] }}\n\nJust the hook, nothing else:"
)

EDITORIAL_WHY_PROMPT = _env.from_string(
    "Write a compelling 2-3 sentence editorial description for this event. "
    "Make it personal and enticing, like a friend recommending it. Focus on what "
    "makes it special and why someone should go. Don't repeat the title or basic "
    "info.\n\n"
    + _EVENT_CONTEXT
    + "Is Outdoor: {{ 'Yes' if e.is_outdoor else 'No' }}\n"
    "Original Description: {{ e.description[:500] }}\n\n"
    "Editorial description (2-3 sentences only):"
)


class EditorialResponseError(ValueError):
    """The API answered without usable text."""


class EditorialWriter(Protocol):
    async def write(self, event: IRLEvent) -> Optional[EditorialCopy]: ...


def extract_text(message: Any) -> str:
    """Text of the first content block of a Messages API reply."""
    blocks = getattr(message, "content", None) or []
    if not blocks or blocks[0].type != "text":
        raise EditorialResponseError("response has no text block")
    text = blocks[0].text.strip()
    if not text:
        raise EditorialResponseError("response text is empty")
    return text


def strip_quotes(text: str) -> str:
    return text.strip().strip("\"'").strip()


class AnthropicEditorialWriter:
    """Editorial copy from the Anthropic Messages API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        client: Optional[anthropic.AsyncAnthropic] = None,
        breaker: Optional[CircuitBreaker] = None,
    ):
        self.api_key = api_key if api_key is not None else os.environ.get("ANTHROPIC_API_KEY")
        self.model = model
        self._client = client
        self._owns_client = client is None
        self.breaker = breaker or CircuitBreaker(name="anthropic", failure_threshold=3)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self.api_key, max_retries=MAX_RETRIES, timeout=30.0
            )
        return self._client

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    async def _complete(self, prompt: str, max_tokens: int) -> str:
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )
        return extract_text(message)

    async def write(self, event: IRLEvent) -> Optional[EditorialCopy]:
        """
        Write both copy fields for an event.

        Returns:
            EditorialCopy, or None when no API key is configured

        Raises:
            anthropic.APIError, EditorialResponseError, CircuitBreakerOpenError
        """
        if not self.enabled:
            return None
        short_why = await self.breaker.call(
            self._complete(SHORT_WHY_PROMPT.render(e=event), max_tokens=50)
        )
        editorial_why = await self.breaker.call(
            self._complete(EDITORIAL_WHY_PROMPT.render(e=event), max_tokens=150)
        )
        return EditorialCopy(short_why=strip_quotes(short_why), editorial_why=editorial_why)


def editorial_cache_key(event: IRLEvent) -> str:
    return cache_key(event.title, event.category, event.venue_name)


def apply_copy(event: IRLEvent, copy: EditorialCopy) -> IRLEvent:
    """Replace template copy with generated copy, field by field."""
    update = {}
    if copy.short_why:
        update["short_why"] = copy.short_why
    if copy.editorial_why:
        update["editorial_why"] = copy.editorial_why
    return event.model_copy(update=update) if update else event


class EditorialEnricher:
    """Fills editorial copy for a batch of events through a cache."""

    def __init__(
        self,
        writer: EditorialWriter,
        cache: Optional[KeyValueStore] = None,
        max_concurrency: int = 4,
        max_events: int = 100,
    ):
        self.writer = writer
        self.cache = cache if cache is not None else MemoryCache()
        self.max_concurrency = max_concurrency
        self.max_events = max_events
        self.stats = {"cached": 0, "generated": 0, "failed": 0}

    async def _enrich_one(self, event: IRLEvent, semaphore: asyncio.Semaphore) -> IRLEvent:
        key = editorial_cache_key(event)
        cached = self.cache.get(key)
        if cached is not None:
            self.stats["cached"] += 1
            return apply_copy(event, EditorialCopy.model_validate(cached))

        async with semaphore:
            copy = await with_default(
                self.writer.write, None, event, log_context={"event_id": event.id}
            )
        if copy is None:
            self.stats["failed"] += 1
            return event

        self.stats["generated"] += 1
        self.cache.set(key, copy.model_dump())
        return apply_copy(event, copy)

    async def enrich(self, events: Sequence[IRLEvent]) -> list[IRLEvent]:
        """
        Return events with generated copy where available, in input order.

        Only the first max_events are considered; the rest keep their
        template copy.
        """
        semaphore = asyncio.Semaphore(self.max_concurrency)
        head = list(events[: self.max_events])
        enriched = await asyncio.gather(*(self._enrich_one(e, semaphore) for e in head))
        try:
            self.cache.flush()
        except OSError as e:
            logger.warning("editorial_cache_flush_failed", error=str(e))

        logger.info("editorial_enrichment_complete", considered=len(head), **self.stats)
        return [*enriched, *events[self.max_events:]]
