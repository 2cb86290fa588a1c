"""Name -> adapter registry for event sources."""

from typing import Any, Awaitable, Callable, Iterable, Union

from ..models import RawEvent

Candidate = Union[RawEvent, dict[str, Any]]
SourceAdapter = Callable[
    [dict[str, Any]], Union[Iterable[Candidate], Awaitable[Iterable[Candidate]]]
]

SOURCES: dict[str, SourceAdapter] = {}


def register_source(name: str) -> Callable[[SourceAdapter], SourceAdapter]:
    """
    Register an adapter under a display name.

    An adapter takes the run config and returns candidates (RawEvent or
    camelCase dicts), either directly or from a coroutine.
    """

    def decorator(adapter: SourceAdapter) -> SourceAdapter:
        if name in SOURCES:
            raise ValueError(f"Source already registered: {name}")
        SOURCES[name] = adapter
        return adapter

    return decorator
