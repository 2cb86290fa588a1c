"""Graceful degradation for enrichment calls."""

from typing import Any, Callable, Coroutine, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


async def with_default(
    func: Callable[..., Coroutine[Any, Any, T]],
    default: T,
    *args: Any,
    log_context: dict[str, Any] | None = None,
    **kwargs: Any,
) -> T:
    """Await func and return default if it raises.

    Enrichment must never abort a run: a failed geocode or LLM call means
    the event keeps the value it already had, which callers pass as default.

    Args:
        func: Async function to execute
        default: Value to return if func fails
        *args: Positional arguments for func
        log_context: Extra key/values for the failure log line
        **kwargs: Keyword arguments for func

    Returns:
        Function result or default value
    """
    try:
        return await func(*args, **kwargs)
    except Exception as e:
        logger.warning(
            "enrichment_failed_keeping_default",
            function=getattr(func, "__name__", repr(func)),
            error_type=type(e).__name__,
            error=str(e),
            **(log_context or {}),
        )
        return default
