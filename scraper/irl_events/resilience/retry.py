"""Retry with exponential backoff for enrichment HTTP calls."""

import asyncio
import random
from functools import wraps
from typing import Any, Callable, TypeVar

import httpx
import structlog

logger = structlog.get_logger()

T = TypeVar("T")

# Status codes worth retrying: rate limiting and server-side failures
TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504, 529})


def is_transient_http_error(error: BaseException) -> bool:
    """True for network failures and retryable HTTP status codes."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in TRANSIENT_STATUS_CODES
    return isinstance(error, httpx.TransportError)


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """Delay before retry number attempt + 1 (attempt counts from 0)."""
    delay = min(base_delay * (exponential_base**attempt), max_delay)
    if jitter:
        delay *= 0.5 + random.random()
    return delay


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    should_retry: Callable[[BaseException], bool] = is_transient_http_error,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for async retry with exponential backoff.

    Errors for which should_retry returns False propagate immediately.

    Args:
        max_attempts: Maximum number of attempts
        base_delay: Initial delay between attempts in seconds
        max_delay: Maximum delay between attempts in seconds
        exponential_base: Base for exponential backoff calculation
        jitter: Randomize delays so parallel callers spread out
        should_retry: Predicate deciding whether an error is transient

    Returns:
        Decorated async function with retry logic
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not should_retry(e):
                        raise
                    if attempt == max_attempts - 1:
                        logger.error(
                            "retry_exhausted",
                            function=func.__name__,
                            max_attempts=max_attempts,
                            error=str(e),
                        )
                        raise

                    delay = backoff_delay(
                        attempt, base_delay, max_delay, exponential_base, jitter
                    )
                    logger.warning(
                        "retry_attempt",
                        function=func.__name__,
                        attempt=attempt + 1,
                        max_attempts=max_attempts,
                        delay=round(delay, 2),
                        error=str(e),
                    )
                    await asyncio.sleep(delay)

            raise RuntimeError("max_attempts must be at least 1")

        return wrapper  # type: ignore

    return decorator
