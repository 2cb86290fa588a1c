"""Resilience patterns for enrichment calls to external services."""

from .circuit_breaker import CircuitBreaker, CircuitBreakerOpenError, CircuitState
from .fallback import with_default
from .retry import is_transient_http_error, retry_with_backoff

__all__ = [
    "retry_with_backoff",
    "is_transient_http_error",
    "CircuitBreaker",
    "CircuitState",
    "CircuitBreakerOpenError",
    "with_default",
]
