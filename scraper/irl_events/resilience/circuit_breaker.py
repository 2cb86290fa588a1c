"""Circuit breaker for external enrichment services."""

import time
from enum import Enum
from typing import Any, Coroutine, Optional, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class CircuitState(Enum):
    """States for the circuit breaker."""

    CLOSED = "closed"  # Normal operation, requests allowed
    OPEN = "open"  # Failing, requests blocked
    HALF_OPEN = "half_open"  # Testing if recovered


class CircuitBreakerOpenError(Exception):
    """Raised when circuit breaker is open and blocking requests."""

    def __init__(self, circuit_name: str):
        super().__init__(f"Circuit breaker '{circuit_name}' is open")
        self.circuit_name = circuit_name


class CircuitBreaker:
    """Stops calling a service (geocoder, LLM) after repeated failures.

    A run enriches hundreds of events; once a service is clearly down the
    remaining calls fail fast and the events keep their current values.
    After recovery_timeout seconds a trial call is let through.
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0,
        successes_to_close: int = 2,
    ):
        """Initialize circuit breaker.

        Args:
            name: Service name for logging
            failure_threshold: Consecutive failures before opening
            recovery_timeout: Seconds to wait before a trial call
            successes_to_close: Trial successes needed to close again
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.successes_to_close = successes_to_close
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.trial_successes = 0
        self.opened_at: Optional[float] = None

    async def call(self, coro: Coroutine[Any, Any, T]) -> T:
        """Await coro unless the circuit is open.

        Raises:
            CircuitBreakerOpenError: If circuit is open
            Exception: Whatever coro raised (after recording the failure)
        """
        if self.state == CircuitState.OPEN:
            if not self._recovery_due():
                coro.close()
                raise CircuitBreakerOpenError(self.name)
            self.state = CircuitState.HALF_OPEN
            self.trial_successes = 0
            logger.info("circuit_half_open", circuit=self.name)

        try:
            result = await coro
        except Exception as e:
            self._record_failure(e)
            raise
        self._record_success()
        return result

    def _recovery_due(self) -> bool:
        if self.opened_at is None:
            return True
        return time.monotonic() - self.opened_at >= self.recovery_timeout

    def _record_success(self) -> None:
        if self.state != CircuitState.HALF_OPEN:
            self.failure_count = 0
            return
        self.trial_successes += 1
        if self.trial_successes >= self.successes_to_close:
            self.reset()
            logger.info("circuit_closed", circuit=self.name)

    def _record_failure(self, error: Exception) -> None:
        self.failure_count += 1
        if self.state == CircuitState.HALF_OPEN or self.failure_count >= self.failure_threshold:
            self.state = CircuitState.OPEN
            self.opened_at = time.monotonic()
            logger.warning(
                "circuit_opened",
                circuit=self.name,
                failure_count=self.failure_count,
                recovery_timeout=self.recovery_timeout,
                error=str(error),
            )

    def reset(self) -> None:
        """Return to the closed state."""
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.trial_successes = 0
        self.opened_at = None

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    @property
    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED

    def get_status(self) -> dict[str, Any]:
        """Current breaker state for run reports."""
        return {
            "name": self.name,
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
        }
