"""Tests for circuit breaker pattern."""

import pytest

from scraper.irl_events.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpenError,
    CircuitState,
)


async def succeed():
    return "ok"


async def fail():
    raise ConnectionError("service down")


async def trip(breaker: CircuitBreaker) -> None:
    for _ in range(breaker.failure_threshold):
        with pytest.raises(ConnectionError):
            await breaker.call(fail())


class TestCircuitBreaker:
    """Tests for CircuitBreaker."""

    def test_starts_closed(self):
        breaker = CircuitBreaker(name="test")
        assert breaker.is_closed
        assert not breaker.is_open

    @pytest.mark.asyncio
    async def test_passes_results_through(self):
        breaker = CircuitBreaker(name="test")
        assert await breaker.call(succeed()) == "ok"

    @pytest.mark.asyncio
    async def test_opens_after_threshold(self):
        breaker = CircuitBreaker(name="test", failure_threshold=3)
        await trip(breaker)
        assert breaker.is_open
        assert breaker.failure_count == 3

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self):
        breaker = CircuitBreaker(name="test", failure_threshold=3)
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await breaker.call(fail())
        await breaker.call(succeed())
        assert breaker.failure_count == 0
        with pytest.raises(ConnectionError):
            await breaker.call(fail())
        assert breaker.is_closed

    @pytest.mark.asyncio
    async def test_open_circuit_fails_fast(self):
        """The wrapped coroutine is closed without running."""
        breaker = CircuitBreaker(name="nominatim", failure_threshold=1)
        await trip(breaker)

        ran = False

        async def tracked():
            nonlocal ran
            ran = True

        coro = tracked()
        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            await breaker.call(coro)
        assert exc_info.value.circuit_name == "nominatim"
        assert "nominatim" in str(exc_info.value)
        assert not ran
        assert coro.cr_frame is None

    @pytest.mark.asyncio
    async def test_half_open_after_timeout_then_closes(self):
        breaker = CircuitBreaker(
            name="test", failure_threshold=1, recovery_timeout=60.0, successes_to_close=2
        )
        await trip(breaker)
        breaker.opened_at -= 61.0

        assert await breaker.call(succeed()) == "ok"
        assert breaker.state == CircuitState.HALF_OPEN
        await breaker.call(succeed())

        assert breaker.is_closed

    @pytest.mark.asyncio
    async def test_failure_while_half_open_reopens(self):
        breaker = CircuitBreaker(name="test", failure_threshold=3, recovery_timeout=60.0)
        await trip(breaker)
        breaker.opened_at -= 61.0

        with pytest.raises(ConnectionError):
            await breaker.call(fail())
        assert breaker.is_open
        with pytest.raises(CircuitBreakerOpenError):
            await breaker.call(succeed())

    @pytest.mark.asyncio
    async def test_stays_open_before_timeout(self):
        breaker = CircuitBreaker(name="test", failure_threshold=1, recovery_timeout=60.0)
        await trip(breaker)
        breaker.opened_at -= 30.0
        with pytest.raises(CircuitBreakerOpenError):
            await breaker.call(succeed())

    @pytest.mark.asyncio
    async def test_reset(self):
        breaker = CircuitBreaker(name="test", failure_threshold=1)
        await trip(breaker)
        breaker.reset()
        assert breaker.is_closed
        assert await breaker.call(succeed()) == "ok"

    @pytest.mark.asyncio
    async def test_get_status(self):
        breaker = CircuitBreaker(name="anthropic", failure_threshold=3)
        with pytest.raises(ConnectionError):
            await breaker.call(fail())
        assert breaker.get_status() == {
            "name": "anthropic",
            "state": "closed",
            "failure_count": 1,
            "failure_threshold": 3,
        }
