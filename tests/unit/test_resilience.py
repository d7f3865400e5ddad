# tests/unit/test_resilience.py
"""
Unit tests for connector resilience: circuit breaker, retry, status
translation and timeouts.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from hotcontent.errors import (
    ConnectorRateLimitError,
    ConnectorServiceError,
    ConnectorTimeoutError,
)
from hotcontent.services.resilience import (
    CircuitBreaker,
    CircuitOpenError,
    CircuitState,
    connector_retry,
    raise_for_source_status,
    with_retry,
    with_timeout,
)


async def _fail():
    raise ConnectorServiceError("wikimedia", "service error (503)")


class TestCircuitBreaker:
    @pytest.mark.asyncio
    async def test_opens_after_threshold(self):
        breaker = CircuitBreaker(name="wikimedia", failure_threshold=2)

        with pytest.raises(ConnectorServiceError):
            await breaker.call(_fail)
        assert breaker.state == CircuitState.CLOSED

        with pytest.raises(ConnectorServiceError):
            await breaker.call(_fail)
        assert breaker._state == CircuitState.OPEN

        with pytest.raises(CircuitOpenError):
            await breaker.call(_fail)

    @pytest.mark.asyncio
    async def test_success_clears_failures(self):
        breaker = CircuitBreaker(name="tmdb", failure_threshold=3)

        async def ok():
            return ["image"]

        with pytest.raises(ConnectorServiceError):
            await breaker.call(_fail)
        assert await breaker.call(ok) == ["image"]
        assert breaker._failure_count == 0

    @pytest.mark.asyncio
    async def test_half_open_after_cooldown(self):
        breaker = CircuitBreaker(name="wikipedia", failure_threshold=1, reset_timeout_seconds=0)

        with pytest.raises(ConnectorServiceError):
            await breaker.call(_fail)

        assert breaker.state == CircuitState.HALF_OPEN

    @pytest.mark.asyncio
    async def test_half_open_success_closes(self):
        breaker = CircuitBreaker(name="wikipedia", failure_threshold=1, reset_timeout_seconds=0)
        with pytest.raises(ConnectorServiceError):
            await breaker.call(_fail)

        assert await breaker.call(lambda: "sync ok") == "sync ok"
        assert breaker.state == CircuitState.CLOSED

    def test_manual_reset(self):
        breaker = CircuitBreaker(name="tmdb", failure_threshold=1)
        breaker._state = CircuitState.OPEN
        breaker._failure_count = 4

        breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        assert breaker._failure_count == 0


class TestRetry:
    @pytest.mark.asyncio
    async def test_eventual_success(self):
        calls = 0

        @with_retry(max_attempts=3, min_wait=0.01, max_wait=0.02, retry_exceptions=(ConnectorRateLimitError,))
        async def flaky():
            nonlocal calls
            calls += 1
            if calls < 3:
                raise ConnectorRateLimitError("tmdb", "rate limited (429)")
            return "ok"

        assert await flaky() == "ok"
        assert calls == 3

    @pytest.mark.asyncio
    async def test_non_retryable_raised_immediately(self):
        calls = 0

        @with_retry(max_attempts=3, min_wait=0.01, retry_exceptions=(ConnectorRateLimitError,))
        async def broken():
            nonlocal calls
            calls += 1
            raise KeyError("results")

        with pytest.raises(KeyError):
            await broken()
        assert calls == 1

    @pytest.mark.asyncio
    async def test_connector_retry_backoff(self):
        calls = 0

        @connector_retry
        async def always_timing_out():
            nonlocal calls
            calls += 1
            raise ConnectorTimeoutError("wikidata", "timed out")

        with patch("hotcontent.services.resilience.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(ConnectorTimeoutError):
                await always_timing_out()

        assert calls == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]


class TestStatusTranslation:
    def _response(self, status_code):
        response = MagicMock()
        response.status_code = status_code
        return response

    def test_rate_limit(self):
        with pytest.raises(ConnectorRateLimitError) as exc_info:
            raise_for_source_status("tmdb", self._response(429))
        assert exc_info.value.connector == "tmdb"

    @pytest.mark.parametrize("status", [500, 502, 503])
    def test_server_errors(self, status):
        with pytest.raises(ConnectorServiceError):
            raise_for_source_status("wikimedia", self._response(status))

    def test_client_error_uses_raise_for_status(self):
        request = httpx.Request("GET", "https://api.example.org/x")
        response = httpx.Response(403, request=request)
        with pytest.raises(httpx.HTTPStatusError):
            raise_for_source_status("tmdb", response)

    def test_success_passes(self):
        request = httpx.Request("GET", "https://api.example.org/x")
        raise_for_source_status("tmdb", httpx.Response(200, request=request))


class TestTimeout:
    @pytest.mark.asyncio
    async def test_timeout_raises_connector_error(self):
        async def slow():
            await asyncio.sleep(1)

        with pytest.raises(ConnectorTimeoutError) as exc_info:
            await with_timeout(slow(), 0.01, "wikidata", "fetch timed out")
        assert "timeout: 0.01s" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_fast_call_returns(self):
        async def fast():
            return 42

        assert await with_timeout(fast(), 1, "trends") == 42
