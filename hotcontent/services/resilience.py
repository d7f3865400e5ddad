"""
Connector resilience: retries, timeouts and a per-source circuit breaker.

Every outbound call is bounded by `with_timeout` and retried by
`connector_retry` on 429, 5xx and timeouts. Per-entity refresh strategies
also sit behind a `CircuitBreaker`.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from functools import wraps
from typing import Any, TypeVar

import httpx

from hotcontent.errors import (
    ConnectorRateLimitError,
    ConnectorServiceError,
    ConnectorTimeoutError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

CONNECTOR_RETRY_EXCEPTIONS = (ConnectorRateLimitError, ConnectorServiceError, ConnectorTimeoutError)


class CircuitOpenError(Exception):
    """A call was refused because the source's circuit is open."""

    pass


# -----------------------------------------------------------------------------
# Circuit breaker
# -----------------------------------------------------------------------------


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Stops calling a source after repeated failures.

    CLOSED lets every call through. After `failure_threshold` consecutive
    failures the breaker is OPEN and refuses calls until
    `reset_timeout_seconds` have passed; it then reports HALF_OPEN and
    admits one probe. A successful probe closes it, a failed one reopens it.
    """

    def __init__(self, name: str, failure_threshold: int = 5, reset_timeout_seconds: float = 60):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout_seconds = reset_timeout_seconds
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at = 0.0
        self._probing = False

    @property
    def state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._cooled_down():
            return CircuitState.HALF_OPEN
        return self._state

    def _cooled_down(self) -> bool:
        return time.monotonic() - self._opened_at >= self.reset_timeout_seconds

    def _admit(self) -> None:
        state = self.state
        if state == CircuitState.OPEN:
            remaining = self.reset_timeout_seconds - (time.monotonic() - self._opened_at)
            raise CircuitOpenError(f"circuit '{self.name}' open, retry in {max(0.0, remaining):.0f}s")
        if state == CircuitState.HALF_OPEN:
            if self._probing:
                raise CircuitOpenError(f"circuit '{self.name}' half-open, probe in flight")
            self._probing = True

    def _record_success(self) -> None:
        if self._state != CircuitState.CLOSED:
            logger.info(f"Circuit '{self.name}' closed", extra={"event": "circuit_closed", "connector": self.name})
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._probing = False

    def _record_failure(self) -> None:
        was_probing = self._probing
        self._probing = False
        self._failure_count += 1
        if was_probing or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN
            self._opened_at = time.monotonic()
            logger.warning(
                f"Circuit '{self.name}' open after {self._failure_count} failures",
                extra={"event": "circuit_open", "connector": self.name},
            )

    async def call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """
        Run func (sync or async) through the breaker.

        Raises:
            CircuitOpenError: if the circuit refuses the call
        """
        self._admit()
        try:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            self._record_failure()
            raise
        self._record_success()
        return result

    def reset(self) -> None:
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._probing = False


# -----------------------------------------------------------------------------
# Retry
# -----------------------------------------------------------------------------


def with_retry(
    max_attempts: int = 3,
    min_wait: float = 1.0,
    max_wait: float = 30.0,
    retry_exceptions: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Async retry decorator; waits min_wait, 2*min_wait, ... capped at max_wait."""

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except retry_exceptions as e:
                    if attempt >= max_attempts:
                        logger.warning(
                            f"{func.__qualname__} gave up after {attempt} attempts: {e}",
                            extra={"event": "retry_exhausted"},
                        )
                        raise
                    delay = min(max_wait, min_wait * 2 ** (attempt - 1))
                    logger.info(f"{func.__qualname__} attempt {attempt} failed ({e}), retrying in {delay:.1f}s")
                    await asyncio.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator


# Source HTTP calls: 3 attempts, 1s then 2s
connector_retry = with_retry(max_attempts=3, min_wait=1.0, max_wait=8.0, retry_exceptions=CONNECTOR_RETRY_EXCEPTIONS)


def raise_for_source_status(connector: str, response: httpx.Response) -> None:
    """429 and 5xx become retryable connector errors; other failures raise HTTPStatusError."""
    code = response.status_code
    if code == 429:
        raise ConnectorRateLimitError(connector, "rate limited (429)")
    if code >= 500:
        raise ConnectorServiceError(connector, f"service error ({code})")
    response.raise_for_status()


async def with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: float,
    connector: str,
    error_message: str = "request timed out",
) -> T:
    """
    Raises:
        ConnectorTimeoutError: when the awaitable exceeds timeout_seconds
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError as e:
        raise ConnectorTimeoutError(connector, f"{error_message} (timeout: {timeout_seconds}s)") from e
