"""Retry with exponential backoff and a circuit breaker.

Both primitives are independent of any endpoint and can wrap any awaitable
operation. ``retry_with_backoff`` only retries transient failures (see
``RETRYABLE_CODES``); everything else propagates on the first failure.
"""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum
from functools import wraps
from typing import Any

from ..errors import HTTP_SERVICE_UNAVAILABLE, ErrorCode, RestorepointError

logger = logging.getLogger("restorepoint_mcp.resilience")

DEFAULT_BASE_DELAY_MS = 1000
DEFAULT_MAX_DELAY_MS = 30000
JITTER_RATIO = 0.1

RETRYABLE_CODES: frozenset[ErrorCode] = frozenset(
    {
        ErrorCode.NETWORK_TIMEOUT,
        ErrorCode.NETWORK_RATE_LIMITED,
        ErrorCode.NETWORK_SERVER_ERROR,
        ErrorCode.NETWORK_UNAVAILABLE,
        ErrorCode.SYSTEM_MAINTENANCE_MODE,
    }
)


def is_retryable_error(error: BaseException) -> bool:
    """Return True when ``error`` is a transient failure worth retrying."""
    return isinstance(error, RestorepointError) and error.code in RETRYABLE_CODES


def calculate_retry_delay(
    attempt: int,
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
) -> int:
    """Return the backoff delay in milliseconds for a zero-based ``attempt``.

    The exponential delay is capped at ``max_delay_ms`` and up to 10% of random
    jitter is added on top to spread out concurrent retries.
    """
    exponential = min(base_delay_ms * 2**attempt, max_delay_ms)
    jitter = random.random() * JITTER_RATIO * exponential  # noqa: S311
    return round(exponential + jitter)


async def retry_with_backoff[T](  # noqa: PLR0913
    fn: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay_ms: int = DEFAULT_BASE_DELAY_MS,
    context: str | None = None,
    *,
    max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Invoke ``fn`` until it succeeds, retrying transient failures with backoff.

    Args:
        fn: Zero-argument coroutine function to invoke.
        max_attempts: Total number of calls allowed (at least one call is made).
        base_delay_ms: Delay before the first retry.
        context: Component name used in log lines.
        max_delay_ms: Upper bound for the exponential part of the delay.
        sleep: Coroutine used to wait between attempts, in seconds.

    Returns:
        The first successful result of ``fn``.

    Raises:
        Exception: The last error when attempts are exhausted, or the first
            non-retryable error.

    """
    attempts = max(max_attempts, 1)
    for attempt in range(attempts):
        try:
            return await fn()
        except Exception as exc:
            if attempt == attempts - 1 or not is_retryable_error(exc):
                raise
            delay_ms = calculate_retry_delay(attempt, base_delay_ms, max_delay_ms)
            code = exc.code.value if isinstance(exc, RestorepointError) else type(exc).__name__
            logger.warning(
                "[%s] Retrying operation after %dms (attempt %d/%d, code=%s).",
                context or "retry",
                delay_ms,
                attempt + 1,
                attempts,
                code,
            )
            await sleep(delay_ms / 1000)
    msg = "retry loop exited without a result"
    raise AssertionError(msg)  # pragma: no cover


class CircuitState(StrEnum):
    """States of a circuit breaker."""

    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(slots=True)
class CircuitBreakerState:
    """Mutable bookkeeping for one circuit breaker."""

    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: float = 0.0
    trial_in_flight: bool = False


class CircuitBreaker:
    """Stop calling a failing dependency for a cooldown period.

    ``failure_threshold`` consecutive failures open the circuit. While open,
    calls fail fast with ``NETWORK_UNAVAILABLE``. Once ``reset_timeout_ms`` has
    elapsed since the last failure, a single trial call is let through
    (half-open) while concurrent calls keep failing fast: success closes the
    circuit, failure re-opens it.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout_ms: int = 60000,
        *,
        name: str = "circuit",
        clock: Callable[[], float] = time.monotonic,
        is_failure: Callable[[BaseException], bool] | None = None,
    ) -> None:
        """Initialize a closed breaker.

        Args:
            failure_threshold: Failures needed to open the circuit.
            reset_timeout_ms: Cooldown before a half-open trial call is allowed.
            name: Label used in log lines.
            clock: Monotonic clock in seconds.
            is_failure: Predicate selecting which exceptions count as failures;
                by default every exception counts.

        """
        self.failure_threshold = failure_threshold
        self.reset_timeout_ms = reset_timeout_ms
        self.name = name
        self.state = CircuitBreakerState()
        self._clock = clock
        self._is_failure = is_failure

    async def call[T](self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Invoke ``fn`` through the breaker."""
        now = self._clock()
        elapsed_ms = (now - self.state.last_failure_time) * 1000
        if self.state.state is CircuitState.OPEN and elapsed_ms > self.reset_timeout_ms:
            self.state.state = CircuitState.HALF_OPEN
            self.state.failure_count = 0
            logger.info("Circuit breaker '%s' entering HALF_OPEN state.", self.name)

        if self.state.state is CircuitState.OPEN:
            raise self._unavailable("Circuit breaker is OPEN - service temporarily unavailable")
        trial = self.state.state is CircuitState.HALF_OPEN
        if trial:
            if self.state.trial_in_flight:
                raise self._unavailable("Circuit breaker is HALF_OPEN - trial request in progress")
            self.state.trial_in_flight = True

        try:
            result = await fn(*args, **kwargs)
        except Exception as exc:
            if self._is_failure is None or self._is_failure(exc):
                self._record_failure(self._clock())
            raise
        finally:
            if trial:
                self.state.trial_in_flight = False

        self._record_success()
        return result

    def _unavailable(self, message: str) -> RestorepointError:
        return RestorepointError(
            ErrorCode.NETWORK_UNAVAILABLE,
            message,
            HTTP_SERVICE_UNAVAILABLE,
            {"circuit": self.name},
        )

    def reset(self) -> None:
        """Force the breaker back to a closed state."""
        self.state = CircuitBreakerState()

    def _record_failure(self, now: float) -> None:
        self.state.failure_count += 1
        self.state.last_failure_time = now
        if self.state.state is CircuitState.HALF_OPEN or self.state.failure_count >= self.failure_threshold:
            self.state.state = CircuitState.OPEN
            logger.warning(
                "Circuit breaker '%s' OPENED after %d failure(s) (threshold %d).",
                self.name,
                self.state.failure_count,
                self.failure_threshold,
            )

    def _record_success(self) -> None:
        if self.state.state is CircuitState.HALF_OPEN:
            logger.info("Circuit breaker '%s' CLOSED after successful request.", self.name)
        self.state.state = CircuitState.CLOSED
        self.state.failure_count = 0


def create_circuit_breaker[T](
    fn: Callable[[], Awaitable[T]],
    failure_threshold: int = 5,
    reset_timeout_ms: int = 60000,
    **breaker_options: Any,
) -> Callable[[], Awaitable[T]]:
    """Wrap a zero-argument coroutine function in its own ``CircuitBreaker``.

    The breaker is available on the returned callable as ``.breaker``.
    """
    breaker = CircuitBreaker(failure_threshold, reset_timeout_ms, **breaker_options)

    @wraps(fn)
    async def guarded() -> T:
        return await breaker.call(fn)

    guarded.breaker = breaker  # type: ignore[attr-defined]
    return guarded


__all__ = [
    "RETRYABLE_CODES",
    "CircuitBreaker",
    "CircuitBreakerState",
    "CircuitState",
    "calculate_retry_delay",
    "create_circuit_breaker",
    "is_retryable_error",
    "retry_with_backoff",
]
