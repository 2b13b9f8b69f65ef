"""
RetryExecutor - Bounded retries with capped exponential backoff.

Every attempt is gated by the upstream's circuit breaker and reports its
outcome back to it. Only transient failures (timeouts, network errors,
HTTP 5xx and 429) are retried.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

import httpx
from loguru import logger

from siteintel.services.circuit_breaker import CircuitBreakerRegistry, CircuitState
from siteintel.services.errors import (
    CircuitOpenError,
    DeadlineExceededError,
    NonRetryableError,
    RequestTimeoutError,
    RetriesExhaustedError,
    TransientUpstreamError,
)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for one upstream."""

    max_attempts: int = 3
    base_delay: float = 1.0  # Seconds, doubled after every failed attempt
    max_delay: float = 10.0
    per_attempt_timeout: float = 15.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")
        if self.per_attempt_timeout <= 0:
            raise ValueError("per_attempt_timeout must be positive")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the failed attempt with 0-based index ``attempt``."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    def delays(self) -> list[float]:
        """The full backoff schedule between attempts."""
        return [self.delay_for(i) for i in range(self.max_attempts - 1)]


def classify_failure(error: BaseException) -> tuple[bool, int | None]:
    """
    Decide whether a failed attempt is worth retrying.

    Returns:
        (retryable, http_status_code)
    """
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status == 429 or status >= 500, status
    if isinstance(error, (httpx.TransportError, asyncio.TimeoutError, TimeoutError)):
        return True, None
    if isinstance(error, (RequestTimeoutError, TransientUpstreamError)):
        return True, None
    return False, None


class RetryExecutor:
    """
    Runs one upstream call with breaker gating, timeouts and backoff.

    Usage:
        executor = RetryExecutor(CircuitBreakerRegistry())
        payload = await executor.execute(
            "bls",
            RetryPolicy(max_attempts=3),
            lambda: fetch_json(request),
        )
    """

    def __init__(
        self,
        breakers: CircuitBreakerRegistry,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._breakers = breakers
        self._sleep = sleep
        self._clock = clock

    async def execute(
        self,
        upstream_id: str,
        policy: RetryPolicy,
        fn: Callable[[], Awaitable[T]],
        deadline: float | None = None,
    ) -> T:
        """
        Execute ``fn`` under the retry policy.

        Args:
            upstream_id: Identifier of the upstream (selects the breaker)
            policy: Attempts, backoff and per-attempt timeout
            fn: Zero-argument coroutine factory performing one attempt
            deadline: Absolute ``time.monotonic()`` value after which no
                attempt or backoff may continue

        Raises:
            CircuitOpenError: Breaker rejected the call
            NonRetryableError: Upstream rejected the request
            RetriesExhaustedError: Transient failures on every attempt
            DeadlineExceededError: The caller's deadline expired
        """
        breaker = self._breakers.get(upstream_id)
        last_error: Exception | None = None

        for attempt in range(policy.max_attempts):
            if not breaker.allow_request():
                raise CircuitOpenError(
                    upstream_id, breaker.get_time_until_reset() or 0
                ) from last_error

            timeout = policy.per_attempt_timeout
            deadline_bound = False
            if deadline is not None:
                remaining = deadline - self._clock()
                if remaining <= 0:
                    breaker.release_probe()
                    raise DeadlineExceededError(upstream_id, deadline) from last_error
                if remaining < timeout:
                    timeout, deadline_bound = remaining, True

            try:
                result = await asyncio.wait_for(fn(), timeout=timeout)
            except asyncio.CancelledError:
                breaker.release_probe()
                raise
            except Exception as e:
                if deadline_bound and isinstance(e, asyncio.TimeoutError):
                    breaker.release_probe()
                    raise DeadlineExceededError(upstream_id, deadline) from e

                breaker.record_failure()
                retryable, status = classify_failure(e)
                if not retryable:
                    logger.warning(f"[{upstream_id}] Non-retryable failure: {e!r}")
                    raise NonRetryableError(upstream_id, e, status) from e

                if isinstance(e, asyncio.TimeoutError):
                    e = RequestTimeoutError(upstream_id, timeout)
                last_error = e

                if attempt + 1 >= policy.max_attempts:
                    logger.error(
                        f"[{upstream_id}] Giving up after {policy.max_attempts} attempts: {e}"
                    )
                    raise RetriesExhaustedError(upstream_id, policy.max_attempts, e) from e

                # This failure opened the circuit
                if breaker.state == CircuitState.OPEN:
                    raise CircuitOpenError(
                        upstream_id, breaker.get_time_until_reset() or 0
                    ) from e

                delay = policy.delay_for(attempt)
                if deadline is not None and self._clock() + delay >= deadline:
                    raise DeadlineExceededError(upstream_id, deadline) from e

                logger.warning(
                    f"[{upstream_id}] Attempt {attempt + 1}/{policy.max_attempts} "
                    f"failed: {e}. Retrying in {delay:.1f}s"
                )
                await self._sleep(delay)
                continue

            breaker.record_success()
            return result

