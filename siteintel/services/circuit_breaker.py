"""
CircuitBreaker - Stops calling an upstream that keeps failing.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Upstream is failing, requests are rejected without a call
- HALF_OPEN: Cooldown elapsed, exactly one probe request is let through

Transitions:
- CLOSED → OPEN: When consecutive failures reach failure_threshold
- OPEN → HALF_OPEN: After cooldown expires
- HALF_OPEN → CLOSED: Probe succeeded
- HALF_OPEN → OPEN: Probe failed (cooldown restarts)
"""

import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Any, Callable

from loguru import logger


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "CLOSED"  # Normal operation
    OPEN = "OPEN"  # Blocking requests
    HALF_OPEN = "HALF_OPEN"  # Probing recovery


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker."""

    failure_threshold: int = 5  # Consecutive failures before opening
    cooldown: timedelta = timedelta(minutes=5)  # Time before half-open


class CircuitBreaker:
    """
    Circuit breaker for a single upstream.

    ``allow_request`` never raises; callers decide what an open circuit
    means for them.

    Usage:
        cb = CircuitBreaker("bls")

        if not cb.allow_request():
            raise CircuitOpenError("bls", cb.get_time_until_reset() or 0)

        try:
            result = await make_request()
        except Exception:
            cb.record_failure()
            raise
        cb.record_success()
    """

    def __init__(
        self,
        service_id: str,
        config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.service_id = service_id
        self.config = config or CircuitBreakerConfig()
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at: float | None = None
        self._probe_in_flight = False
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        """Get current state, applying the OPEN → HALF_OPEN transition."""
        with self._lock:
            return self._current_state()

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def _current_state(self) -> CircuitState:
        if self._state == CircuitState.OPEN and self._cooldown_elapsed():
            self._state = CircuitState.HALF_OPEN
            self._probe_in_flight = False
            logger.info(f"Circuit breaker '{self.service_id}' transitioned to HALF_OPEN")
        return self._state

    def _cooldown_elapsed(self) -> bool:
        if self._opened_at is None:
            return True
        elapsed = self._clock() - self._opened_at
        return elapsed >= self.config.cooldown.total_seconds()

    def allow_request(self) -> bool:
        """
        Check whether a call may be attempted now.

        In HALF_OPEN the first caller receives the single probe slot; every
        other caller is rejected until the probe reports back.
        """
        with self._lock:
            state = self._current_state()
            if state == CircuitState.CLOSED:
                return True
            if state == CircuitState.OPEN:
                return False
            if self._probe_in_flight:
                return False
            self._probe_in_flight = True
            return True

    def record_success(self) -> None:
        """Record a successful call."""
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._close()
            elif self._state == CircuitState.CLOSED:
                # A single success clears the failure streak
                self._consecutive_failures = 0

    def record_failure(self) -> None:
        """Record a failed call."""
        with self._lock:
            self._consecutive_failures += 1

            if self._state == CircuitState.HALF_OPEN:
                self._open()
            elif self._state == CircuitState.CLOSED:
                if self._consecutive_failures >= self.config.failure_threshold:
                    self._open()

    def release_probe(self) -> None:
        """Give back the HALF_OPEN probe slot without deciding a transition."""
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                self._probe_in_flight = False

    def _open(self) -> None:
        self._state = CircuitState.OPEN
        self._opened_at = self._clock()
        self._probe_in_flight = False
        logger.warning(
            f"Circuit breaker '{self.service_id}' OPENED after "
            f"{self._consecutive_failures} consecutive failures"
        )

    def _close(self) -> None:
        self._state = CircuitState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = None
        self._probe_in_flight = False
        logger.info(f"Circuit breaker '{self.service_id}' CLOSED (recovered)")

    def reset(self) -> None:
        """Manually reset the circuit breaker."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._consecutive_failures = 0
            self._opened_at = None
            self._probe_in_flight = False
        logger.info(f"Circuit breaker '{self.service_id}' manually reset")

    def get_time_until_reset(self) -> float | None:
        """Get seconds until the circuit moves to HALF_OPEN."""
        with self._lock:
            if self._state != CircuitState.OPEN or self._opened_at is None:
                return None
            remaining = (
                self._opened_at + self.config.cooldown.total_seconds() - self._clock()
            )
            return max(0.0, remaining)

    def get_status(self) -> dict[str, Any]:
        """Get current status as dictionary."""
        state = self.state
        return {
            "service_id": self.service_id,
            "state": state.value,
            "consecutive_failures": self._consecutive_failures,
            "failure_threshold": self.config.failure_threshold,
            "opened_at": self._opened_at,
            "time_until_reset": self.get_time_until_reset(),
        }


class CircuitBreakerRegistry:
    """
    One circuit breaker per upstream id, created on first use.

    Usage:
        registry = CircuitBreakerRegistry()
        cb = registry.get("fbi")
    """

    def __init__(
        self,
        default_config: CircuitBreakerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._breakers: dict[str, CircuitBreaker] = {}
        self._default_config = default_config or CircuitBreakerConfig()
        self._clock = clock
        self._create_lock = threading.Lock()

    def get(
        self,
        service_id: str,
        config: CircuitBreakerConfig | None = None,
    ) -> CircuitBreaker:
        """Get or create the circuit breaker for an upstream."""
        breaker = self._breakers.get(service_id)
        if breaker is not None:
            return breaker
        with self._create_lock:
            breaker = self._breakers.get(service_id)
            if breaker is None:
                breaker = CircuitBreaker(
                    service_id,
                    config or self._default_config,
                    clock=self._clock,
                )
                self._breakers[service_id] = breaker
            return breaker

    def peek(self, service_id: str) -> CircuitBreaker | None:
        """Return the breaker if one exists, without creating it."""
        return self._breakers.get(service_id)

    def get_status(self, service_id: str) -> dict[str, Any]:
        """Status of an upstream's breaker; a never-used upstream reads as CLOSED."""
        cb = self.peek(service_id)
        if cb is None:
            # Unregistered stand-in so inspection never creates breakers
            cb = CircuitBreaker(service_id, self._default_config, clock=self._clock)
        return cb.get_status()

    def get_all_status(self) -> dict[str, dict[str, Any]]:
        """Get status of all circuit breakers."""
        return {
            service_id: cb.get_status()
            for service_id, cb in list(self._breakers.items())
        }

    def reset_all(self) -> None:
        """Reset all circuit breakers."""
        for cb in list(self._breakers.values()):
            cb.reset()
        logger.info(f"Reset {len(self._breakers)} circuit breakers")

    def reset(self, service_id: str) -> bool:
        """Reset a specific circuit breaker."""
        cb = self._breakers.get(service_id)
        if cb is None:
            return False
        cb.reset()
        return True

    def get_open_circuits(self) -> list[str]:
        """Get list of upstreams with open circuits."""
        return [
            service_id
            for service_id, cb in list(self._breakers.items())
            if cb.state == CircuitState.OPEN
        ]
