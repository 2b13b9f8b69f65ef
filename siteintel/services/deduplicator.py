"""
RequestDeduplicator - Collapses concurrent identical fetches into one.

When several requests miss the cache for the same key at the same time,
only the first starts an upstream fetch; the rest await its outcome.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


@dataclass
class _Flight:
    task: "asyncio.Task[Any]"
    waiters: int = 0


class RequestDeduplicator:
    """
    Shares one in-flight task per key.

    The in-flight map is only touched between awaits on a single event
    loop, so it needs no lock and unrelated keys never contend. A waiter
    that is cancelled leaves the shared task running for the others; the
    task itself is cancelled once its last waiter is gone.

    Usage:
        dedup = RequestDeduplicator()
        series = await dedup.dedupe(cache_key, lambda: load_series(params))
    """

    def __init__(self, debug: bool = False):
        self._in_flight: dict[str, _Flight] = {}
        self._debug = debug
        self._stats = DeduplicatorStats()

    async def dedupe(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[T]],
    ) -> T:
        """Run ``request_fn`` unless an identical request is already running."""
        flight = self._in_flight.get(key)
        if flight is None:
            self._stats.total += 1
            self._log(f"NEW: {key[:50]}")
            flight = _Flight(task=asyncio.ensure_future(request_fn()))
            self._in_flight[key] = flight
            flight.task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            self._stats.deduplicated += 1
            self._log(f"DEDUPE: joining in-flight request {key[:50]}")

        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        except asyncio.CancelledError:
            if flight.waiters == 1 and not flight.task.done():
                flight.task.cancel()
            raise
        finally:
            flight.waiters -= 1

    def _forget(self, key: str, task: "asyncio.Task[Any]") -> None:
        flight = self._in_flight.get(key)
        if flight is not None and flight.task is task:
            del self._in_flight[key]
        if not task.cancelled() and task.exception() is not None:
            self._log(f"FAILED: {key[:50]}")

    async def cancel_all(self) -> int:
        """Cancel all in-flight requests."""
        tasks = [flight.task for flight in self._in_flight.values()]
        self._in_flight.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            self._log(f"CANCEL_ALL: {len(tasks)} requests cancelled")
        return len(tasks)

    def get_in_flight_count(self) -> int:
        """Get number of in-flight requests."""
        return len(self._in_flight)

    def get_stats(self) -> "DeduplicatorStats":
        """Get deduplication statistics."""
        self._stats.in_flight = len(self._in_flight)
        return self._stats

    def _log(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[Deduplicator] {message}")


class DeduplicatorStats:
    """Statistics for request deduplication."""

    def __init__(self):
        self.total: int = 0  # Fetches actually started
        self.deduplicated: int = 0  # Callers that joined an existing fetch
        self.in_flight: int = 0

    @property
    def dedup_rate(self) -> float:
        total = self.total + self.deduplicated
        if total == 0:
            return 0.0
        return self.deduplicated / total

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_requests": self.total,
            "deduplicated": self.deduplicated,
            "in_flight": self.in_flight,
            "dedup_rate": f"{self.dedup_rate:.2%}",
        }
