"""
Unit tests for siteintel/services/deduplicator.py
"""

import asyncio

import pytest

from siteintel.services.deduplicator import RequestDeduplicator


class Gate:
    """Coroutine factory that blocks until released and counts starts."""

    def __init__(self, result="payload"):
        self.result = result
        self.started = 0
        self.release = asyncio.Event()
        self.cancelled = False

    async def __call__(self):
        self.started += 1
        try:
            await self.release.wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


async def settle():
    for _ in range(3):
        await asyncio.sleep(0)


class TestDedupe:
    async def test_concurrent_callers_share_one_fetch(self):
        dedup = RequestDeduplicator()
        gate = Gate()

        tasks = [asyncio.create_task(dedup.dedupe("k", gate)) for _ in range(3)]
        await settle()
        assert dedup.get_in_flight_count() == 1
        gate.release.set()

        assert await asyncio.gather(*tasks) == ["payload"] * 3
        assert gate.started == 1
        stats = dedup.get_stats()
        assert stats.total == 1
        assert stats.deduplicated == 2
        assert stats.in_flight == 0

    async def test_distinct_keys_fetch_separately(self):
        dedup = RequestDeduplicator()
        gate = Gate()
        gate.release.set()

        await asyncio.gather(dedup.dedupe("a", gate), dedup.dedupe("b", gate))
        assert gate.started == 2

    async def test_key_forgotten_after_completion(self):
        dedup = RequestDeduplicator()
        gate = Gate()
        gate.release.set()

        await dedup.dedupe("k", gate)
        await settle()
        await dedup.dedupe("k", gate)
        assert gate.started == 2
        assert dedup.get_in_flight_count() == 0

    async def test_failure_propagates_to_every_waiter(self):
        dedup = RequestDeduplicator()
        gate = Gate(result=RuntimeError("upstream down"))

        tasks = [asyncio.create_task(dedup.dedupe("k", gate)) for _ in range(2)]
        await settle()
        gate.release.set()

        results = await asyncio.gather(*tasks, return_exceptions=True)
        assert all(isinstance(r, RuntimeError) for r in results)
        assert gate.started == 1


class TestCancellation:
    async def test_cancelling_sole_waiter_cancels_fetch(self):
        dedup = RequestDeduplicator()
        gate = Gate()

        task = asyncio.create_task(dedup.dedupe("k", gate))
        await settle()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        await settle()

        assert gate.cancelled is True
        assert dedup.get_in_flight_count() == 0

    async def test_cancelling_one_of_two_waiters_keeps_fetch(self):
        dedup = RequestDeduplicator()
        gate = Gate()

        first = asyncio.create_task(dedup.dedupe("k", gate))
        second = asyncio.create_task(dedup.dedupe("k", gate))
        await settle()
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        gate.release.set()
        assert await second == "payload"
        assert gate.cancelled is False

    async def test_cancel_all(self):
        dedup = RequestDeduplicator()
        gate = Gate()

        task = asyncio.create_task(dedup.dedupe("k", gate))
        await settle()
        assert await dedup.cancel_all() == 1
        with pytest.raises(asyncio.CancelledError):
            await task
        assert gate.cancelled is True
        assert dedup.get_in_flight_count() == 0
