"""
Pytest configuration and shared fixtures.

Time is always injected: breakers and caches read a FakeClock, and the
retry executor sleeps through a RecordingSleep that advances it.
"""

import httpx
import pytest

from siteintel.services.cache import TTLCache
from siteintel.services.circuit_breaker import CircuitBreakerRegistry
from siteintel.services.retry import RetryExecutor


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement recording every requested delay."""

    def __init__(self, clock: FakeClock | None = None):
        self.delays: list[float] = []
        self.clock = clock

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.clock is not None:
            self.clock.advance(delay)


class MockUpstream:
    """
    Scripted httpx transport.

    Each queued response is returned once, in order; the last one repeats.
    Every request is recorded for assertions.
    """

    def __init__(self, *responses: httpx.Response | Exception):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        # Fresh object per call; a response instance is bound to one request
        return httpx.Response(
            response.status_code, headers=response.headers, content=response.content
        )

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    @property
    def calls(self) -> int:
        return len(self.requests)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep(clock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def breakers(clock) -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry(clock=clock)


@pytest.fixture
def executor(breakers, sleep, clock) -> RetryExecutor:
    return RetryExecutor(breakers, sleep=sleep, clock=clock)


@pytest.fixture
def cache(clock) -> TTLCache:
    return TTLCache(clock=clock)


# =============================================================================
# Upstream payloads
# =============================================================================


def bls_payload(*rows: tuple[str, str, str]) -> dict:
    """BLS v2 response with (year, period, value) rows, newest first."""
    return {
        "status": "REQUEST_SUCCEEDED",
        "message": [],
        "Results": {
            "series": [
                {
                    "seriesID": "LAUCN371190000000003",
                    "data": [
                        {"year": y, "period": p, "periodName": "", "value": v}
                        for y, p, v in rows
                    ],
                }
            ]
        },
    }


@pytest.fixture
def bls_ok() -> dict:
    return bls_payload(
        ("2024", "M03", "4.4"),
        ("2024", "M02", "4.0"),
        ("2024", "M01", "4.2"),
        ("2023", "M13", "3.9"),
    )
