"""
MetricService - Cached, fault-tolerant access to every registered upstream.

Combines:
- TTLCache for normalized results (with stale fallback)
- RetryExecutor gated by per-upstream circuit breakers
- RequestDeduplicator so concurrent identical misses share one fetch
- The family normalizers, applied before anything is cached
"""

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

import httpx
from loguru import logger

from siteintel.datasource.base import BaseUpstream, UpstreamRequest
from siteintel.datasource.registry import UpstreamRegistry, default_registry
from siteintel.normalize import Normalized
from siteintel.services.cache import TTLCache
from siteintel.services.circuit_breaker import (
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
)
from siteintel.services.deduplicator import RequestDeduplicator
from siteintel.services.errors import (
    InvalidParamsError,
    NormalizationError,
    ServiceError,
)
from siteintel.services.retry import RetryExecutor, RetryPolicy
from siteintel.settings import Settings, global_settings


@dataclass
class MetricResult:
    """Result from a metric fetch."""

    data: Normalized
    upstream_id: str
    from_cache: str | None = None  # 'memory' | 'stale' | None
    is_stale: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "upstream_id": self.upstream_id,
            "from_cache": self.from_cache,
            "is_stale": self.is_stale,
            "data": self.data.model_dump(mode="json"),
        }


@dataclass
class AggregateResult:
    """Results of several metric fetches; failures are reported per name."""

    results: dict[str, MetricResult] = field(default_factory=dict)
    errors: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "results": {name: r.to_dict() for name, r in self.results.items()},
            "errors": self.errors,
        }


class MetricService:
    """
    Fetches, normalizes and caches upstream metrics.

    Usage:
        async with MetricService.from_settings() as service:
            result = await service.fetch_metric(
                "bls", {"state": "37", "county": "119"}
            )
            print(result.data.derived.change_percent)

            report = await service.fetch_many({
                "unemployment": ("bls", {"state": "37", "county": "119"}),
                "income": ("census", {"state": "37", "county": "119"}),
            })
    """

    def __init__(
        self,
        upstreams: UpstreamRegistry,
        cache: TTLCache | None = None,
        breakers: CircuitBreakerRegistry | None = None,
        executor: RetryExecutor | None = None,
        http_client: httpx.AsyncClient | None = None,
        default_policy: RetryPolicy | None = None,
        debug: bool = False,
    ):
        self._upstreams = upstreams
        self._cache = cache or TTLCache(debug=debug)
        self._breakers = breakers or CircuitBreakerRegistry()
        self._executor = executor or RetryExecutor(self._breakers)
        self._deduplicator = RequestDeduplicator(debug=debug)
        self._default_policy = default_policy or RetryPolicy()
        self._debug = debug

        # Clients passed in are owned by the caller
        self._http_client = http_client
        self._owns_http_client = http_client is None

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> "MetricService":
        """Build a service with every built-in upstream configured from settings."""
        settings = settings or global_settings

        breakers = CircuitBreakerRegistry(
            CircuitBreakerConfig(
                failure_threshold=settings.breaker_failure_threshold,
                cooldown=timedelta(seconds=settings.breaker_cooldown_seconds),
            )
        )
        return cls(
            upstreams=default_registry(settings),
            cache=TTLCache(
                max_size=settings.cache_max_size,
                shards=settings.cache_shards,
                debug=settings.debug,
            ),
            breakers=breakers,
            executor=RetryExecutor(breakers),
            http_client=http_client,
            default_policy=RetryPolicy(
                max_attempts=settings.retry_max_attempts,
                base_delay=settings.retry_base_delay,
                max_delay=settings.retry_max_delay,
                per_attempt_timeout=settings.request_timeout,
            ),
            debug=settings.debug,
        )

    @property
    def cache(self) -> TTLCache:
        return self._cache

    @property
    def upstreams(self) -> UpstreamRegistry:
        return self._upstreams

    def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            # Per-attempt timeouts are enforced by the executor
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(None),
                follow_redirects=True,
            )
        return self._http_client

    async def fetch_metric(
        self,
        upstream_id: str,
        params: dict[str, Any] | None = None,
        *,
        deadline: float | None = None,
        use_cache: bool = True,
    ) -> MetricResult:
        """
        Fetch one normalized metric.

        Args:
            upstream_id: Registered upstream id (e.g. "bls", "fbi")
            params: Upstream query parameters; defaults are filled in
            deadline: Absolute ``time.monotonic()`` value bounding the fetch
            use_cache: Skip the fresh-cache lookup and stale fallback when False

        Returns:
            MetricResult with normalized data

        Raises:
            UnknownUpstreamError: No upstream registered under ``upstream_id``
            InvalidParamsError: Parameters failed validation
            CircuitOpenError: Breaker open and no stale data
            RetriesExhaustedError: Transient failures and no stale data
            NonRetryableError: Upstream rejected the request and no stale data
            NormalizationError: Payload could not be read and no stale data
            DeadlineExceededError: Deadline expired and no stale data
        """
        upstream = self._upstreams.get(upstream_id)
        clean = upstream.validate(params or {})
        cache_key = self._cache.generate_key(upstream_id, clean)

        if use_cache:
            cached = self._cache.get(cache_key)
            if cached:
                return MetricResult(
                    data=cached.data,
                    upstream_id=upstream_id,
                    from_cache=cached.from_cache,
                )

        try:
            data = await self._deduplicator.dedupe(
                cache_key,
                lambda: self._load(upstream, clean, cache_key, deadline),
            )
        except ServiceError as e:
            stale = self._cache.get_stale(cache_key) if use_cache else None
            if stale is None:
                raise
            logger.warning(f"[{upstream_id}] Fetch failed, returning stale data: {e}")
            return MetricResult(
                data=stale.data,
                upstream_id=upstream_id,
                from_cache=stale.from_cache,
                is_stale=stale.is_stale,
            )

        return MetricResult(data=data, upstream_id=upstream_id)

    async def _load(
        self,
        upstream: BaseUpstream,
        params: dict[str, Any],
        cache_key: str,
        deadline: float | None,
    ) -> Normalized:
        """Fetch, normalize and cache. Runs once per in-flight key."""
        # Built outside the executor so local errors never reach the breaker
        try:
            requests = upstream.build_requests(params)
        except (ValueError, KeyError, TypeError) as e:
            raise InvalidParamsError(
                f"Could not build request: {e}", service_id=upstream.service_id
            ) from e

        policy = upstream.retry_policy or self._default_policy
        payloads = await self._executor.execute(
            upstream.service_id,
            policy,
            lambda: self._fetch_payloads(upstream, requests),
            deadline=deadline,
        )

        try:
            data = upstream.normalize(upstream.combine(requests, payloads), params)
        except NormalizationError as e:
            logger.error(f"[{upstream.service_id}] Normalization failed: {e}")
            raise
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"[{upstream.service_id}] Normalization failed: {e!r}")
            raise NormalizationError(
                f"Could not normalize payload: {e}", service_id=upstream.service_id
            ) from e

        self._cache.set(cache_key, data, ttl=upstream.cache_ttl)
        return data

    async def _fetch_payloads(
        self, upstream: BaseUpstream, requests: list[UpstreamRequest]
    ) -> list[Any]:
        """
        One attempt: send every request concurrently.

        The first failure fails the attempt; the remaining requests are
        cancelled and awaited before it propagates.
        """
        tasks = [asyncio.ensure_future(self._send(upstream, r)) for r in requests]
        try:
            return list(await asyncio.gather(*tasks))
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

    async def _send(self, upstream: BaseUpstream, request: UpstreamRequest) -> Any:
        """Execute one HTTP request and return its decoded body."""
        client = self._get_http_client()
        response = await client.request(
            method=request.method,
            url=request.url,
            params=request.params,
            json=request.json,
            headers=request.headers,
        )
        response.raise_for_status()

        # Census answers 204 for vintages it has not published
        if response.status_code == 204 or not response.content:
            payload = None
        else:
            try:
                payload = response.json()
            except ValueError:
                payload = response.text

        upstream.check_payload(payload)
        return payload

    async def fetch_many(
        self,
        queries: dict[str, tuple[str, dict[str, Any]]],
        *,
        deadline: float | None = None,
    ) -> AggregateResult:
        """
        Fetch several metrics concurrently.

        Args:
            queries: name -> (upstream_id, params)
            deadline: Shared absolute deadline for every fetch

        Returns:
            AggregateResult; a failing source is reported in ``errors``
            and never fails the others
        """
        names = list(queries)
        outcomes = await asyncio.gather(
            *(
                self.fetch_metric(upstream_id, params, deadline=deadline)
                for upstream_id, params in queries.values()
            ),
            return_exceptions=True,
        )

        aggregate = AggregateResult()
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, ServiceError):
                aggregate.errors[name] = outcome.to_dict()
            elif isinstance(outcome, Exception):
                logger.error(f"Unexpected error fetching '{name}': {outcome!r}")
                aggregate.errors[name] = {
                    "error_type": type(outcome).__name__,
                    "message": str(outcome),
                    "service_id": queries[name][0],
                }
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                aggregate.results[name] = outcome

        if aggregate.errors:
            logger.warning(
                f"Aggregate fetch: {len(aggregate.results)} ok, "
                f"{len(aggregate.errors)} failed ({', '.join(aggregate.errors)})"
            )
        return aggregate

    async def close(self) -> None:
        """Close the HTTP client and cancel in-flight fetches."""
        await self._deduplicator.cancel_all()
        if self._http_client and self._owns_http_client:
            await self._http_client.aclose()
        self._http_client = None
        logger.debug("MetricService closed")

    async def __aenter__(self) -> "MetricService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # Admin and status methods

    def clear_cache(self, prefix: str | None = None, upstream_id: str | None = None) -> int:
        """
        Clear cached metrics.

        ``upstream_id`` clears exactly one upstream's entries ("census" does
        not touch "census_profile"); ``prefix`` matches raw key prefixes.
        With neither, everything is cleared.
        """
        if upstream_id is not None:
            self._upstreams.get(upstream_id)
            prefix = self._cache.key_prefix(upstream_id)
        return self._cache.clear(prefix)

    def get_breaker_states(self) -> dict[str, dict[str, Any]]:
        """Breaker status for every registered upstream."""
        return {
            upstream_id: self._breakers.get_status(upstream_id)
            for upstream_id in self._upstreams.ids()
        }

    def reset_circuit(self, upstream_id: str) -> bool:
        """Reset the breaker of a registered upstream."""
        self._upstreams.get(upstream_id)
        return self._breakers.reset(upstream_id)

    def get_health_status(self) -> dict[str, Any]:
        """Get health status of the service layer."""
        return {
            "cache": self._cache.get_stats().to_dict(),
            "circuit_breakers": self._breakers.get_all_status(),
            "deduplicator": self._deduplicator.get_stats().to_dict(),
            "open_circuits": self._breakers.get_open_circuits(),
            "upstreams": {u.service_id: u.is_configured() for u in self._upstreams},
        }

