"""
Service layer infrastructure - resilience patterns for upstream API calls.

Provides:
- TTLCache: Per-entry expiry with stale fallback
- CircuitBreaker: Stops calling upstreams that keep failing
- RetryExecutor: Bounded retries with capped exponential backoff
- RequestDeduplicator: Prevents duplicate concurrent fetches

MetricService lives in ``siteintel.services.client`` and is imported from
there; the normalizers depend on this package's errors.
"""

from siteintel.services.errors import (
    ServiceError,
    CircuitOpenError,
    RetriesExhaustedError,
    NonRetryableError,
    NormalizationError,
    DeadlineExceededError,
    RequestTimeoutError,
    TransientUpstreamError,
    InvalidParamsError,
    UnknownUpstreamError,
)
from siteintel.services.cache import TTLCache, CacheEntry, CacheResult
from siteintel.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from siteintel.services.retry import RetryExecutor, RetryPolicy, classify_failure
from siteintel.services.deduplicator import RequestDeduplicator

__all__ = [
    # Errors
    "ServiceError",
    "CircuitOpenError",
    "RetriesExhaustedError",
    "NonRetryableError",
    "NormalizationError",
    "DeadlineExceededError",
    "RequestTimeoutError",
    "TransientUpstreamError",
    "InvalidParamsError",
    "UnknownUpstreamError",
    # Cache
    "TTLCache",
    "CacheEntry",
    "CacheResult",
    # Circuit Breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    # Retry
    "RetryExecutor",
    "RetryPolicy",
    "classify_failure",
    # Deduplicator
    "RequestDeduplicator",
]
