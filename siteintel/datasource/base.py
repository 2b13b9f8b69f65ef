"""
Base upstream interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from siteintel.normalize import Family, Normalized, normalize
from siteintel.services.errors import InvalidParamsError
from siteintel.services.retry import RetryPolicy


@dataclass(frozen=True)
class UpstreamRequest:
    """One HTTP call an upstream needs to answer a query."""

    method: str
    url: str
    params: dict[str, Any] | None = None
    json: dict[str, Any] | None = None
    headers: dict[str, str] | None = None
    tag: str | None = None  # Lets combine() tell multi-request responses apart


def pad(value: Any, width: int) -> str:
    """Zero-pad FIPS codes ('7' -> '07')."""
    return str(value).strip().zfill(width)


class BaseUpstream(ABC):
    """
    Abstract base class for all upstream adapters.

    An upstream knows how to turn caller parameters into HTTP requests,
    how to authenticate them, how long its answers stay fresh, and which
    normalizer family reads its payloads. It never performs I/O itself;
    the metric service executes the requests.
    """

    service_id: str = "unknown"
    family: Family
    label: str = ""
    unit: str = ""
    cache_ttl: timedelta = timedelta(minutes=5)
    retry_policy: RetryPolicy | None = None
    required_params: tuple[str, ...] = ()
    defaults: dict[str, Any] = {}

    def __init__(self, api_key: str = ""):
        self.api_key = api_key

    def is_configured(self) -> bool:
        """Check if the upstream has the credentials it needs."""
        return bool(self.api_key)

    def validate(self, params: dict[str, Any]) -> dict[str, Any]:
        """
        Fill defaults and check required parameters.

        The returned dict is what the cache key is built from, so equivalent
        queries (with and without explicit defaults) share one entry.

        Raises:
            InvalidParamsError: A required parameter is missing or invalid
        """
        merged = {**self.defaults, **{k: v for k, v in params.items() if v not in (None, "")}}
        missing = [name for name in self.required_params if name not in merged]
        if missing:
            raise InvalidParamsError(
                f"Missing required parameter(s): {', '.join(missing)}",
                service_id=self.service_id,
            )
        return {k: str(v) for k, v in merged.items()}

    @abstractmethod
    def build_requests(self, params: dict[str, Any]) -> list[UpstreamRequest]:
        """Build the HTTP requests for validated parameters."""
        ...

    def check_payload(self, payload: Any) -> None:
        """
        Inspect a 2xx body for errors the upstream reports in-band.

        Raise TransientUpstreamError for retryable conditions and any other
        ServiceError for permanent ones.
        """
        return None

    def combine(self, requests: list[UpstreamRequest], payloads: list[Any]) -> Any:
        """Merge the responses of a multi-request query into one payload."""
        return payloads[0]

    def normalization_context(self, params: dict[str, Any]) -> dict[str, Any]:
        """Keyword arguments passed to the family normalizer."""
        return {"upstream_id": self.service_id, "label": self.label, "unit": self.unit}

    def normalize(self, payload: Any, params: dict[str, Any]) -> Normalized:
        return normalize(payload, self.family, **self.normalization_context(params))
