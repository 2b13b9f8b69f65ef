"""
Service layer exceptions.

Everything raised out of the retry executor or the metric service is a
ServiceError subclass, so callers can branch on type instead of parsing
messages.
"""

from typing import Any


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for aggregation results and logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": str(self),
            "service_id": self.service_id,
        }


class CircuitOpenError(ServiceError):
    """Circuit breaker is open, request blocked."""

    def __init__(self, service_id: str, reset_after_seconds: float):
        self.reset_after_seconds = reset_after_seconds
        super().__init__(
            f"Circuit breaker open for service '{service_id}', "
            f"retry after {reset_after_seconds:.1f}s",
            service_id=service_id,
        )


class RetriesExhaustedError(ServiceError):
    """Transient failures persisted through every retry attempt."""

    def __init__(self, service_id: str, attempts: int, cause: BaseException):
        self.attempts = attempts
        self.cause = cause
        super().__init__(
            f"Service '{service_id}' failed after {attempts} attempts: {cause}",
            service_id=service_id,
        )


class NonRetryableError(ServiceError):
    """Upstream rejected the request; retrying would not help."""

    def __init__(
        self,
        service_id: str,
        cause: BaseException,
        status_code: int | None = None,
    ):
        self.cause = cause
        self.status_code = status_code
        msg = f"Service '{service_id}' rejected the request"
        if status_code:
            msg += f" (HTTP {status_code})"
        super().__init__(f"{msg}: {cause}", service_id=service_id)


class NormalizationError(ServiceError):
    """Upstream answered 2xx with a payload we could not interpret."""

    pass


class DeadlineExceededError(ServiceError):
    """The caller's deadline expired before the upstream answered."""

    def __init__(self, service_id: str, deadline: float):
        self.deadline = deadline
        super().__init__(
            f"Deadline exceeded while calling service '{service_id}'",
            service_id=service_id,
        )


class RequestTimeoutError(ServiceError):
    """A single attempt timed out."""

    def __init__(self, service_id: str, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request to service '{service_id}' timed out after {timeout}s",
            service_id=service_id,
        )


class TransientUpstreamError(ServiceError):
    """Retryable failure detected inside a 2xx response body."""

    pass


class InvalidParamsError(ServiceError):
    """Caller supplied parameters the upstream adapter cannot use."""

    pass


class UnknownUpstreamError(ServiceError):
    """No adapter registered under the requested upstream id."""

    def __init__(self, service_id: str):
        super().__init__(f"Unknown upstream '{service_id}'", service_id=service_id)
