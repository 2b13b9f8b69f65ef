"""
HTTP exceptions and the mapping from service errors to them
"""

from fastapi import HTTPException, status

from siteintel.services.errors import (
    CircuitOpenError,
    DeadlineExceededError,
    InvalidParamsError,
    ServiceError,
    UnknownUpstreamError,
)


class ValidationError(HTTPException):
    """Validation error exception"""

    def __init__(self, detail: str | dict = "Validation error"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotFoundError(HTTPException):
    """Not found error exception"""

    def __init__(self, detail: str | dict = "Resource not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class UpstreamUnavailableError(HTTPException):
    """Upstream circuit is open"""

    def __init__(
        self, detail: str | dict = "Upstream unavailable", retry_after: float | None = None
    ):
        headers = None
        if retry_after is not None:
            headers = {"Retry-After": str(int(retry_after) + 1)}
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail, headers=headers
        )


class BadGatewayError(HTTPException):
    """Upstream failed or returned unusable data"""

    def __init__(self, detail: str | dict = "Bad gateway"):
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


class GatewayTimeoutError(HTTPException):
    """Upstream did not answer before the deadline"""

    def __init__(self, detail: str | dict = "Gateway timeout"):
        super().__init__(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=detail)


def to_http_exception(error: ServiceError) -> HTTPException:
    """Map a service error to the HTTP exception reported to callers."""
    detail = error.to_dict()
    if isinstance(error, InvalidParamsError):
        return ValidationError(detail)
    if isinstance(error, UnknownUpstreamError):
        return NotFoundError(detail)
    if isinstance(error, CircuitOpenError):
        return UpstreamUnavailableError(detail, retry_after=error.reset_after_seconds)
    if isinstance(error, DeadlineExceededError):
        return GatewayTimeoutError(detail)
    return BadGatewayError(detail)
