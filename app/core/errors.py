"""Error types shared by the upstream clients and the HTTP layer."""

import json
from enum import Enum

import httpx


class UpstreamErrorKind(str, Enum):
    """Classification of a failed outbound call."""

    CLIENT_REJECTION = "client_rejection"
    SERVER_ERROR = "server_error"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    UNAVAILABLE = "unavailable"
    INVALID_RESPONSE = "invalid_response"


class UpstreamError(Exception):
    """Raised when a call to the postal or geocoding provider fails.

    Carries an explicit ``kind`` so retry, breaker and fallback decisions can
    match on it instead of inspecting response objects.
    """

    def __init__(
        self,
        service: str,
        kind: UpstreamErrorKind,
        message: str,
        http_status: int | None = None,
    ) -> None:
        super().__init__(message)
        self.service = service
        self.kind = kind
        self.message = message
        self.http_status = http_status

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(service={self.service!r}, "
            f"kind={self.kind.value!r}, http_status={self.http_status!r})"
        )


class CircuitBreakerOpenError(UpstreamError):
    """Raised without calling the upstream while its breaker is OPEN."""

    def __init__(self, service: str) -> None:
        super().__init__(
            service,
            UpstreamErrorKind.UNAVAILABLE,
            f"Circuit breaker is OPEN for {service}",
        )


TRANSIENT_KINDS = frozenset({UpstreamErrorKind.TIMEOUT, UpstreamErrorKind.CONNECTION})

# 4xx statuses that still say something about upstream health
_HEALTH_RELEVANT_4XX = frozenset({408, 429})


def is_transient(error: BaseException) -> bool:
    """Whether an error is a timeout or dropped connection worth one retry."""
    return isinstance(error, UpstreamError) and error.kind in TRANSIENT_KINDS


def is_client_rejection(error: BaseException, status: int | None = None) -> bool:
    """Whether an error is a 4xx rejection, optionally with a specific status."""
    if not isinstance(error, UpstreamError):
        return False
    if error.kind is not UpstreamErrorKind.CLIENT_REJECTION:
        return False
    return status is None or error.http_status == status


def counts_as_upstream_failure(error: BaseException) -> bool:
    """Breaker predicate: client rejections prove the upstream is answering."""
    if (
        isinstance(error, UpstreamError)
        and error.kind is UpstreamErrorKind.CLIENT_REJECTION
    ):
        return error.http_status in _HEALTH_RELEVANT_4XX
    return True


def map_httpx_error(service: str, exc: Exception) -> UpstreamError:
    """Convert an httpx (or JSON decoding) exception into an UpstreamError."""
    if isinstance(exc, UpstreamError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return UpstreamError(
            service, UpstreamErrorKind.TIMEOUT, f"Request to {service} timed out"
        )
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        reason = exc.response.reason_phrase or ""
        kind = (
            UpstreamErrorKind.CLIENT_REJECTION
            if 400 <= status < 500
            else UpstreamErrorKind.SERVER_ERROR
        )
        return UpstreamError(
            service, kind, f"Non-200 response: {status} {reason}".strip(), status
        )
    if isinstance(exc, httpx.TransportError):
        return UpstreamError(
            service,
            UpstreamErrorKind.CONNECTION,
            f"Connection to {service} failed: {exc.__class__.__name__}",
        )
    if isinstance(exc, (json.JSONDecodeError, ValueError, KeyError, TypeError)):
        return UpstreamError(
            service,
            UpstreamErrorKind.INVALID_RESPONSE,
            f"Invalid response from {service}: {exc}",
        )
    return UpstreamError(service, UpstreamErrorKind.SERVER_ERROR, str(exc))


class AppError(Exception):
    """Base error for failures reported to HTTP clients."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Request payload failed validation."""

    status_code = 400


class BatchTooLargeError(AppError):
    """Batch request exceeds the configured maximum."""

    status_code = 413

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Batch of {size} locations exceeds the limit of {limit}")
        self.size = size
        self.limit = limit
