"""Tests for upstream error classification."""

import httpx
import pytest

from app.core.errors import (
    AppError,
    BatchTooLargeError,
    CircuitBreakerOpenError,
    UpstreamError,
    UpstreamErrorKind,
    ValidationError,
    counts_as_upstream_failure,
    is_client_rejection,
    is_transient,
    map_httpx_error,
)


def status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://upstream.test/resource")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError("error", request=request, response=response)


class TestMapHttpxError:
    """httpx exceptions become tagged UpstreamErrors."""

    def test_timeout(self):
        error = map_httpx_error("usps", httpx.ReadTimeout("slow"))

        assert error.kind is UpstreamErrorKind.TIMEOUT
        assert is_transient(error)

    def test_connection_error(self):
        error = map_httpx_error("usps", httpx.ConnectError("refused"))

        assert error.kind is UpstreamErrorKind.CONNECTION
        assert is_transient(error)

    def test_client_rejection_keeps_status(self):
        error = map_httpx_error("usps", status_error(400))

        assert error.kind is UpstreamErrorKind.CLIENT_REJECTION
        assert error.http_status == 400
        assert str(error) == "Non-200 response: 400 Bad Request"
        assert not is_transient(error)

    def test_server_error(self):
        error = map_httpx_error("googleMaps", status_error(503))

        assert error.kind is UpstreamErrorKind.SERVER_ERROR
        assert error.service == "googleMaps"

    def test_invalid_json(self):
        error = map_httpx_error("usps", ValueError("Expecting value"))

        assert error.kind is UpstreamErrorKind.INVALID_RESPONSE

    def test_upstream_error_passes_through(self):
        original = UpstreamError("usps", UpstreamErrorKind.TIMEOUT, "t")

        assert map_httpx_error("usps", original) is original


class TestClassification:
    """Predicates used by retry, breaker and fallback decisions."""

    def test_is_client_rejection_with_status(self):
        error = UpstreamError("usps", UpstreamErrorKind.CLIENT_REJECTION, "x", 400)

        assert is_client_rejection(error)
        assert is_client_rejection(error, status=400)
        assert not is_client_rejection(error, status=404)
        assert not is_client_rejection(RuntimeError("x"))

    @pytest.mark.parametrize(
        "kind,status,expected",
        [
            (UpstreamErrorKind.CLIENT_REJECTION, 400, False),
            (UpstreamErrorKind.CLIENT_REJECTION, 404, False),
            (UpstreamErrorKind.CLIENT_REJECTION, 429, True),
            (UpstreamErrorKind.CLIENT_REJECTION, 408, True),
            (UpstreamErrorKind.SERVER_ERROR, 500, True),
            (UpstreamErrorKind.TIMEOUT, None, True),
        ],
    )
    def test_counts_as_upstream_failure(self, kind, status, expected):
        error = UpstreamError("svc", kind, "x", status)

        assert counts_as_upstream_failure(error) is expected

    def test_non_upstream_errors_count_as_failures(self):
        assert counts_as_upstream_failure(RuntimeError("bug"))

    def test_breaker_open_error_is_distinguishable(self):
        error = CircuitBreakerOpenError("usps")

        assert isinstance(error, UpstreamError)
        assert error.kind is UpstreamErrorKind.UNAVAILABLE
        assert str(error) == "Circuit breaker is OPEN for usps"
        assert not is_transient(error)


class TestAppErrors:
    def test_status_codes(self):
        assert AppError("x").status_code == 500
        assert AppError("x", status_code=418).status_code == 418
        assert ValidationError("x").status_code == 400

        error = BatchTooLargeError(101, 100)
        assert error.status_code == 413
        assert "101" in str(error) and "100" in str(error)
