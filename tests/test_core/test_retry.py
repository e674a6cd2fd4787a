"""Tests for transient failure retry."""

import pytest

from app.core.errors import UpstreamError, UpstreamErrorKind
from app.core.retry import with_retry


class Flaky:
    """Fails with the given errors before succeeding."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return "done"


def upstream(kind, status=None):
    return UpstreamError("svc", kind, kind.value, status)


async def test_retries_timeout_once():
    operation = Flaky(upstream(UpstreamErrorKind.TIMEOUT))

    assert await with_retry(operation) == "done"
    assert operation.calls == 2


async def test_retries_connection_error_once():
    operation = Flaky(upstream(UpstreamErrorKind.CONNECTION))

    assert await with_retry(operation) == "done"


async def test_second_transient_failure_surfaces():
    operation = Flaky(
        upstream(UpstreamErrorKind.TIMEOUT), upstream(UpstreamErrorKind.TIMEOUT)
    )

    with pytest.raises(UpstreamError):
        await with_retry(operation)
    assert operation.calls == 2


async def test_client_rejection_is_not_retried():
    operation = Flaky(upstream(UpstreamErrorKind.CLIENT_REJECTION, 400))

    with pytest.raises(UpstreamError):
        await with_retry(operation)
    assert operation.calls == 1


async def test_zero_retries():
    operation = Flaky(upstream(UpstreamErrorKind.TIMEOUT))

    with pytest.raises(UpstreamError):
        await with_retry(operation, retries=0)
    assert operation.calls == 1


async def test_custom_predicate():
    operation = Flaky(RuntimeError("retry me"))

    assert await with_retry(operation, should_retry=lambda e: True) == "done"
