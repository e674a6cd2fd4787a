"""Tests for the USPS postal standardization client."""

import asyncio

import httpx
import pytest
from prometheus_client import REGISTRY

from app.core.circuit_breaker import CircuitState
from app.core.postal.service import (
    MISSING_FIELDS_ERROR,
    NO_ADDRESS_ERROR,
    TOKEN_ERROR,
    build_formatted_address,
    title_case,
)
from app.models.location import AddressInput
from tests.fixtures.upstream import USPS_TOKEN_URL, usps_address_response

SPRINGFIELD = AddressInput(
    street_address="123 main st",
    city="springfield",
    state="IL",
    zip_code="62701",
)


def usps_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json=usps_address_response(
            "123 MAIN ST", "SPRINGFIELD", "IL", "62701", abbreviation="123 MAIN ST"
        ),
    )


def upstream_count(outcome: str) -> float:
    value = REGISTRY.get_sample_value(
        "app_upstream_requests_total", {"service": "usps", "outcome": outcome}
    )
    return value or 0.0


class TestFormatting:
    def test_title_case(self):
        assert title_case("123 MAIN ST") == "123 Main St"
        assert title_case("o'FALLON") == "O'fallon"
        assert title_case(None) is None

    def test_build_formatted_address_prefers_abbreviation(self):
        address = {
            "streetAddress": "123 MAIN STREET",
            "streetAddressAbbreviation": "123 MAIN ST",
            "city": "SPRINGFIELD",
            "state": "IL",
            "ZIPCode": "62701",
        }

        assert build_formatted_address(address) == "123 Main St, Springfield, IL 62701"

    def test_build_formatted_address_skips_missing_parts(self):
        assert build_formatted_address({"streetAddress": "1 ELM RD"}) == "1 Elm Rd"


class TestCorrectAddress:
    """End-to-end behavior against the fake USPS API."""

    async def test_success(self, postal_service, fake_upstreams):
        fake_upstreams.usps_address = usps_ok
        successes = upstream_count("success")

        response = await postal_service.correct_address(SPRINGFIELD)

        assert response.status is True
        assert response.error is None
        location = response.location
        assert location.street_address == "123 Main St"
        assert location.city == "Springfield"
        assert location.state == "IL"
        assert location.zip_code == "62701"
        assert location.formatted_address == "123 Main St, Springfield, IL 62701"
        assert location.unformatted_address == "123 main st, springfield, IL, 62701"
        assert upstream_count("success") == successes + 1

    async def test_lookup_request(self, postal_service, fake_upstreams):
        fake_upstreams.usps_address = usps_ok

        await postal_service.correct_address(SPRINGFIELD)

        (lookup,) = fake_upstreams.usps_lookups
        assert lookup.headers["Authorization"] == "Bearer token-123"
        assert dict(lookup.url.params) == {
            "streetAddress": "123 main st",
            "city": "springfield",
            "state": "IL",
            "ZIPCode": "62701",
        }

    async def test_preprocessing_is_applied(self, postal_service, fake_upstreams):
        fake_upstreams.usps_address = usps_ok

        await postal_service.correct_address(
            AddressInput(street_address="9 N Elm St", state="michigan", zip_code="48852")
        )

        params = fake_upstreams.usps_lookups[0].url.params
        assert params["streetAddress"] == "9 N. Elm St."
        assert params["city"] == "Mount Pleasant"
        assert params["state"] == "MI"

    async def test_missing_fields(self, postal_service, fake_upstreams):
        response = await postal_service.correct_address(
            AddressInput(street_address="123 Main St", state="IL")
        )

        assert response.status is False
        assert response.error == MISSING_FIELDS_ERROR
        assert response.location.unformatted_address == "123 Main St, IL"
        assert fake_upstreams.requests == []

    async def test_token_failure(self, postal_service, fake_upstreams):
        fake_upstreams.token_handler = lambda request: httpx.Response(500)

        response = await postal_service.correct_address(SPRINGFIELD)

        assert response.status is False
        assert response.error == TOKEN_ERROR
        assert fake_upstreams.usps_lookups == []

    async def test_rejection_without_retry(self, postal_service, fake_upstreams):
        response = await postal_service.correct_address(
            AddressInput(street_address="1 Nowhere Ln", city="Springfield", state="IL")
        )

        assert response.status is False
        assert response.error == (
            "Error fetching USPS Address API: Non-200 response: 400 Bad Request"
        )
        assert response.location.street_address == "1 Nowhere Ln."
        assert len(fake_upstreams.usps_lookups) == 1

    async def test_retries_without_city(self, postal_service, fake_upstreams):
        def reject_city(request: httpx.Request) -> httpx.Response:
            if "city" in request.url.params:
                return httpx.Response(400, json={"error": "bad city"})
            return usps_ok(request)

        fake_upstreams.usps_address = reject_city

        response = await postal_service.correct_address(SPRINGFIELD)

        assert response.status is True
        assert response.error is None
        assert response.location.city == "Springfield"
        first, second = fake_upstreams.usps_lookups
        assert "city" in first.url.params
        assert "city" not in second.url.params
        assert second.url.params["ZIPCode"] == "62701"

    async def test_retry_without_city_failure_is_reported(
        self, postal_service, fake_upstreams
    ):
        fake_upstreams.usps_address = lambda request: httpx.Response(400)

        response = await postal_service.correct_address(SPRINGFIELD)

        assert response.status is False
        assert response.error.startswith("Error fetching USPS Address API:")
        assert len(fake_upstreams.usps_lookups) == 2

    async def test_response_without_address(self, postal_service, fake_upstreams):
        fake_upstreams.usps_address = lambda request: httpx.Response(
            200, json={"firm": ""}
        )

        response = await postal_service.correct_address(SPRINGFIELD)

        assert response.status is False
        assert response.error == NO_ADDRESS_ERROR

    async def test_unauthorized_invalidates_token(self, postal_service, fake_upstreams):
        fake_upstreams.usps_address = lambda request: httpx.Response(401)

        response = await postal_service.correct_address(SPRINGFIELD)

        assert response.status is False
        assert postal_service.token_manager.token is None

        fake_upstreams.usps_address = usps_ok
        response = await postal_service.correct_address(SPRINGFIELD)

        assert response.status is True
        assert len(fake_upstreams.requests_to(USPS_TOKEN_URL)) == 2

    async def test_concurrent_identical_lookups_are_deduplicated(
        self, postal_service, fake_upstreams
    ):
        fake_upstreams.usps_address = usps_ok

        responses = await asyncio.gather(
            *(postal_service.correct_address(SPRINGFIELD) for _ in range(3))
        )

        assert all(response.status for response in responses)
        assert len(fake_upstreams.usps_lookups) == 1


class TestResilience:
    async def test_server_errors_open_the_breaker(self, postal_service, fake_upstreams):
        fake_upstreams.usps_address = lambda request: httpx.Response(503)
        opened = upstream_count("breaker_open")

        for number in range(5):
            await postal_service.correct_address(
                AddressInput(street_address=f"{number} Main St", zip_code="62701")
            )

        assert postal_service.breaker.state is CircuitState.OPEN

        response = await postal_service.correct_address(SPRINGFIELD)

        assert response.error == (
            "Error fetching USPS Address API: Circuit breaker is OPEN for usps"
        )
        assert len(fake_upstreams.usps_lookups) == 5
        assert upstream_count("breaker_open") == opened + 1

    async def test_client_rejections_keep_the_breaker_closed(
        self, postal_service, fake_upstreams
    ):
        for number in range(6):
            await postal_service.correct_address(
                AddressInput(street_address=f"{number} Main St", zip_code="62701")
            )

        assert postal_service.breaker.state is CircuitState.CLOSED
        assert len(fake_upstreams.usps_lookups) == 6

    async def test_timeout_is_retried(self, postal_service, fake_upstreams):
        calls = []

        def flaky(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectTimeout("slow", request=request)
            return usps_ok(request)

        fake_upstreams.usps_address = flaky

        response = await postal_service.correct_address(SPRINGFIELD)

        assert response.status is True
        assert len(calls) == 2


async def test_get_stats_and_clear(postal_service, fake_upstreams):
    fake_upstreams.usps_address = usps_ok
    await postal_service.correct_address(SPRINGFIELD)

    stats = postal_service.get_stats()
    assert stats["circuit_breaker"]["state"] == "CLOSED"
    assert "pending_requests" in stats["deduplication"]

    postal_service.clear()
    assert postal_service.get_stats()["deduplication"]["pending_requests"] == 0
