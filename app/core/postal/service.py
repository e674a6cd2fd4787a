"""Postal standardization client for the USPS Addresses API.

This module provides the postal address correction service that:
- Preprocesses input (directional periods, city corrections, state codes)
- Obtains and caches an OAuth token through ``TokenManager``
- Deduplicates identical lookups and guards the upstream with a circuit breaker
- Retries rejected lookups with the ZIP code alone when a city is suspect
"""

from typing import Any, Optional

import httpx

from app.core.circuit_breaker import CircuitBreaker
from app.core.config import settings
from app.core.dedup import RequestDeduplicator
from app.core.errors import (
    CircuitBreakerOpenError,
    UpstreamError,
    UpstreamErrorKind,
    counts_as_upstream_failure,
    is_client_rejection,
    map_httpx_error,
)
from app.core.logging import get_logger
from app.core.metrics import record_breaker_state, record_upstream_outcome
from app.core.postal.preprocessor import AddressPreprocessor
from app.core.postal.token import SERVICE_NAME, TokenManager
from app.core.retry import with_retry
from app.models.location import (
    AddressCorrectionResponse,
    AddressInput,
    AddressResult,
)

logger = get_logger(module="postal_service")

MISSING_FIELDS_ERROR = "Missing required fields for USPS address correction."
TOKEN_ERROR = "Could not retrieve USPS access token."
NO_ADDRESS_ERROR = "USPS response did not include an address."


def title_case(value: Optional[str]) -> Optional[str]:
    """Lowercase a string, then capitalize the first letter of each word."""
    if not value:
        return value
    return " ".join(word[:1].upper() + word[1:] for word in value.lower().split(" "))


def build_formatted_address(address: dict[str, Any]) -> str:
    """Format a USPS ``address`` object as ``Street, City, ST 12345``."""
    street = address.get("streetAddressAbbreviation") or address.get("streetAddress")
    formatted = title_case(street) or ""
    if address.get("city"):
        formatted += f", {title_case(address['city'])}"
    if address.get("state"):
        formatted += f", {address['state']}"
    if address.get("ZIPCode"):
        formatted += f" {address['ZIPCode']}"
    return formatted


def _address_result(
    street_address: Optional[str],
    city: Optional[str],
    state: Optional[str],
    zip_code: Optional[str],
    formatted_address: Optional[str] = None,
    unformatted_address: Optional[str] = None,
) -> AddressResult:
    return AddressResult(
        street_address=title_case(street_address) or None,
        city=title_case(city) or None,
        state=state or None,
        zip_code=zip_code or None,
        formatted_address=formatted_address or None,
        unformatted_address=unformatted_address or None,
    )


class PostalService:
    """Standardizes street addresses against the USPS Addresses API."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        token_manager: TokenManager | None = None,
        preprocessor: AddressPreprocessor | None = None,
        breaker: CircuitBreaker | None = None,
        deduplicator: RequestDeduplicator | None = None,
        address_url: str | None = None,
        retries: int | None = None,
    ) -> None:
        """Initialize the postal service.

        Every collaborator defaults to one built from settings, so tests can
        inject fakes (usually an ``httpx.AsyncClient`` on a mock transport).
        """
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.USPS_TIMEOUT)
        )
        self.breaker = breaker or CircuitBreaker.from_settings(
            SERVICE_NAME,
            is_failure=counts_as_upstream_failure,
            on_state_change=record_breaker_state,
        )
        self.deduplicator = deduplicator or RequestDeduplicator.from_settings(
            SERVICE_NAME
        )
        self.retries = settings.TRANSIENT_RETRIES if retries is None else retries
        self.token_manager = token_manager or TokenManager(
            client=self.client,
            token_url=settings.USPS_TOKEN_URL,
            client_id=settings.USPS_CONSUMER_KEY,
            client_secret=settings.USPS_CONSUMER_SECRET,
            breaker=self.breaker,
            deduplicator=self.deduplicator,
            scope=settings.USPS_TOKEN_SCOPE,
            refresh_margin=settings.USPS_TOKEN_REFRESH_MARGIN,
            retries=self.retries,
        )
        self.preprocessor = preprocessor or AddressPreprocessor()
        self.address_url = (address_url or settings.USPS_ADDRESS_URL).rstrip("/")

    async def correct_address(self, address: AddressInput) -> AddressCorrectionResponse:
        """Standardize an address; never raises.

        Args:
            address: Street address plus city and/or ZIP code, and state

        Returns:
            The standardized location, a status flag and an optional error
        """
        unformatted = ", ".join(
            value
            for value in (
                address.street_address,
                address.city,
                address.state,
                address.zip_code,
            )
            if value
        )
        fields = self.preprocessor.preprocess_address(
            street_address=address.street_address,
            city=address.city,
            state=address.state,
            zip_code=address.zip_code,
        )
        street, city, state, zip_code = (
            fields.street_address,
            fields.city,
            fields.state,
            fields.zip_code,
        )

        if not street or not (city or zip_code):
            logger.warning(
                "usps_missing_required_fields",
                has_street=bool(street),
                has_city=bool(city),
                has_zip=bool(zip_code),
            )
            return self._failure(
                street, city, state, zip_code, unformatted, MISSING_FIELDS_ERROR
            )

        token = await self.token_manager.get_token()
        if not token:
            return self._failure(
                street, city, state, zip_code, unformatted, TOKEN_ERROR
            )

        data: Optional[dict[str, Any]] = None
        error: Optional[str] = None
        try:
            data = await self._lookup(token, street, city, state, zip_code)
        except UpstreamError as e:
            error = f"Error fetching USPS Address API: {e}"
            logger.warning(
                "usps_lookup_failed",
                street_address=street,
                city=city,
                state=state,
                zip_code=zip_code,
                kind=e.kind.value,
                error=str(e),
            )
            if self.preprocessor.should_retry_without_city(
                e, has_city=bool(city), has_zip_code=bool(zip_code)
            ):
                logger.info("usps_retry_without_city", city=city, zip_code=zip_code)
                try:
                    data = await self._lookup(token, street, None, state, zip_code)
                    error = None
                except UpstreamError as retry_error:
                    error = f"Error fetching USPS Address API: {retry_error}"
                    logger.warning(
                        "usps_retry_without_city_failed",
                        kind=retry_error.kind.value,
                        error=str(retry_error),
                    )

        status = False
        formatted = ""
        if data is not None:
            returned = data.get("address") if isinstance(data, dict) else None
            if isinstance(returned, dict):
                formatted = build_formatted_address(returned)
                street = returned.get("streetAddress") or street
                city = returned.get("city") or city
                state = returned.get("state")
                zip_code = returned.get("ZIPCode")
                status = True
            else:
                error = NO_ADDRESS_ERROR

        return AddressCorrectionResponse(
            location=_address_result(
                street, city, state, zip_code, formatted, unformatted
            ),
            status=status,
            error=error,
        )

    def _failure(
        self,
        street: Optional[str],
        city: Optional[str],
        state: Optional[str],
        zip_code: Optional[str],
        unformatted: str,
        error: str,
    ) -> AddressCorrectionResponse:
        return AddressCorrectionResponse(
            location=_address_result(street, city, state, zip_code, None, unformatted),
            status=False,
            error=error,
        )

    async def _lookup(
        self,
        token: str,
        street: str,
        city: Optional[str],
        state: Optional[str],
        zip_code: Optional[str],
    ) -> dict[str, Any]:
        """Query the address endpoint under dedup, breaker and retry."""
        params = {"streetAddress": street}
        if city:
            params["city"] = city
        params["state"] = state or ""
        if zip_code:
            params["ZIPCode"] = zip_code

        async def request() -> dict[str, Any]:
            try:
                response = await self.client.get(
                    f"{self.address_url}/address",
                    params=params,
                    headers={"Authorization": f"Bearer {token}"},
                )
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise map_httpx_error(SERVICE_NAME, e) from e
            if not isinstance(data, dict):
                raise UpstreamError(
                    SERVICE_NAME,
                    UpstreamErrorKind.INVALID_RESPONSE,
                    "Invalid response from usps: expected a JSON object",
                )
            return data

        key = "|".join(
            ["usps:address", street, city or "", state or "", zip_code or ""]
        )
        try:
            result = await self.deduplicator.execute(
                key,
                lambda: self.breaker.execute(
                    lambda: with_retry(request, retries=self.retries)
                ),
            )
        except CircuitBreakerOpenError:
            record_upstream_outcome(SERVICE_NAME, "breaker_open")
            raise
        except UpstreamError as e:
            record_upstream_outcome(SERVICE_NAME, "error")
            if is_client_rejection(e, status=401):
                self.token_manager.invalidate()
            raise

        record_upstream_outcome(SERVICE_NAME, "success")
        return result

    def clear(self) -> None:
        self.deduplicator.clear()

    def get_stats(self) -> dict[str, Any]:
        """Deduplicator and circuit breaker snapshots."""
        return {
            "deduplication": self.deduplicator.get_stats(),
            "circuit_breaker": self.breaker.get_stats(),
        }

    async def aclose(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._owns_client:
            await self.client.aclose()


_postal_service: PostalService | None = None


def get_postal_service() -> PostalService:
    """Get or create the singleton postal service instance.

    Returns:
        PostalService instance
    """
    global _postal_service
    if _postal_service is None:
        _postal_service = PostalService()
    return _postal_service


def reset_postal_service() -> None:
    """Forget the singleton; used on shutdown and in tests."""
    global _postal_service
    _postal_service = None
