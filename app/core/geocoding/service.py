"""Geocoding service backed by the Google Maps Geocoding API.

This module provides the geocoding client that:
- Forward geocodes formatted addresses and reverse geocodes coordinates
- Looks up counties with a county-only reverse request
- Caches successful results in bounded TTL caches (failures are never cached)
- Collapses identical in-flight requests and guards the provider with a
  circuit breaker
"""

from typing import Any, Optional

import httpx

from app.core.cache import TTLCache, generate_geocache_key
from app.core.circuit_breaker import CircuitBreaker
from app.core.config import settings
from app.core.dedup import RequestDeduplicator
from app.core.errors import (
    CircuitBreakerOpenError,
    UpstreamError,
    counts_as_upstream_failure,
    map_httpx_error,
)
from app.core.geocoding.constants import (
    COUNTY_CACHE,
    COUNTY_RESULT_TYPE,
    GEOCODING_CACHE,
    SERVICE_NAME,
    STATUS_OK,
)
from app.core.geocoding.parsing import parse_first_county, parse_first_gmaps_result
from app.core.logging import get_logger
from app.core.metrics import (
    record_breaker_state,
    record_cache_lookup,
    record_upstream_outcome,
)
from app.core.retry import with_retry
from app.models.location import CountyResult, Geo, GeocodingResult

logger = get_logger(module="geocoding_service")


class GeocodingService:
    """Google Maps geocoding client with caching and resilience layers."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        api_key: str | None = None,
        geocode_url: str | None = None,
        cache: TTLCache[str, GeocodingResult] | None = None,
        county_cache: TTLCache[str, CountyResult] | None = None,
        breaker: CircuitBreaker | None = None,
        deduplicator: RequestDeduplicator | None = None,
        retries: int | None = None,
    ) -> None:
        """Initialize the geocoding service from settings unless overridden."""
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.GMAPS_TIMEOUT)
        )
        self.api_key = settings.GMAPS_API_KEY if api_key is None else api_key
        self.geocode_url = geocode_url or settings.GMAPS_GEOCODE_URL
        if cache is None:
            cache = TTLCache(
                capacity=settings.GEOCODING_CACHE_SIZE,
                ttl_seconds=settings.GEOCODING_CACHE_TTL,
            )
        if county_cache is None:
            county_cache = TTLCache(
                capacity=settings.COUNTY_CACHE_SIZE,
                ttl_seconds=settings.COUNTY_CACHE_TTL,
            )
        self.cache: TTLCache[str, GeocodingResult] = cache
        self.county_cache: TTLCache[str, CountyResult] = county_cache
        self.breaker = breaker or CircuitBreaker.from_settings(
            SERVICE_NAME,
            is_failure=counts_as_upstream_failure,
            on_state_change=record_breaker_state,
        )
        self.deduplicator = deduplicator or RequestDeduplicator.from_settings(
            SERVICE_NAME
        )
        self.retries = settings.TRANSIENT_RETRIES if retries is None else retries

    async def _geocode(self, dedup_key: str, params: dict[str, str]) -> dict[str, Any]:
        """Issue a geocode request under dedup, breaker and retry.

        Raises:
            UpstreamError: On transport, HTTP or decoding failures, or when the
                breaker is open
        """

        async def request() -> dict[str, Any]:
            try:
                response = await self.client.get(
                    self.geocode_url, params={**params, "key": self.api_key}
                )
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                raise map_httpx_error(SERVICE_NAME, e) from e
            return data if isinstance(data, dict) else {}

        try:
            data = await self.deduplicator.execute(
                dedup_key,
                lambda: self.breaker.execute(
                    lambda: with_retry(request, retries=self.retries)
                ),
            )
        except CircuitBreakerOpenError:
            record_upstream_outcome(SERVICE_NAME, "breaker_open")
            raise
        except UpstreamError:
            record_upstream_outcome(SERVICE_NAME, "error")
            raise

        record_upstream_outcome(SERVICE_NAME, "success")
        status = data.get("status")
        if status != STATUS_OK:
            logger.info(
                "geocode_no_results",
                status=status,
                error_message=data.get("error_message"),
            )
        return data

    def _cached(self, cache_name: str, cache: TTLCache[str, Any], key: str) -> Any:
        value = cache.get(key)
        record_cache_lookup(cache_name, hit=value is not None)
        if value is not None:
            logger.debug("geocode_cache_hit", cache=cache_name, key=key)
        return value

    async def fetch_geo_coordinates_standard(
        self, formatted_address: str
    ) -> Optional[GeocodingResult]:
        """Forward geocode an address, using the cache when possible.

        Args:
            formatted_address: Single-line address

        Returns:
            First geocoding result, or None when the provider found nothing
        """
        key = generate_geocache_key(address=formatted_address)
        cached = self._cached(GEOCODING_CACHE, self.cache, key)
        if cached is not None:
            return cached.model_copy(deep=True)

        data = await self._geocode(f"gmaps:{key}", {"address": formatted_address})
        result = parse_first_gmaps_result(data)
        if result is not None:
            self.cache.set(key, result.model_copy(deep=True))
        return result

    async def fetch_geo_coordinates(
        self, formatted_address: str
    ) -> Optional[GeocodingResult]:
        """Forward geocode an address and fill in a missing county.

        Forward results often lack a county; when so, a county-only reverse
        lookup at the resolved point supplies it. A failed county lookup is
        logged and the result is returned without one.
        """
        result = await self.fetch_geo_coordinates_standard(formatted_address)
        if result is None or result.county or result.geo.is_sentinel:
            return result

        try:
            county = await self.fetch_county_by_coordinates(result.geo)
        except UpstreamError as e:
            logger.warning(
                "county_lookup_failed",
                formatted_address=formatted_address,
                kind=e.kind.value,
                error=str(e),
            )
            return result

        if county is not None:
            result.county = county.county
            self.cache.set(
                generate_geocache_key(address=formatted_address),
                result.model_copy(deep=True),
            )
        return result

    async def fetch_county_by_coordinates(self, geo: Geo) -> Optional[CountyResult]:
        """County at a point, via a reverse lookup filtered to counties."""
        key = generate_geocache_key(lat=geo.latitude, lng=geo.longitude)
        cached = self._cached(COUNTY_CACHE, self.county_cache, key)
        if cached is not None:
            return cached.model_copy()

        latlng = f"{geo.latitude},{geo.longitude}"
        data = await self._geocode(
            f"gmaps:county:{key}",
            {"latlng": latlng, "result_type": COUNTY_RESULT_TYPE},
        )
        county = parse_first_county(data)
        if not county:
            return None

        result = CountyResult(county=county)
        self.county_cache.set(key, result.model_copy())
        return result

    async def fetch_address_from_coordinates(
        self, geo: Geo
    ) -> Optional[GeocodingResult]:
        """Reverse geocode a point, using the cache when possible."""
        key = generate_geocache_key(lat=geo.latitude, lng=geo.longitude)
        cached = self._cached(GEOCODING_CACHE, self.cache, key)
        if cached is not None:
            return cached.model_copy(deep=True)

        data = await self._geocode(
            f"gmaps:reverse:{key}", {"latlng": f"{geo.latitude},{geo.longitude}"}
        )
        result = parse_first_gmaps_result(data)
        if result is not None:
            self.cache.set(key, result.model_copy(deep=True))
        return result

    def clean_expired(self) -> dict[str, int]:
        """Sweep both caches; returns removed entry counts per cache."""
        return {
            GEOCODING_CACHE: self.cache.clean_expired(),
            COUNTY_CACHE: self.county_cache.clean_expired(),
        }

    def get_stats(self) -> dict[str, Any]:
        """Cache, deduplicator and circuit breaker snapshots."""
        return {
            "cache": self.cache.get_stats(),
            "county_cache": self.county_cache.get_stats(),
            "deduplication": self.deduplicator.get_stats(),
            "circuit_breaker": self.breaker.get_stats(),
        }

    def clear(self) -> None:
        self.cache.clear()
        self.county_cache.clear()
        self.deduplicator.clear()

    async def aclose(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._owns_client:
            await self.client.aclose()


# Singleton instance
_geocoding_service: GeocodingService | None = None


def get_geocoding_service() -> GeocodingService:
    """Get or create the singleton geocoding service instance.

    Returns:
        GeocodingService instance
    """
    global _geocoding_service
    if _geocoding_service is None:
        _geocoding_service = GeocodingService()
    return _geocoding_service


def reset_geocoding_service() -> None:
    """Forget the singleton; used on shutdown and in tests."""
    global _geocoding_service
    _geocoding_service = None
