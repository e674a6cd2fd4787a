"""Geocode reconciliation for a location's coordinates and address.

``GeocodingValidator.ensure_valid_geo_coordinates`` decides, from whatever a
caller already knows, whether to trust the supplied point, reverse geocode it,
or forward geocode the formatted address. It never raises.
"""

from typing import Optional

from app.core.errors import UpstreamError
from app.core.geocoding.service import GeocodingService, get_geocoding_service
from app.core.logging import get_logger
from app.models.location import (
    Geo,
    GeocodingResult,
    GeoLocation,
    GeoValidationInput,
    GeoValidationResult,
)

logger = get_logger(module="geocoding_validator")

REVERSE_FAILED_ERROR = "Reverse geocoding failed: no address returned."
FORWARD_FAILED_ERROR = (
    "Failed to fetch valid geo coordinates with the provided formatted address."
)


def _enriched_location(geo: Geo, result: GeocodingResult) -> GeoLocation:
    return GeoLocation(
        geo=geo,
        formatted_address=result.formatted_address,
        city=result.city,
        county=result.county,
        state=result.state,
        zip_code=result.zip_code,
        street_address=result.street_address,
        street_name=result.street_name,
        locality=result.city,
    )


class GeocodingValidator:
    """Reconciles coordinates and formatted addresses through geocoding."""

    def __init__(self, geocoding_service: GeocodingService | None = None) -> None:
        self.geocoding_service = geocoding_service or get_geocoding_service()

    @staticmethod
    def resolve_geo(payload: GeoValidationInput) -> Optional[Geo]:
        """Working point from an explicit ``geo`` or a ``lat``/``lng`` pair."""
        if payload.geo is not None:
            return payload.geo
        if payload.lat is not None and payload.lng is not None:
            return Geo.from_lat_lng(payload.lat, payload.lng)
        return None

    async def ensure_valid_geo_coordinates(
        self, payload: GeoValidationInput
    ) -> GeoValidationResult:
        """Return a usable point for a location, enriching it where possible.

        A known-good point with no address is reverse geocoded; failing to
        find an address there still succeeds. Otherwise the formatted address
        is forward geocoded. When nothing resolves, the sentinel point is
        returned with ``status=False``.

        Args:
            payload: Coordinates and/or a formatted address

        Returns:
            Validation result; errors are reported in ``error``, never raised
        """
        formatted_address = payload.formatted_address or None
        try:
            return await self._ensure_valid(payload, formatted_address)
        except Exception as e:
            error = f"Error in ensureValidGeoCoordinates: {e}"
            logger.error("geo_validation_failed", error=str(e), exc_info=True)
            return GeoValidationResult(
                status=False,
                location=GeoLocation(
                    geo=Geo.sentinel(), formatted_address=formatted_address
                ),
                error=error,
            )

    async def _ensure_valid(
        self, payload: GeoValidationInput, formatted_address: Optional[str]
    ) -> GeoValidationResult:
        error: Optional[str] = None
        geo = self.resolve_geo(payload)

        if geo is not None and not geo.is_sentinel:
            if formatted_address:
                return GeoValidationResult(
                    status=True,
                    location=GeoLocation(geo=geo, formatted_address=formatted_address),
                )

            try:
                reverse = (
                    await self.geocoding_service.fetch_address_from_coordinates(geo)
                )
            except UpstreamError as e:
                logger.warning(
                    "reverse_geocode_failed", kind=e.kind.value, error=str(e)
                )
                return GeoValidationResult(
                    status=True,
                    location=GeoLocation(geo=geo),
                    error=f"Reverse geocoding failed: {e}",
                )

            if reverse is None:
                return GeoValidationResult(
                    status=True,
                    location=GeoLocation(geo=geo),
                    error=REVERSE_FAILED_ERROR,
                )
            return GeoValidationResult(
                status=True, location=_enriched_location(geo, reverse)
            )

        if formatted_address:
            forward = await self.geocoding_service.fetch_geo_coordinates(
                formatted_address
            )
            if forward is not None and not forward.geo.is_sentinel:
                return GeoValidationResult(
                    status=True, location=_enriched_location(forward.geo, forward)
                )
            error = FORWARD_FAILED_ERROR
            logger.info(
                "forward_geocode_no_coordinates", formatted_address=formatted_address
            )

        return GeoValidationResult(
            status=False,
            location=GeoLocation(
                geo=Geo.sentinel(), formatted_address=formatted_address
            ),
            error=error,
        )


# Singleton instance
_geocoding_validator: GeocodingValidator | None = None


def get_geocoding_validator() -> GeocodingValidator:
    """Get or create the singleton validator bound to the geocoding service."""
    global _geocoding_validator
    if _geocoding_validator is None:
        _geocoding_validator = GeocodingValidator()
    return _geocoding_validator


def reset_geocoding_validator() -> None:
    global _geocoding_validator
    _geocoding_validator = None
