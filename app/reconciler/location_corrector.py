"""Location correction pipeline.

Combines postal standardization and geocoding into one corrected location:
postal fields take precedence, geocoding supplies the geometry and fills
whatever the postal step left empty.
"""

import asyncio
import re
from collections.abc import Mapping, Sequence
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from app.core.errors import UpstreamError
from app.core.geocoding.service import GeocodingService, get_geocoding_service
from app.core.geocoding.validator import GeocodingValidator
from app.core.logging import get_logger
from app.core.normalize import normalize_address
from app.core.postal.service import PostalService, get_postal_service
from app.models.location import (
    AddressCorrectionResponse,
    AddressInput,
    AddressResult,
    BatchItemResult,
    Geo,
    GeoValidationInput,
    LocationCorrectionResult,
    LocationRecord,
    has_valid_geo,
)
from app.reconciler.merge_strategy import (
    geocode_merge,
    postal_merge,
    reverse_priming_merge,
)

logger = get_logger(module="location_corrector")

_COUNTY_WORD = re.compile(r"\bcounty\b", re.IGNORECASE)


def strip_county_word(county: Optional[str]) -> Optional[str]:
    """Remove the word "County" wherever it appears."""
    if not county:
        return county
    return " ".join(_COUNTY_WORD.sub(" ", county).split()) or None


def synthesize_formatted_address(record: LocationRecord) -> Optional[str]:
    """Comma-join the postal fields that are present."""
    parts = [record.street_address, record.city, record.state, record.zip_code]
    return ", ".join(part for part in parts if part) or None


def seed_geo(record: LocationRecord) -> LocationRecord:
    """Build ``geo`` from ``latitude``/``longitude`` when it is missing."""
    if (
        record.geo is None
        and record.latitude is not None
        and record.longitude is not None
    ):
        return record.model_copy(
            update={"geo": Geo.from_lat_lng(record.latitude, record.longitude)}
        )
    return record


class LocationCorrector:
    """Runs the correction pipeline for single locations and batches."""

    def __init__(
        self,
        postal_service: PostalService | None = None,
        geocoding_service: GeocodingService | None = None,
        validator: GeocodingValidator | None = None,
    ) -> None:
        self.postal_service = postal_service or get_postal_service()
        self.geocoding_service = geocoding_service or get_geocoding_service()
        self.validator = validator or GeocodingValidator(self.geocoding_service)

    async def correct_location(
        self,
        record: LocationRecord | Mapping[str, Any],
        record_model: type[LocationRecord] = LocationRecord,
    ) -> LocationCorrectionResult:
        """Correct one location; never raises.

        Args:
            record: Location with coordinates, a partial postal address, or both
            record_model: Model used to validate mappings

        Returns:
            Merged location with ``status`` and the first error encountered
        """
        try:
            location = self._coerce(record, record_model)
        except PydanticValidationError as e:
            logger.warning("invalid_location_record", error=str(e))
            return self._failure(LocationRecord(), f"Invalid location record: {e}")

        try:
            return await self._correct(location)
        except Exception as e:
            logger.error("location_correction_failed", error=str(e), exc_info=True)
            return self._failure(location, f"Error in correctLocation: {e}")

    @staticmethod
    def _coerce(
        record: LocationRecord | Mapping[str, Any], record_model: type[LocationRecord]
    ) -> LocationRecord:
        if isinstance(record, LocationRecord):
            return record
        return record_model.model_validate(record)

    async def _correct(self, original: LocationRecord) -> LocationCorrectionResult:
        working = seed_geo(original)

        has_coordinates = has_valid_geo(working.geo)
        has_city_or_zip = bool(working.city or working.zip_code)
        coordinates_only = has_coordinates and not has_city_or_zip

        if coordinates_only:
            working = await self._prime_from_coordinates(working)

        # Postal standardization cannot succeed without street and city/ZIP
        skip_postal = coordinates_only and (
            not (working.city or working.zip_code) or not working.street_address
        )
        if skip_postal:
            logger.debug("postal_standardization_skipped", reason="coordinates_only")
            postal = AddressCorrectionResponse(location=AddressResult(), status=True)
        else:
            postal = await self.postal_service.correct_address(
                AddressInput(
                    street_address=working.street_address or None,
                    city=working.city or None,
                    state=working.state or None,
                    zip_code=working.zip_code or None,
                )
            )
            working = postal_merge.merge(working, postal.location)

        working = working.model_copy(
            update={"county": strip_county_word(working.county)}
        )
        if not working.formatted_address:
            working = working.model_copy(
                update={"formatted_address": synthesize_formatted_address(working)}
            )

        geo_result = await self.validator.ensure_valid_geo_coordinates(
            GeoValidationInput(
                geo=working.geo, formatted_address=working.formatted_address
            )
        )
        working = geocode_merge.merge(working, geo_result.location)

        # The county found at the resolved geometry replaces any earlier one
        if not geo_result.location.county and has_valid_geo(working.geo):
            working = await self._fill_county(working)

        error = postal.error or geo_result.error
        if postal.error and geo_result.error:
            logger.warning("geocode_error_suppressed", error=geo_result.error)

        has_complete_address = bool(
            working.street_address
            and (working.city or working.zip_code)
            and working.state
        )
        status = geo_result.status and (
            postal.status or has_complete_address or coordinates_only
        )

        normalized = (
            normalize_address(working.formatted_address)
            if working.formatted_address
            else None
        )

        logger.info(
            "location_corrected",
            status=status,
            postal_status=postal.status,
            postal_skipped=skip_postal,
            geocode_status=geo_result.status,
            error=error,
        )
        return LocationCorrectionResult(
            street_address=working.street_address,
            city=working.city,
            state=working.state,
            zip_code=working.zip_code,
            county=working.county,
            geo=working.geo or Geo.sentinel(),
            formatted_address=working.formatted_address,
            normalized_address=normalized,
            unformatted_address=working.unformatted_address,
            status=status,
            error=error,
        )

    async def _prime_from_coordinates(self, working: LocationRecord) -> LocationRecord:
        """Fill city, ZIP, county and address text by reverse geocoding."""
        if working.geo is None:
            return working
        try:
            reverse = await self.geocoding_service.fetch_address_from_coordinates(
                working.geo
            )
        except UpstreamError as e:
            logger.warning("reverse_priming_failed", kind=e.kind.value, error=str(e))
            return working
        return reverse_priming_merge.merge(working, reverse)

    async def _fill_county(self, working: LocationRecord) -> LocationRecord:
        if working.geo is None:
            return working
        try:
            county = await self.geocoding_service.fetch_county_by_coordinates(
                working.geo
            )
        except UpstreamError as e:
            logger.warning("county_enrichment_failed", kind=e.kind.value, error=str(e))
            return working
        if county is None:
            return working
        return working.model_copy(update={"county": county.county})

    @staticmethod
    def _failure(record: LocationRecord, error: str) -> LocationCorrectionResult:
        record = seed_geo(record)
        return LocationCorrectionResult(
            street_address=record.street_address,
            city=record.city,
            state=record.state,
            zip_code=record.zip_code,
            county=record.county,
            geo=record.geo if has_valid_geo(record.geo) else Geo.sentinel(),
            formatted_address=record.formatted_address,
            unformatted_address=record.unformatted_address,
            status=False,
            error=error,
        )

    async def correct_locations(
        self,
        records: Sequence[LocationRecord | Mapping[str, Any]],
        record_model: type[LocationRecord] = LocationRecord,
    ) -> list[BatchItemResult]:
        """Correct a batch concurrently; one bad item never fails the batch.

        Args:
            records: Locations to correct
            record_model: Model used to validate mappings

        Returns:
            One result per input, in input order, tagged with its index
        """

        async def correct_item(index: int, record: Any) -> BatchItemResult:
            result = await self.correct_location(record, record_model)
            return BatchItemResult(index=index, **result.model_dump())

        results = await asyncio.gather(
            *(correct_item(index, record) for index, record in enumerate(records))
        )
        succeeded = sum(1 for result in results if result.status)
        logger.info("batch_corrected", total=len(results), succeeded=succeeded)
        return list(results)


_location_corrector: LocationCorrector | None = None


def get_location_corrector() -> LocationCorrector:
    """Get or create the singleton corrector wired to the shared services."""
    global _location_corrector
    if _location_corrector is None:
        _location_corrector = LocationCorrector()
    return _location_corrector


def reset_location_corrector() -> None:
    global _location_corrector
    _location_corrector = None
