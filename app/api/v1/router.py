"""API v1 router module."""

import time
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import Field
from pydantic.alias_generators import to_camel

from app.core.config import settings
from app.core.errors import BatchTooLargeError, ValidationError
from app.core.geocoding.service import GeocodingService, get_geocoding_service
from app.core.geocoding.validator import GeocodingValidator, get_geocoding_validator
from app.core.postal.service import PostalService, get_postal_service
from app.models.location import AddressInput, GeoValidationInput, LocationRecord
from app.reconciler.location_corrector import LocationCorrector, get_location_corrector

router = APIRouter(default_response_class=JSONResponse)

STATE_PATTERN = r"^[A-Za-z]{2}$"
ZIP_PATTERN = r"^\d{5}(-\d{4})?$"


class LocationRequest(LocationRecord):
    """Location payload accepted by the validation endpoints."""

    street_address: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, pattern=STATE_PATTERN)
    zip_code: Optional[str] = Field(None, pattern=ZIP_PATTERN)
    formatted_address: Optional[str] = Field(None, max_length=500)
    unformatted_address: Optional[str] = Field(None, max_length=500)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class AddressRequest(AddressInput):
    street_address: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, pattern=STATE_PATTERN)
    zip_code: Optional[str] = Field(None, pattern=ZIP_PATTERN)


class GeoValidationRequest(GeoValidationInput):
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lng: Optional[float] = Field(None, ge=-180, le=180)
    formatted_address: Optional[str] = Field(None, max_length=500)


def camelize(stats: dict[str, Any]) -> dict[str, Any]:
    """Rename snake_case stats keys for the JSON surface."""
    return {to_camel(key): value for key, value in stats.items()}


@router.post("/validate-location")
async def validate_location(
    payload: LocationRequest,
    corrector: LocationCorrector = Depends(get_location_corrector),
) -> dict[str, Any]:
    """Correct a single location."""
    result = await corrector.correct_location(payload)
    return result.to_response()


@router.post("/validate-locations")
async def validate_locations(
    payload: list[dict[str, Any]] = Body(...),
    corrector: LocationCorrector = Depends(get_location_corrector),
) -> dict[str, Any]:
    """
    Correct a batch of locations.

    Items are validated and corrected independently; an invalid item yields a
    failed entry instead of rejecting the batch.
    """
    if not payload:
        raise ValidationError("Request body must be a non-empty array of locations")
    if len(payload) > settings.MAX_BATCH_SIZE:
        raise BatchTooLargeError(len(payload), settings.MAX_BATCH_SIZE)

    results = await corrector.correct_locations(payload, record_model=LocationRequest)
    return {
        "count": len(results),
        "results": [result.to_response() for result in results],
    }


@router.post("/correct-address")
async def correct_address(
    payload: AddressRequest,
    postal_service: PostalService = Depends(get_postal_service),
) -> dict[str, Any]:
    """Standardize a postal address."""
    result = await postal_service.correct_address(payload)
    return result.to_response()


@router.post("/validate-geo")
async def validate_geo(
    payload: GeoValidationRequest,
    validator: GeocodingValidator = Depends(get_geocoding_validator),
) -> dict[str, Any]:
    """Resolve or verify coordinates for a location."""
    result = await validator.ensure_valid_geo_coordinates(payload)
    return result.to_response()


@router.get("/health")
async def health_check(
    request: Request,
    postal_service: PostalService = Depends(get_postal_service),
    geocoding_service: GeocodingService = Depends(get_geocoding_service),
) -> dict[str, Any]:
    """
    Health check endpoint.

    Returns
    -------
        Dict containing service status, cache and resilience statistics
    """
    lifecycle = getattr(request.app.state, "lifecycle", None)
    started_at = getattr(lifecycle, "started_at", None)
    uptime = time.monotonic() - started_at if started_at is not None else 0.0

    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(uptime, 3),
        "environment": settings.ENVIRONMENT,
        "version": settings.version,
        "cache": camelize(geocoding_service.cache.get_stats()),
        "countyCache": camelize(geocoding_service.county_cache.get_stats()),
        "deduplication": {
            "usps": camelize(postal_service.deduplicator.get_stats()),
            "googleMaps": camelize(geocoding_service.deduplicator.get_stats()),
        },
        "circuitBreakers": {
            "usps": camelize(postal_service.breaker.get_stats()),
            "googleMaps": camelize(geocoding_service.breaker.get_stats()),
        },
    }


@router.get("/cache/stats")
async def cache_stats(
    geocoding_service: GeocodingService = Depends(get_geocoding_service),
) -> dict[str, Any]:
    """Sweep expired cache entries and report cache utilization."""
    cleaned = geocoding_service.clean_expired()
    return {
        "geocoding": camelize(geocoding_service.cache.get_stats()),
        "county": camelize(geocoding_service.county_cache.get_stats()),
        "cleanedExpired": cleaned,
    }


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest().decode("utf-8"),
        media_type=CONTENT_TYPE_LATEST,
    )
