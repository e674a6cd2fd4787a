"""Geocoding package for the application.

This package provides:
- Google Maps geocoding client with caching, deduplication and a circuit breaker
- Response parsing into location models
- Geocode reconciliation of coordinates and formatted addresses
"""

from app.core.geocoding.parsing import (
    parse_address_components,
    parse_first_gmaps_result,
    strip_county_suffix,
)
from app.core.geocoding.service import GeocodingService, get_geocoding_service
from app.core.geocoding.validator import GeocodingValidator, get_geocoding_validator

__all__ = [
    "GeocodingService",
    "get_geocoding_service",
    "GeocodingValidator",
    "get_geocoding_validator",
    "parse_address_components",
    "parse_first_gmaps_result",
    "strip_county_suffix",
]
