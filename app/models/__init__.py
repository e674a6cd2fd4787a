"""Location and address models package."""

from .location import (
    AddressCorrectionResponse,
    AddressInput,
    AddressResult,
    BatchItemResult,
    CountyResult,
    Geo,
    GeocodingResult,
    GeoLocation,
    GeoValidationInput,
    GeoValidationResult,
    LocationCorrectionResult,
    LocationRecord,
)

__all__ = [
    "Geo",
    "AddressInput",
    "AddressResult",
    "AddressCorrectionResponse",
    "GeocodingResult",
    "CountyResult",
    "GeoLocation",
    "GeoValidationInput",
    "GeoValidationResult",
    "LocationRecord",
    "LocationCorrectionResult",
    "BatchItemResult",
]
