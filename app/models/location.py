"""Location, address and geocoding models exchanged by the correction pipeline."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SENTINEL_COORDINATES: tuple[float, float] = (0.0, 0.0)


def strip_empty(values: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None or an empty string."""
    return {
        key: value
        for key, value in values.items()
        if value is not None and value != ""
    }


class CorrectionModel(BaseModel):
    """Base model: snake_case attributes, camelCase JSON."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_response(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys and unset fields omitted."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Geo(CorrectionModel):
    """GeoJSON point; coordinates are ``(longitude, latitude)``.

    ``(0, 0)`` is the sentinel meaning no valid geometry was resolved.
    """

    type: Literal["Point"] = "Point"
    coordinates: tuple[float, float] = Field(
        ...,
        description="Longitude, latitude",
        examples=[[-77.0365, 38.8977]],
    )

    @classmethod
    def from_lat_lng(cls, lat: float, lng: float) -> "Geo":
        return cls(coordinates=(lng, lat))

    @classmethod
    def sentinel(cls) -> "Geo":
        return cls(coordinates=SENTINEL_COORDINATES)

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]

    @property
    def is_sentinel(self) -> bool:
        return self.coordinates[0] == 0 and self.coordinates[1] == 0


def has_valid_geo(geo: Geo | None) -> bool:
    """Whether a point is present and not the sentinel."""
    return geo is not None and not geo.is_sentinel


class AddressInput(CorrectionModel):
    """Postal address fields submitted for standardization."""

    street_address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None


class AddressResult(CorrectionModel):
    """Postal standardization output; empty fields are left unset."""

    street_address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    formatted_address: str | None = None
    unformatted_address: str | None = None


class AddressCorrectionResponse(CorrectionModel):
    location: AddressResult
    status: bool
    error: str | None = None


class GeocodingResult(CorrectionModel):
    """First usable result of a forward or reverse geocoding request."""

    geo: Geo
    formatted_address: str | None = None
    city: str | None = None
    county: str | None = None
    state: str | None = None
    zip_code: str | None = None
    street_address: str | None = None
    street_name: str | None = None


class CountyResult(CorrectionModel):
    county: str


class GeoLocation(CorrectionModel):
    """Location part of a geocode validation result."""

    geo: Geo
    formatted_address: str | None = None
    city: str | None = None
    county: str | None = None
    state: str | None = None
    zip_code: str | None = None
    street_address: str | None = None
    street_name: str | None = None
    locality: str | None = None


class GeoValidationInput(CorrectionModel):
    lat: float | None = None
    lng: float | None = None
    geo: Geo | None = None
    formatted_address: str | None = None


class GeoValidationResult(CorrectionModel):
    status: bool
    location: GeoLocation
    error: str | None = None


class LocationRecord(CorrectionModel):
    """Working record threaded through the correction pipeline.

    Unknown fields are kept so callers can round-trip their own data, but
    they never reach the correction result.
    """

    model_config = ConfigDict(extra="allow")

    street_address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    county: str | None = None
    formatted_address: str | None = None
    unformatted_address: str | None = None
    normalized_address: str | None = None
    geo: Geo | None = None
    latitude: float | None = None
    longitude: float | None = None
    street_name: str | None = None
    locality: str | None = None


class LocationCorrectionResult(CorrectionModel):
    """Final merged record returned by ``correct_location``."""

    street_address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    county: str | None = None
    geo: Geo
    formatted_address: str | None = None
    normalized_address: str | None = None
    unformatted_address: str | None = None
    status: bool
    error: str | None = None


class BatchItemResult(LocationCorrectionResult):
    index: int
