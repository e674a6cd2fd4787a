"""Parsing of Google Maps geocoding responses."""

import re
from typing import Any, Optional

from app.core.geocoding.constants import (
    ADMIN_LEVEL_1,
    ADMIN_LEVEL_2,
    FALLBACK_CITY_TYPES,
    POSTAL_CODE,
    PRIMARY_CITY_TYPES,
    ROUTE,
    STATUS_OK,
    STREET_NUMBER,
)
from app.models.location import Geo, GeocodingResult

_COUNTY_SUFFIX = re.compile(r"\s*\bcounty\b\s*$", re.IGNORECASE)
_USA_SUFFIX = re.compile(r",\s?USA$")


def strip_county_suffix(county: Optional[str]) -> Optional[str]:
    """Remove a trailing "County" (any case) and surrounding whitespace."""
    if not county:
        return county
    return _COUNTY_SUFFIX.sub("", county).strip() or None


def parse_address_components(
    components: list[dict[str, Any]],
) -> dict[str, Optional[str]]:
    """
    Extract address fields from a provider component list.

    Args:
        components: ``address_components`` of a geocoding result

    Returns:
        Dict with street_address, street_name, city, county, state and zip_code;
        missing parts are None
    """
    street_number = route = city = county = state = zip_code = None
    fallback_city: dict[str, str] = {}

    for component in components or []:
        types = set(component.get("types") or [])
        long_name = component.get("long_name")

        if STREET_NUMBER in types:
            street_number = long_name
        if ROUTE in types:
            route = long_name
        if types & PRIMARY_CITY_TYPES:
            city = long_name
        for fallback_type in FALLBACK_CITY_TYPES:
            if fallback_type in types and fallback_type not in fallback_city:
                fallback_city[fallback_type] = long_name
        if ADMIN_LEVEL_2 in types:
            county = strip_county_suffix(long_name)
        if ADMIN_LEVEL_1 in types:
            state = component.get("short_name")
        if POSTAL_CODE in types:
            zip_code = long_name

    if not city:
        city = next(
            (fallback_city[t] for t in FALLBACK_CITY_TYPES if fallback_city.get(t)),
            None,
        )

    street_address = " ".join(part for part in (street_number, route) if part)
    return {
        "street_address": street_address or None,
        "street_name": route or None,
        "city": city or None,
        "county": county or None,
        "state": state or None,
        "zip_code": zip_code or None,
    }


def parse_first_gmaps_result(data: Any) -> Optional[GeocodingResult]:
    """Parse the first result of a geocoding response.

    Returns None unless the status is OK and at least one result exists.
    Coordinates are stored GeoJSON-style as ``[lng, lat]``.
    """
    if not isinstance(data, dict) or data.get("status") != STATUS_OK:
        return None
    results = data.get("results") or []
    if not results:
        return None

    best = results[0]
    try:
        location = best["geometry"]["location"]
        geo = Geo.from_lat_lng(float(location["lat"]), float(location["lng"]))
    except (KeyError, TypeError, ValueError):
        return None

    formatted_address = _USA_SUFFIX.sub("", best.get("formatted_address") or "")
    fields = parse_address_components(best.get("address_components") or [])
    return GeocodingResult(
        geo=geo,
        formatted_address=formatted_address or None,
        **fields,
    )


def parse_first_county(data: Any) -> Optional[str]:
    """County name from a county-filtered reverse geocoding response."""
    if not isinstance(data, dict) or data.get("status") != STATUS_OK:
        return None
    for result in data.get("results") or []:
        for component in result.get("address_components") or []:
            if ADMIN_LEVEL_2 in (component.get("types") or []):
                return strip_county_suffix(component.get("long_name"))
    return None
