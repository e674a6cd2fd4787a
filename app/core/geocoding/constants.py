"""Google Maps geocoding constants.

Response status, address component types and result filters used when
building requests and parsing responses.
"""

SERVICE_NAME = "googleMaps"

# Response status meaning at least one result was returned
STATUS_OK = "OK"

# Address component types
STREET_NUMBER = "street_number"
ROUTE = "route"
LOCALITY = "locality"
POSTAL_TOWN = "postal_town"
SUBLOCALITY = "sublocality"
ADMIN_LEVEL_1 = "administrative_area_level_1"  # state
ADMIN_LEVEL_2 = "administrative_area_level_2"  # county
ADMIN_LEVEL_3 = "administrative_area_level_3"  # township
POSTAL_CODE = "postal_code"

# City component preference, best first
PRIMARY_CITY_TYPES = frozenset({LOCALITY, POSTAL_TOWN})
FALLBACK_CITY_TYPES = (ADMIN_LEVEL_3, SUBLOCALITY)

# result_type filter restricting reverse geocoding to counties
COUNTY_RESULT_TYPE = ADMIN_LEVEL_2

# Cache names used in logs and metrics
GEOCODING_CACHE = "geocoding"
COUNTY_CACHE = "county"
