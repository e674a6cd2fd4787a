"""Address preprocessing applied before postal standardization.

Pure string and table transformations: punctuation fixes for directionals and
street types, state normalization, and city corrections driven by per-state
tables and ZIP code mappings.
"""

import re
from dataclasses import dataclass
from typing import Optional

from app.core.errors import is_client_rejection
from app.core.logging import get_logger
from app.core.state_mapping import normalize_state_to_code

logger = get_logger(module="address_preprocessor")

# City correction value meaning "this city name is invalid, use the ZIP table"
INVALID_CITY = None

DEFAULT_ZIP_TO_CITY: dict[str, tuple[str, str]] = {
    "48852": ("Mount Pleasant", "MI"),
}

DEFAULT_CITY_CORRECTIONS: dict[str, dict[str, Optional[str]]] = {
    "MI": {
        "McBride": INVALID_CITY,
        "St Joseph": "Saint Joseph",
        "St Clair": "Saint Clair",
        "St Johns": "Saint Johns",
        "St Ignace": "Saint Ignace",
        "St Louis": "Saint Louis",
        "Ste Marie": "Sault Ste Marie",
        "Sault Ste Marie": "Sault Ste Marie",
    },
}

_DIRECTIONAL = re.compile(r"\b(NE|NW|SE|SW|N|S|E|W)\b(?!\.)")
_STREET_TYPE = re.compile(
    r"\b(Dr|St|Ave|Rd|Blvd|Ln|Ct|Pl|Cir|Pkwy|Hwy|Ter|Way)\b(?!\.)"
)
_WHITESPACE = re.compile(r"\s+")


@dataclass
class PreprocessedAddress:
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    city_from_zip: bool = False


class AddressPreprocessor:
    """Normalizes address input and repairs known-bad city names.

    The correction tables are per-instance copies so they can be extended at
    runtime without touching the module defaults.
    """

    def __init__(
        self,
        zip_to_city: dict[str, tuple[str, str]] | None = None,
        city_corrections: dict[str, dict[str, Optional[str]]] | None = None,
    ) -> None:
        if zip_to_city is None:
            zip_to_city = DEFAULT_ZIP_TO_CITY
        if city_corrections is None:
            city_corrections = DEFAULT_CITY_CORRECTIONS
        self.zip_to_city = dict(zip_to_city)
        self.city_corrections = {
            state.upper(): dict(corrections)
            for state, corrections in city_corrections.items()
        }

    def preprocess_street_address(self, street_address: Optional[str]) -> Optional[str]:
        """Add periods after directionals and street type abbreviations.

        Only abbreviations not already followed by a period are touched, and
        whitespace is collapsed, so applying this twice changes nothing.
        """
        if not street_address:
            return street_address

        processed = _DIRECTIONAL.sub(r"\1.", street_address)
        processed = _STREET_TYPE.sub(r"\1.", processed)
        processed = _WHITESPACE.sub(" ", processed).strip()

        logger.debug(
            "preprocessed_street_address", original=street_address, processed=processed
        )
        return processed

    def _city_for_zip(self, zip_code: Optional[str]) -> Optional[str]:
        if zip_code and zip_code in self.zip_to_city:
            return self.zip_to_city[zip_code][0]
        return None

    def validate_city(
        self,
        city: Optional[str],
        state: Optional[str],
        zip_code: Optional[str],
    ) -> Optional[str]:
        """Return the city to send upstream, correcting it where possible."""
        if not city:
            mapped = self._city_for_zip(zip_code)
            if mapped:
                logger.info("city_from_zip", zip_code=zip_code, city=mapped)
            return mapped

        if not state:
            return city

        corrections = self.city_corrections.get(state.upper())
        candidate = city.strip()
        if not corrections or candidate not in corrections:
            return city

        corrected = corrections[candidate]
        if corrected is not INVALID_CITY:
            logger.info("city_corrected", original=city, corrected=corrected)
            return corrected

        mapped = self._city_for_zip(zip_code)
        if mapped:
            logger.warning(
                "invalid_city_replaced",
                city=city,
                zip_code=zip_code,
                replacement=mapped,
            )
        else:
            logger.warning("invalid_city_without_zip_mapping", city=city)
        return mapped

    def preprocess_address(
        self,
        street_address: Optional[str] = None,
        city: Optional[str] = None,
        state: Optional[str] = None,
        zip_code: Optional[str] = None,
    ) -> PreprocessedAddress:
        """Apply street, city and state preprocessing to a full address."""
        normalized_state = None
        if state:
            normalized_state = normalize_state_to_code(state) or state.strip().upper()

        corrected_city = self.validate_city(city, normalized_state, zip_code)
        return PreprocessedAddress(
            street_address=self.preprocess_street_address(street_address),
            city=corrected_city,
            state=normalized_state,
            zip_code=zip_code,
            city_from_zip=not city and bool(corrected_city),
        )

    def should_retry_without_city(
        self, error: BaseException, has_city: bool, has_zip_code: bool
    ) -> bool:
        """Whether a rejected lookup should be retried with the ZIP alone."""
        return is_client_rejection(error, status=400) and has_city and has_zip_code

    def add_zip_mapping(self, zip_code: str, city: str, state: str) -> None:
        self.zip_to_city[zip_code] = (city, state.upper())
        logger.info("zip_mapping_added", zip_code=zip_code, city=city, state=state)

    def add_city_correction(
        self, state: str, incorrect_city: str, correct_city: Optional[str]
    ) -> None:
        """Register a correction; ``INVALID_CITY`` defers to the ZIP table."""
        corrections = self.city_corrections.setdefault(state.upper(), {})
        corrections[incorrect_city] = correct_city
        logger.info(
            "city_correction_added",
            state=state,
            incorrect_city=incorrect_city,
            correct_city=correct_city,
        )
