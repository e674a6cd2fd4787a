"""Postal standardization package (USPS Addresses API)."""

from app.core.postal.preprocessor import AddressPreprocessor, PreprocessedAddress
from app.core.postal.service import PostalService, get_postal_service
from app.core.postal.token import TokenManager

__all__ = [
    "AddressPreprocessor",
    "PreprocessedAddress",
    "PostalService",
    "TokenManager",
    "get_postal_service",
]
