"""Field-by-field merging of partial location records.

Every merge names the fields it touches and the policy for each, so no
unrelated attribute of an upstream result can leak into the working record.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel

from app.models.location import LocationRecord


class MergePolicy(str, Enum):
    """How a present update value is applied to the base record."""

    # Replace the base value
    OVERWRITE = "overwrite"
    # Only set the value when the base has none
    FILL_IF_ABSENT = "fill_if_absent"


def is_absent(value: Any) -> bool:
    return value is None or value == ""


# Postal fields win over whatever the caller supplied
POSTAL_POLICY: dict[str, MergePolicy] = {
    "street_address": MergePolicy.OVERWRITE,
    "city": MergePolicy.OVERWRITE,
    "state": MergePolicy.OVERWRITE,
    "zip_code": MergePolicy.OVERWRITE,
    "formatted_address": MergePolicy.OVERWRITE,
    "unformatted_address": MergePolicy.FILL_IF_ABSENT,
}

# Reverse geocoding a coordinates-only record before postal standardization
REVERSE_PRIMING_POLICY: dict[str, MergePolicy] = {
    "city": MergePolicy.FILL_IF_ABSENT,
    "state": MergePolicy.FILL_IF_ABSENT,
    "zip_code": MergePolicy.FILL_IF_ABSENT,
    "county": MergePolicy.FILL_IF_ABSENT,
    "formatted_address": MergePolicy.FILL_IF_ABSENT,
}

# Geocoding is authoritative for geometry only
GEOCODE_POLICY: dict[str, MergePolicy] = {
    "geo": MergePolicy.OVERWRITE,
    "formatted_address": MergePolicy.OVERWRITE,
    "street_address": MergePolicy.FILL_IF_ABSENT,
    "city": MergePolicy.FILL_IF_ABSENT,
    "state": MergePolicy.FILL_IF_ABSENT,
    "zip_code": MergePolicy.FILL_IF_ABSENT,
    "county": MergePolicy.FILL_IF_ABSENT,
}


class MergeStrategy:
    """Applies a per-field precedence policy to merge two records."""

    def __init__(self, policy: Mapping[str, MergePolicy]) -> None:
        """Initialize merge strategy.

        Args:
            policy: Field name to merge policy; unlisted fields are never copied
        """
        self.policy = dict(policy)

    def merge(
        self, base: LocationRecord, update: BaseModel | Mapping[str, Any] | None
    ) -> LocationRecord:
        """Return a new record with ``update`` applied to ``base``.

        Absent update values (None or empty string) never replace anything.

        Args:
            base: Working record
            update: Model or mapping carrying candidate values

        Returns:
            Merged copy of ``base``
        """
        if update is None:
            return base.model_copy()

        changes: dict[str, Any] = {}
        for field, policy in self.policy.items():
            if isinstance(update, Mapping):
                value = update.get(field)
            else:
                value = getattr(update, field, None)
            if is_absent(value):
                continue
            if policy is MergePolicy.OVERWRITE or is_absent(getattr(base, field, None)):
                changes[field] = value

        return base.model_copy(update=changes)


postal_merge = MergeStrategy(POSTAL_POLICY)
reverse_priming_merge = MergeStrategy(REVERSE_PRIMING_POLICY)
geocode_merge = MergeStrategy(GEOCODE_POLICY)
