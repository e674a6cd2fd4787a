"""State name/code tables used by preprocessing and address normalization."""

from typing import Optional

STATE_CODE_TO_NAME = {
    "AL": "ALABAMA",
    "AK": "ALASKA",
    "AZ": "ARIZONA",
    "AR": "ARKANSAS",
    "CA": "CALIFORNIA",
    "CO": "COLORADO",
    "CT": "CONNECTICUT",
    "DE": "DELAWARE",
    "DC": "DISTRICT OF COLUMBIA",
    "FL": "FLORIDA",
    "GA": "GEORGIA",
    "HI": "HAWAII",
    "ID": "IDAHO",
    "IL": "ILLINOIS",
    "IN": "INDIANA",
    "IA": "IOWA",
    "KS": "KANSAS",
    "KY": "KENTUCKY",
    "LA": "LOUISIANA",
    "ME": "MAINE",
    "MD": "MARYLAND",
    "MA": "MASSACHUSETTS",
    "MI": "MICHIGAN",
    "MN": "MINNESOTA",
    "MS": "MISSISSIPPI",
    "MO": "MISSOURI",
    "MT": "MONTANA",
    "NE": "NEBRASKA",
    "NV": "NEVADA",
    "NH": "NEW HAMPSHIRE",
    "NJ": "NEW JERSEY",
    "NM": "NEW MEXICO",
    "NY": "NEW YORK",
    "NC": "NORTH CAROLINA",
    "ND": "NORTH DAKOTA",
    "OH": "OHIO",
    "OK": "OKLAHOMA",
    "OR": "OREGON",
    "PA": "PENNSYLVANIA",
    "RI": "RHODE ISLAND",
    "SC": "SOUTH CAROLINA",
    "SD": "SOUTH DAKOTA",
    "TN": "TENNESSEE",
    "TX": "TEXAS",
    "UT": "UTAH",
    "VT": "VERMONT",
    "VA": "VIRGINIA",
    "WA": "WASHINGTON",
    "WV": "WEST VIRGINIA",
    "WI": "WISCONSIN",
    "WY": "WYOMING",
}

# Alternate spellings that should still resolve to a code
_STATE_ALIASES = {
    "WASHINGTON DC": "DC",
    "WASHINGTON D.C.": "DC",
    "D.C.": "DC",
}

STATE_NAME_TO_CODE = {
    **{name: code for code, name in STATE_CODE_TO_NAME.items()},
    **_STATE_ALIASES,
}


def normalize_state_to_code(state_str: Optional[str]) -> Optional[str]:
    """
    Resolve a state name or code to its 2-letter code.

    Args:
        state_str: State code or full name in any casing

    Returns:
        Uppercase 2-letter code, or None when the input is not recognized
    """
    if not state_str:
        return None

    state_clean = " ".join(state_str.strip().upper().split())
    if state_clean in STATE_CODE_TO_NAME:
        return state_clean
    if state_clean in STATE_NAME_TO_CODE:
        return STATE_NAME_TO_CODE[state_clean]

    no_periods = state_clean.replace(".", "")
    if no_periods in STATE_CODE_TO_NAME:
        return no_periods
    return STATE_NAME_TO_CODE.get(no_periods)


def state_code_to_name(code: str) -> Optional[str]:
    """Lowercase full state name for a 2-letter code, if known."""
    name = STATE_CODE_TO_NAME.get(code.upper())
    return name.lower() if name else None
