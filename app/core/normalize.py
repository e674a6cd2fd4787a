"""Address normalization for equality comparison.

``normalize_address`` produces a lowercase canonical key with abbreviations
expanded. It is a comparison key only: both sides of a comparison must be
normalized with the same tables, and the result is never shown to users as a
formatted address.
"""

import re

from app.core.state_mapping import STATE_CODE_TO_NAME

# Street suffix abbreviations (USPS Publication 28 common forms)
STREET_TYPES: dict[str, str] = {
    "dr": "drive",
    "st": "street",
    "ave": "avenue",
    "av": "avenue",
    "rd": "road",
    "ct": "court",
    "crt": "court",
    "ln": "lane",
    "blvd": "boulevard",
    "pkwy": "parkway",
    "pky": "parkway",
    "pl": "place",
    "cir": "circle",
    "crl": "circle",
    "hwy": "highway",
    "hiway": "highway",
    "terr": "terrace",
    "ter": "terrace",
    "trl": "trail",
    "wy": "way",
    "aly": "alley",
    "arc": "arcade",
    "byu": "bayou",
    "bch": "beach",
    "bnd": "bend",
    "blf": "bluff",
    "blfs": "bluffs",
    "btm": "bottom",
    "br": "branch",
    "brdg": "bridge",
    "brg": "bridge",
    "brk": "brook",
    "brks": "brooks",
    "bg": "burg",
    "byp": "bypass",
    "byps": "bypass",
    "cp": "camp",
    "canyn": "canyon",
    "cnyn": "canyon",
    "cpe": "cape",
    "cswy": "causeway",
    "causway": "causeway",
    "ctr": "center",
    "centre": "center",
    "cntr": "center",
    "ctrs": "centers",
    "chs": "chase",
    "clb": "club",
    "clf": "cliff",
    "clfs": "cliffs",
    "cmn": "common",
    "cmns": "commons",
    "cor": "corner",
    "cors": "corners",
    "crse": "course",
    "cv": "cove",
    "cvs": "coves",
    "crk": "creek",
    "cres": "crescent",
    "crst": "crest",
    "xing": "crossing",
    "xrd": "crossroad",
    "xrds": "crossroads",
    "curv": "curve",
    "dl": "dale",
    "dm": "dam",
    "div": "divide",
    "dv": "divide",
    "drv": "drive",
    "drs": "drives",
    "est": "estate",
    "ests": "estates",
    "expy": "expressway",
    "expr": "expressway",
    "express": "expressway",
    "expw": "expressway",
    "ext": "extension",
    "exts": "extensions",
    "fls": "falls",
    "fry": "ferry",
    "fld": "field",
    "flds": "fields",
    "flt": "flat",
    "flts": "flats",
    "frd": "ford",
    "frds": "fords",
    "frst": "forest",
    "frg": "forge",
    "frgs": "forges",
    "frk": "fork",
    "frks": "forks",
    "ft": "fort",
    "frwy": "freeway",
    "freewy": "freeway",
    "gardn": "garden",
    "grden": "garden",
    "grdn": "garden",
    "grdns": "gardens",
    "gatway": "gateway",
    "gatewy": "gateway",
    "gtway": "gateway",
    "gtwy": "gateway",
    "gln": "glen",
    "glns": "glens",
    "grn": "green",
    "grns": "greens",
    "grov": "grove",
    "grv": "grove",
    "grvs": "groves",
    "harb": "harbor",
    "harbr": "harbor",
    "hbr": "harbor",
    "hbrs": "harbors",
    "hvn": "haven",
    "hts": "heights",
    "ht": "heights",
    "hl": "hill",
    "hls": "hills",
    "hllw": "hollow",
    "holw": "hollow",
    "holws": "hollow",
    "inlt": "inlet",
    "is": "island",
    "islnd": "island",
    "iss": "islands",
    "islnds": "islands",
    "jct": "junction",
    "jction": "junction",
    "junctn": "junction",
    "juncton": "junction",
    "jcts": "junctions",
    "jctns": "junctions",
    "ky": "key",
    "kys": "keys",
    "knl": "knoll",
    "knls": "knolls",
    "lk": "lake",
    "lks": "lakes",
    "lndg": "landing",
    "lndng": "landing",
    "lgt": "light",
    "lgts": "lights",
    "lf": "loaf",
    "lck": "lock",
    "lcks": "locks",
    "ldg": "lodge",
    "ldge": "lodge",
    "loops": "loop",
    "mnr": "manor",
    "mnrs": "manors",
    "mdw": "meadow",
    "mdws": "meadows",
    "medows": "meadows",
    "ml": "mill",
    "mls": "mills",
    "msn": "mission",
    "missn": "mission",
    "mtwy": "motorway",
    "mt": "mount",
    "mnt": "mount",
    "mtn": "mountain",
    "mntain": "mountain",
    "mntn": "mountain",
    "mntns": "mountains",
    "nck": "neck",
    "orch": "orchard",
    "orchrd": "orchard",
    "ovl": "oval",
    "prk": "park",
    "pkwys": "parkways",
    "paths": "path",
    "pikes": "pike",
    "pne": "pine",
    "pnes": "pines",
    "pln": "plain",
    "plns": "plains",
    "plz": "plaza",
    "plza": "plaza",
    "pt": "point",
    "pts": "points",
    "prt": "port",
    "prts": "ports",
    "pr": "prairie",
    "prarie": "prairie",
    "prr": "prairie",
    "rad": "radial",
    "radl": "radial",
    "radiel": "radial",
    "ranches": "ranch",
    "rnch": "ranch",
    "rnchs": "ranch",
    "rpd": "rapid",
    "rpds": "rapids",
    "rst": "rest",
    "rdg": "ridge",
    "rdge": "ridge",
    "rdgs": "ridges",
    "riv": "river",
    "rvr": "river",
    "rivr": "river",
    "rds": "roads",
    "shl": "shoal",
    "shls": "shoals",
    "shr": "shore",
    "shrs": "shores",
    "spg": "spring",
    "spng": "spring",
    "sprng": "spring",
    "spgs": "springs",
    "spngs": "springs",
    "sprngs": "springs",
    "sq": "square",
    "sqr": "square",
    "sqre": "square",
    "squ": "square",
    "sqs": "squares",
    "sqrs": "squares",
    "sta": "station",
    "statn": "station",
    "stn": "station",
    "stra": "stravenue",
    "stravn": "stravenue",
    "straven": "stravenue",
    "strvn": "stravenue",
    "strvnue": "stravenue",
    "strm": "stream",
    "streme": "stream",
    "sts": "streets",
    "smt": "summit",
    "sumit": "summit",
    "sumitt": "summit",
    "trce": "trace",
    "traces": "trace",
    "trak": "track",
    "trk": "track",
    "trks": "track",
    "tracks": "track",
    "trfy": "trafficway",
    "trls": "trails",
    "trlr": "trailer",
    "trlrs": "trailer",
    "tunel": "tunnel",
    "tunl": "tunnel",
    "tunls": "tunnel",
    "tunnels": "tunnel",
    "tunnl": "tunnel",
    "trnpk": "turnpike",
    "tpke": "turnpike",
    "turnpk": "turnpike",
    "un": "union",
    "vally": "valley",
    "vlly": "valley",
    "vly": "valley",
    "vlys": "valleys",
    "via": "viaduct",
    "viadct": "viaduct",
    "vw": "view",
    "vws": "views",
    "vill": "village",
    "villag": "village",
    "villg": "village",
    "villiage": "village",
    "vlg": "village",
    "vlgs": "villages",
    "vl": "ville",
    "vis": "vista",
    "vist": "vista",
    "vst": "vista",
    "vsta": "vista",
    "wl": "well",
    "wls": "wells",
}

DIRECTIONS: dict[str, str] = {
    "n": "north",
    "no": "north",
    "nrth": "north",
    "s": "south",
    "so": "south",
    "sth": "south",
    "e": "east",
    "est": "east",
    "w": "west",
    "wst": "west",
    "ne": "northeast",
    "nw": "northwest",
    "se": "southeast",
    "sw": "southwest",
}

UNIT_TYPES: dict[str, str] = {
    "apt": "apartment",
    "appt": "apartment",
    "ste": "suite",
    "bldg": "building",
    "fl": "floor",
    "flr": "floor",
    "rm": "room",
    "dept": "department",
    "ofc": "office",
    "ph": "penthouse",
    "bsmt": "basement",
    "lbby": "lobby",
    "spc": "space",
    "trlr": "trailer",
    "uppr": "upper",
    "lowr": "lower",
    "frnt": "front",
}

# "mt" and "ft" are street types; "ste" is a unit type unless a word follows
PREFIXES: dict[str, str] = {
    "ste": "sainte",
}

ORDINALS: dict[str, str] = {
    "1st": "first",
    "2nd": "second",
    "3rd": "third",
    "4th": "fourth",
    "5th": "fifth",
    "6th": "sixth",
    "7th": "seventh",
    "8th": "eighth",
    "9th": "ninth",
    "10th": "tenth",
    "11th": "eleventh",
    "12th": "twelfth",
    "13th": "thirteenth",
    "14th": "fourteenth",
    "15th": "fifteenth",
    "16th": "sixteenth",
    "17th": "seventeenth",
    "18th": "eighteenth",
    "19th": "nineteenth",
    "20th": "twentieth",
    "21st": "twenty first",
    "22nd": "twenty second",
    "23rd": "twenty third",
    "24th": "twenty fourth",
    "25th": "twenty fifth",
    "26th": "twenty sixth",
    "27th": "twenty seventh",
    "28th": "twenty eighth",
    "29th": "twenty ninth",
    "30th": "thirtieth",
    "31st": "thirty first",
    "40th": "fortieth",
    "50th": "fiftieth",
    "60th": "sixtieth",
    "70th": "seventieth",
    "80th": "eightieth",
    "90th": "ninetieth",
    "100th": "hundredth",
}

# Given names that turn a following "st" into "saint"
SAINT_NAMES = frozenset(
    {
        "john",
        "johns",
        "mary",
        "marys",
        "paul",
        "pauls",
        "peter",
        "peters",
        "james",
        "joseph",
        "anthony",
        "francis",
        "louis",
        "george",
        "patrick",
        "thomas",
        "michael",
    }
)

NOISE_WORDS = frozenset({"the", "of", "at", "number"})

# Noise words are dropped from state names so a second pass is a no-op
STATES: dict[str, str] = {
    code.lower(): " ".join(
        word for word in name.lower().split() if word not in NOISE_WORDS
    )
    for code, name in STATE_CODE_TO_NAME.items()
}

# Dotted compound directionals must be folded before punctuation is stripped
_DOTTED_DIRECTIONS = (
    (re.compile(r"\bs\.e\."), "southeast"),
    (re.compile(r"\bn\.e\."), "northeast"),
    (re.compile(r"\bs\.w\."), "southwest"),
    (re.compile(r"\bn\.w\."), "northwest"),
)

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_NUMERIC_ORDINAL = re.compile(r"^(\d+)(st|nd|rd|th)$")
_ZIP_PLUS_FOUR = re.compile(r"\b(\d{5})-?\d{4}\b")
_ALL_DIGITS = re.compile(r"^\d+$")


def _expand_token(tokens: list[str], index: int) -> str:
    token = tokens[index]
    next_token = tokens[index + 1] if index + 1 < len(tokens) else None

    if token in ORDINALS:
        return ORDINALS[token]
    ordinal = _NUMERIC_ORDINAL.match(token)
    if ordinal:
        return ordinal.group(1)

    if token in DIRECTIONS:
        return DIRECTIONS[token]

    # "st" is ambiguous; it must be decided before the street type lookup
    if token == "st":
        return "saint" if next_token in SAINT_NAMES else "street"

    if token in STREET_TYPES:
        return STREET_TYPES[token]

    if token in PREFIXES and next_token and not _ALL_DIGITS.match(next_token):
        return PREFIXES[token]

    if token in UNIT_TYPES:
        return UNIT_TYPES[token]

    # Only near the end, so 2-letter words earlier on are left alone
    if index >= len(tokens) - 3 and token in STATES:
        return STATES[token]

    if token == "po" and next_token == "box":
        return "post office"
    return token


def normalize_address(address: str | None) -> str:
    """Map an address to its canonical lowercase comparison form.

    Args:
        address: Free-form address string

    Returns:
        Normalized address, or an empty string for empty input
    """
    if not address:
        return ""

    normalized = address.lower().replace("&", " and ")
    for pattern, replacement in _DOTTED_DIRECTIONS:
        normalized = pattern.sub(replacement, normalized)
    normalized = _ZIP_PLUS_FOUR.sub(r"\1", normalized)

    # Hyphens split tokens and noise words go before expansion, so the
    # token list a second pass sees is the one the first pass expanded
    normalized = _PUNCTUATION.sub(" ", normalized)
    tokens = [token for token in normalized.split() if token not in NOISE_WORDS]

    expanded = (_expand_token(tokens, index) for index in range(len(tokens)))
    return _WHITESPACE.sub(" ", " ".join(expanded)).strip()


def simple_normalize_address(address: str | None) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    if not address:
        return ""
    stripped = _PUNCTUATION.sub(" ", address.lower())
    return _WHITESPACE.sub(" ", stripped).strip()


def addresses_match(first: str | None, second: str | None) -> bool:
    """Whether two addresses normalize to the same key."""
    return normalize_address(first) == normalize_address(second)


def extract_street_address(address: str | None) -> str:
    """Strip ZIP, trailing state code and everything after the first comma."""
    if not address:
        return ""

    street = re.sub(r"\b\d{5}(-\d{4})?\b", "", address)
    street = re.sub(r"\b[A-Z]{2}\b\s*$", "", street, flags=re.IGNORECASE)
    return street.split(",")[0].strip()
