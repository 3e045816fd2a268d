"""
Address normalization and string similarity.

Keys produced here are aggressive on purpose: abbreviations, unit numbers,
punctuation and spacing all fold away so that geocoder, parcel and
user-entered variants of one address compare equal.
"""
import re

from rapidfuzz.distance import Levenshtein

STREET_TYPES = {
    "st": ("street", "str", "st"),
    "ave": ("avenue", "av", "ave"),
    "rd": ("road", "rd"),
    "dr": ("drive", "dr"),
    "ln": ("lane", "ln"),
    "blvd": ("boulevard", "blvd"),
    "ct": ("court", "ct"),
    "cir": ("circle", "cir"),
    "pkwy": ("parkway", "pkwy"),
    "pl": ("place", "pl"),
    "sq": ("square", "sq"),
    "ter": ("terrace", "ter"),
    "trl": ("trail", "trl"),
}

_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w\s]")
_LEADING_DIRECTIONAL = re.compile(r"^(\d+\w*\s+)?(?:north|south|east|west|n|s|e|w)\s+")
_STREET_TYPE_PATTERNS = [
    (re.compile(r"\b(?:" + "|".join(variants) + r")\b"), canonical)
    for canonical, variants in STREET_TYPES.items()
]
_UNIT = re.compile(r"\b(?:unit|apt|apartment|suite|ste)\b\s*[\w-]+")
_FLOOR = re.compile(r"\b\d+(?:st|nd|rd|th)?\s+(?:floor|fl)\b")
_ORDINAL = re.compile(r"\b(\d+)(?:st|nd|rd|th)\b")
_KEY = re.compile(r"\w*")


def _fold(address: str) -> str:
    """Apply one pass of the folding steps, in order."""
    s = _WHITESPACE.sub(" ", address.lower()).strip()
    s = _NON_WORD.sub("", s.replace("#", " unit "))
    s = _WHITESPACE.sub(" ", s).strip()
    s = _LEADING_DIRECTIONAL.sub(lambda m: m.group(1) or "", s)
    for pattern, canonical in _STREET_TYPE_PATTERNS:
        s = pattern.sub(canonical, s)
    s = _UNIT.sub("", s)
    s = _FLOOR.sub("", s)
    s = _ORDINAL.sub(r"\1", s)
    return _WHITESPACE.sub("", s)


def normalize(address: str) -> str:
    """
    Canonicalize a free-text address into a comparison key with no spaces.

    Args:
        address (str): Address as entered, geocoded or returned by a parcel service.

    Returns:
        str: Normalized key, e.g. "123 North Main Street, Suite 400" -> "123mainst".
    """
    address = address or ""
    # A key is already normalized; folding it again would read joined
    # tokens ("1001st") as a new ordinal or street type.
    if address == address.lower() and _KEY.fullmatch(address):
        return address
    return _fold(address)


def similarity(a: str, b: str) -> float:
    """Levenshtein similarity of two already-normalized keys, in [0, 1]."""
    if not a or not b:
        return 0.0
    distance = Levenshtein.distance(a, b)
    return max(0.0, 1.0 - distance / max(len(a), len(b)))


def address_similarity(a: str, b: str) -> float:
    """Normalize both addresses and return their Levenshtein similarity."""
    return similarity(normalize(a), normalize(b))
