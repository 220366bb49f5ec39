from __future__ import annotations

import re
from typing import Any

from rapidfuzz.distance import Levenshtein

"""Identity attribute normalization and name similarity.

All functions are pure and total: any input (None, numbers, junk) yields a
string or float, never an exception.
"""

__all__ = [
    "normalize_phone",
    "normalize_national_id",
    "normalize_email",
    "normalize_name",
    "levenshtein",
    "similarity",
    "fuzzy_name_score",
]

_NON_DIGIT = re.compile(r"\D")
DEFAULT_COUNTRY_CODE = "260"


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def normalize_phone(value: Any, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    """Reduce a phone number to its bare local subscriber digits.

    "+260 97 123 4567", "260971234567", "0971234567" and "971234567" all
    normalize to "971234567". Stripping is repeated until the value is stable,
    so normalize_phone(normalize_phone(x)) == normalize_phone(x).
    """
    digits = _NON_DIGIT.sub("", _text(value))
    while True:
        stripped = digits
        if country_code and stripped.startswith(country_code):
            stripped = stripped[len(country_code):]
        if stripped.startswith("0"):
            stripped = stripped[1:]
        if stripped == digits:
            return digits
        digits = stripped


def normalize_national_id(value: Any) -> str:
    return _text(value).strip()


def normalize_email(value: Any) -> str:
    return _text(value).strip().lower()


def normalize_name(value: Any) -> str:
    return _text(value).strip().lower()


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance (insert / delete / substitute, unit costs)."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """Normalized edit distance similarity in [0, 1].

    (max_len - levenshtein) / max_len, with similarity("", "") == 1.0.
    Symmetric by construction.
    """
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return (longest - levenshtein(a, b)) / longest


def fuzzy_name_score(a: Any, b: Any) -> float:
    """Looser score used when attaching imported loans to customers.

    Empty on either side scores 0; equal names 1; one name containing the
    other 0.95; otherwise edit distance similarity.
    """
    s1 = normalize_name(a)
    s2 = normalize_name(b)
    if not s1 or not s2:
        return 0.0
    if s1 == s2:
        return 1.0
    if s1 in s2 or s2 in s1:
        return 0.95
    return similarity(s1, s2)
