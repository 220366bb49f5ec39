from __future__ import annotations

import pytest
from rapidfuzz.distance import Levenshtein

from borrower_match.services.normalize import (
    fuzzy_name_score,
    levenshtein,
    normalize_email,
    normalize_name,
    normalize_national_id,
    normalize_phone,
    similarity,
)


@pytest.mark.parametrize(
    "raw",
    ["+260 97 123 4567", "260971234567", "0971234567", "971234567", "(097) 123-4567"],
)
def test_normalize_phone_variants_collapse_to_local_digits(raw):
    assert normalize_phone(raw) == "971234567"


@pytest.mark.parametrize("raw", ["+260 0971234567", "2600971234567", "00971234567", "260260971234567", "", None, 12345])
def test_normalize_phone_is_idempotent(raw):
    once = normalize_phone(raw)
    assert normalize_phone(once) == once


def test_normalize_phone_handles_junk_and_none():
    assert normalize_phone(None) == ""
    assert normalize_phone("n/a") == ""
    assert normalize_phone(971234567) == "971234567"


def test_normalize_phone_custom_country_code():
    assert normalize_phone("+27 82 555 0000", country_code="27") == "825550000"
    # the default country code is not stripped when another one is configured
    assert normalize_phone("260971234567", country_code="27") == "260971234567"


def test_other_identity_normalizers():
    assert normalize_national_id("  123456/78/1 ") == "123456/78/1"
    assert normalize_email(" Jane.Mwale@Example.COM ") == "jane.mwale@example.com"
    assert normalize_name("  Jane MWALE ") == "jane mwale"
    assert normalize_name(None) == ""


def test_levenshtein_basic_distances():
    assert levenshtein("kitten", "sitting") == 3
    assert levenshtein("", "abc") == 3
    assert levenshtein("abc", "") == 3
    assert levenshtein("same", "same") == 0


def test_similarity_identity_and_empty():
    assert similarity("john banda", "john banda") == 1.0
    assert similarity("", "") == 1.0
    assert similarity("abc", "") == 0.0


@pytest.mark.parametrize(
    "a,b",
    [("john banda", "jon banda"), ("mary", "maria"), ("", "x"), ("peter phiri", "petra phiri")],
)
def test_similarity_is_symmetric(a, b):
    assert similarity(a, b) == similarity(b, a)


def test_similarity_value():
    # one deletion over ten characters
    assert similarity("john banda", "jon banda") == pytest.approx(0.9)


@pytest.mark.parametrize(
    "a,b",
    [("john banda", "johnny banda"), ("abcde", "abcdx"), ("mwale", ""), ("", "")],
)
def test_similarity_matches_normalized_levenshtein(a, b):
    assert similarity(a, b) == pytest.approx(Levenshtein.normalized_similarity(a, b))


def test_fuzzy_name_score_rules():
    assert fuzzy_name_score("Jane Mwale", "jane mwale") == 1.0
    assert fuzzy_name_score("Jane", "Jane Mwale") == 0.95
    assert fuzzy_name_score("", "Jane Mwale") == 0.0
    assert fuzzy_name_score("John Banda", "Jon Banda") == pytest.approx(0.9)
