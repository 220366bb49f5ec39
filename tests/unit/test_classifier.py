from __future__ import annotations

import itertools

import pytest

from borrower_match.models.decision import RowAction, RowStatus
from borrower_match.models.match import MatchCandidate, MatchHint, MatchResult, MatchTier
from borrower_match.models.validation_issue import Severity, ValidationIssue
from borrower_match.services.classifier import classify_row, is_auto_commit_eligible

HARD = MatchCandidate("C1", "Jane", 0.95, frozenset({"phone"}), MatchTier.HARD, "Exact phone number match")
HARD_B = MatchCandidate("C2", "Jo", 0.95, frozenset({"nationalId"}), MatchTier.HARD, "Exact NRC match")
SOFT = MatchCandidate("C3", "Janet", 0.75, frozenset({"fullName"}), MatchTier.SOFT, "High name similarity")

RESULTS = {
    "none": MatchResult.no_match(),
    "hard": MatchResult((HARD,), MatchHint.LINK, False, "hard"),
    "hard_ambiguous": MatchResult((HARD, HARD_B), MatchHint.REVIEW, True, "two customers"),
    "soft": MatchResult((SOFT,), MatchHint.REVIEW, False, "soft"),
    "soft_ambiguous": MatchResult((), MatchHint.REVIEW, True, "similar names"),
}

ERROR = ValidationIssue(0, "phone", "Phone number is required", Severity.ERROR)
WARNING = ValidationIssue(0, "interestRate", "Interest rate must be between 0 and 100", Severity.WARNING)


def test_clean_row_without_match_is_ready_create():
    d = classify_row(0, [], RESULTS["none"], True)
    assert (d.status, d.action) == (RowStatus.READY, RowAction.CREATE)


def test_clean_row_with_hard_match_is_ready_link():
    d = classify_row(0, [], RESULTS["hard"], True)
    assert (d.status, d.action) == (RowStatus.READY, RowAction.LINK)
    assert d.link_target == "C1"


def test_errors_without_usable_data_are_invalid_skip():
    d = classify_row(3, [ERROR], RESULTS["none"], False)
    assert (d.status, d.action) == (RowStatus.INVALID, RowAction.SKIP)
    assert d.row_index == 3
    assert d.link_target is None


def test_errors_with_usable_data_need_review_not_skip():
    d = classify_row(0, [ERROR, ERROR], RESULTS["none"], True)
    assert (d.status, d.action) == (RowStatus.NEEDS_REVIEW, RowAction.CREATE)
    assert len(d.errors) == 2


def test_warnings_alone_keep_row_ready():
    d = classify_row(0, [WARNING], RESULTS["none"], True)
    assert d.status is RowStatus.READY
    assert d.errors == ()
    assert d.warnings == (WARNING,)


def test_ambiguous_hard_match_needs_review_and_creates():
    d = classify_row(0, [], RESULTS["hard_ambiguous"], True)
    assert (d.status, d.action) == (RowStatus.NEEDS_REVIEW, RowAction.CREATE)
    assert d.ambiguous
    assert len(d.match_candidates) == 2


def test_soft_match_never_links():
    d = classify_row(0, [], RESULTS["soft"], True)
    assert (d.status, d.action) == (RowStatus.NEEDS_REVIEW, RowAction.CREATE)


@pytest.mark.parametrize(
    "issues,result_key,usable",
    list(itertools.product([[], [WARNING], [ERROR]], RESULTS, [True, False])),
)
def test_classifier_invariants(issues, result_key, usable):
    result = RESULTS[result_key]
    d = classify_row(0, issues, result, usable)
    # skip exactly when invalid
    assert (d.action is RowAction.SKIP) == (d.status is RowStatus.INVALID)
    # link only on an unambiguous hard candidate
    if d.action is RowAction.LINK:
        assert not d.ambiguous
        assert d.match_candidates[0].tier is MatchTier.HARD
    # a review hint never yields ready
    if result.hint is MatchHint.REVIEW:
        assert d.status is not RowStatus.READY


class TestAutoCommitEligibility:
    def test_ready_rows_are_eligible(self):
        assert is_auto_commit_eligible(classify_row(0, [], RESULTS["hard"], True))

    def test_needs_review_held_back_by_default(self):
        d = classify_row(0, [], RESULTS["soft"], True)
        assert not is_auto_commit_eligible(d)
        assert is_auto_commit_eligible(d, include_needs_review=True)

    def test_skipped_rows_never_eligible(self):
        d = classify_row(0, [ERROR], RESULTS["none"], False)
        assert not is_auto_commit_eligible(d, include_needs_review=True)
