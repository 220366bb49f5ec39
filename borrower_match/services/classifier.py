from __future__ import annotations

from collections.abc import Sequence

from borrower_match.models.decision import RowAction, RowDecision, RowStatus
from borrower_match.models.match import MatchResult
from borrower_match.models.validation_issue import ValidationIssue

"""Row classifier: validation issues + match result -> RowDecision.

Status precedence (recoverability before rejection):
    invalid       errors and no usable identity data at all
    needs_review  errors with some usable data, or the matcher asked for review
    ready         otherwise

Action:
    skip    only for invalid rows
    link    a single unambiguous hard-tier candidate
    create  everything else
"""

__all__ = [
    "classify_row",
    "is_auto_commit_eligible",
]


def classify_row(
    row_index: int,
    issues: Sequence[ValidationIssue],
    match: MatchResult,
    has_usable_data: bool,
) -> RowDecision:
    errors = tuple(i for i in issues if i.is_error)
    warnings = tuple(i for i in issues if not i.is_error)

    if errors and not has_usable_data:
        status = RowStatus.INVALID
    elif errors or match.requires_review:
        status = RowStatus.NEEDS_REVIEW
    else:
        status = RowStatus.READY

    if status is RowStatus.INVALID:
        action = RowAction.SKIP
    elif match.has_unambiguous_hard_match:
        action = RowAction.LINK
    else:
        action = RowAction.CREATE

    return RowDecision(
        row_index=row_index,
        status=status,
        action=action,
        errors=errors,
        warnings=warnings,
        match_candidates=match.candidates,
        ambiguous=match.ambiguous,
    )


def is_auto_commit_eligible(decision: RowDecision, *, include_needs_review: bool = False) -> bool:
    """Whether a decision may be persisted without an operator gate.

    needs_review rows are held back unless the caller explicitly opts in.
    Skipped rows are never committed.
    """
    if decision.action is RowAction.SKIP:
        return False
    if decision.status is RowStatus.READY:
        return True
    return include_needs_review and decision.status is RowStatus.NEEDS_REVIEW
