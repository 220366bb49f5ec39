from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .match import MatchCandidate
from .validation_issue import ValidationIssue

"""RowDecision model: the classifier's verdict for one source row.

Derived data; never persisted independently of the source row.
"""

__all__ = [
    "RowStatus",
    "RowAction",
    "RowDecision",
]


class RowStatus(Enum):
    READY = "ready"
    NEEDS_REVIEW = "needs_review"
    INVALID = "invalid"


class RowAction(Enum):
    CREATE = "create"
    LINK = "link"
    SKIP = "skip"


@dataclass(frozen=True)
class RowDecision:
    row_index: int
    status: RowStatus
    action: RowAction
    errors: tuple[ValidationIssue, ...] = ()  # error severity only
    warnings: tuple[ValidationIssue, ...] = ()
    match_candidates: tuple[MatchCandidate, ...] = ()
    ambiguous: bool = False

    @property
    def link_target(self) -> str | None:
        """Customer id to link to, only when the action is LINK."""
        if self.action is RowAction.LINK and self.match_candidates:
            return self.match_candidates[0].candidate_id
        return None
