from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .match import MatchCandidate

"""Orphan-loan reconciliation models.

OrphanCase state transitions: unresolved -> (linked | created | skipped)

Resolved states are terminal. A case is only mutated through an explicit
OperatorDecision; detection never changes a case's resolution.
"""

__all__ = [
    "Resolution",
    "DecisionKind",
    "OrphanCase",
    "OperatorDecision",
    "CommitFailure",
    "CommitReport",
]


class Resolution(Enum):
    UNRESOLVED = "unresolved"
    LINKED = "linked"
    CREATED = "created"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self is not Resolution.UNRESOLVED


class DecisionKind(Enum):
    """What the operator chose for one orphan case."""
    CONFIRM_SUGGESTION = "confirm_suggestion"
    SELECT_CUSTOMER = "select_customer"
    CREATE_CUSTOMER = "create_customer"
    SKIP = "skip"


@dataclass(frozen=True)
class OrphanCase:
    loan_record_id: str
    raw_identity_fields: Mapping[str, Any] = field(default_factory=dict)
    suggested_match: MatchCandidate | None = None
    resolution: Resolution = Resolution.UNRESOLVED
    ambiguous: bool = False  # more than one plausible customer, no single suggestion

    @property
    def borrower_name(self) -> str:
        return str(self.raw_identity_fields.get("fullName") or "")


@dataclass(frozen=True)
class OperatorDecision:
    """Operator input for one case.

    customer_id is required for SELECT_CUSTOMER. customer_fields optionally
    overrides the loan's raw fields for CREATE_CUSTOMER (e.g. a corrected name).
    """
    loan_record_id: str
    kind: DecisionKind
    customer_id: str | None = None
    customer_fields: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class CommitFailure:
    loan_record_id: str
    error_type: str  # UPPER_SNAKE
    message: str


@dataclass(frozen=True)
class CommitReport:
    """Outcome of committing a batch of operator decisions."""
    success_count: int
    failures: tuple[CommitFailure, ...] = ()
    resolutions: Mapping[str, Resolution] = field(default_factory=dict)
    created_customers: Mapping[str, str] = field(default_factory=dict)  # loan id -> new customer id

    @property
    def failed_count(self) -> int:
        return len(self.failures)
