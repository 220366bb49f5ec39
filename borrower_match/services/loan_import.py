from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from borrower_match.models.config_models import MatchingConfig
from borrower_match.models.match import MatchCandidate, MatchTier
from borrower_match.models.records import LOAN_STATUS_REQUIRES_MAPPING, CustomerRecord

from .normalize import fuzzy_name_score, normalize_national_id

"""Loan import with customer matching.

Each incoming loan row is attached to a customer when it carries an exact
reference: its borrower id, then its national ID. Rows without one are marked
requires_mapping and become orphan cases; a close-enough name (fuzzy score at
or above the orphan threshold) is kept as a suggestion for the operator but
never linked automatically.
"""

__all__ = [
    "LoanImportResult",
    "find_matching_customer",
    "import_loans_with_matching",
]

logger = logging.getLogger(__name__)


@dataclass
class LoanImportResult:
    imported_count: int = 0
    linked_count: int = 0
    orphan_count: int = 0
    orphan_ids: list[str] = field(default_factory=list)
    suggestions: dict[str, MatchCandidate] = field(default_factory=dict)
    rows: list[dict[str, Any]] = field(default_factory=list)  # annotated copies of the input


def find_matching_customer(
    pool: Sequence[CustomerRecord],
    borrower_id: str | None,
    borrower_name: str,
    national_id: str | None,
    fuzzy_threshold: float = 0.9,
) -> MatchCandidate | None:
    """Best candidate for a loan row: borrower id, national ID, then fuzzy name."""
    if borrower_id:
        for c in pool:
            if c.id == borrower_id:
                return MatchCandidate(
                    candidate_id=c.id,
                    display_name=c.full_name or "Unknown",
                    confidence=1.0,
                    matched_fields=frozenset({"customerId"}),
                    tier=MatchTier.HARD,
                    reason=f"Exact ID match: {borrower_id}",
                )

    nid = normalize_national_id(national_id)
    if nid:
        for c in pool:
            if normalize_national_id(c.national_id) == nid:
                return MatchCandidate(
                    candidate_id=c.id,
                    display_name=c.full_name or "Unknown",
                    confidence=0.95,
                    matched_fields=frozenset({"nationalId"}),
                    tier=MatchTier.HARD,
                    reason=f"National ID match: {nid}",
                )

    best: MatchCandidate | None = None
    best_score = 0.0
    for c in pool:
        if not c.full_name.strip():
            continue
        score = fuzzy_name_score(borrower_name, c.full_name)
        if score > best_score and score >= fuzzy_threshold:
            best_score = score
            best = MatchCandidate(
                candidate_id=c.id,
                display_name=c.full_name,
                confidence=score,
                matched_fields=frozenset({"fullName"}),
                tier=MatchTier.SOFT,
                reason=f'Fuzzy name match: "{borrower_name}" ~ "{c.full_name}" ({score:.0%})',
            )
    return best


def _row_key(row: Mapping[str, Any], index: int) -> str:
    for key in ("id", "loan_id", "borrower_id"):
        val = row.get(key)
        if val is not None and str(val).strip():
            return str(val).strip()
    return f"row-{index}"


def import_loans_with_matching(
    loan_rows: Sequence[Mapping[str, Any]],
    pool: Sequence[CustomerRecord],
    *,
    config: MatchingConfig | None = None,
) -> LoanImportResult:
    """Annotate loan rows with customer_id / status ready for persistence.

    Input rows use the loan import keys: borrower_id, borrower_name,
    national_id, amount (plus anything else, passed through untouched).
    """
    cfg = config or MatchingConfig()
    result = LoanImportResult()

    for index, raw in enumerate(loan_rows):
        row = dict(raw)
        key = _row_key(row, index)
        name = str(row.get("borrower_name") or "").strip()
        borrower_id = str(row.get("borrower_id") or "").strip() or None

        match = None
        if name or borrower_id:
            match = find_matching_customer(
                pool, borrower_id, name, row.get("national_id"), cfg.orphan_fuzzy_threshold
            )

        if match is not None and match.is_hard:
            row["customer_id"] = match.candidate_id
            result.linked_count += 1
        else:
            row["customer_id"] = None
            row["status"] = LOAN_STATUS_REQUIRES_MAPPING
            result.orphan_count += 1
            result.orphan_ids.append(key)
            if match is not None:
                result.suggestions[key] = match

        result.imported_count += 1
        result.rows.append(row)

    logger.info(
        "loan import: imported=%d linked=%d orphans=%d",
        result.imported_count,
        result.linked_count,
        result.orphan_count,
    )
    return result
