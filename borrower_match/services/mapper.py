from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from borrower_match.models.config_models import MatchingConfig
from borrower_match.models.field_mapping import FieldMapping, MappingSource
from borrower_match.models.fields import ImportKind, is_canonical

"""Schema mapper: raw headers -> canonical fields.

The deterministic core is an ordered pattern table. Patterns are anchored and
case-insensitive; the first pattern matching a header wins and a header is
never mapped twice. Headers matching nothing are simply left unmapped.

Advisory proposals are merged afterwards through merge_advisory_mappings(),
which enforces the same canonical allowlist.
"""

__all__ = [
    "HeaderRule",
    "HEADER_RULES",
    "infer_mappings",
    "merge_advisory_mappings",
    "detect_import_kind",
    "MappingConflict",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeaderRule:
    pattern: re.Pattern[str]
    field: str
    rationale: str


def _rule(pattern: str, field: str, rationale: str) -> HeaderRule:
    return HeaderRule(re.compile(pattern, re.IGNORECASE), field, rationale)


# Order matters: earlier rules win. Derived/audit columns (amount owed, amount
# repaid, status, created date) intentionally have no rule.
HEADER_RULES: tuple[HeaderRule, ...] = (
    # Customer fields
    _rule(r"^(full.?name|name|customer.?name|client.?name|borrower.?name)$", "fullName", "Matches name field"),
    _rule(r"^(phone|mobile|msisdn|tel|phone.?number|contact.?number|mobile.?number)$", "phone", "Matches phone field"),
    _rule(r"^(email|e.?mail|email.?address)$", "email", "Matches email field"),
    _rule(
        r"^(nrc|nrc.?/.?id|national.?id|id.?number|nrc.?id|nrc.?number|national.?id.?number)$",
        "nationalId",
        "Matches NRC/ID field",
    ),
    _rule(r"^(address|location|residence|physical.?address)$", "address", "Matches address field"),
    _rule(r"^(employer|company|workplace)$", "employer", "Matches employer field"),
    _rule(r"^(employment.?status|job.?status)$", "employmentStatus", "Matches employment status"),
    _rule(r"^(monthly.?income|income|salary)$", "monthlyIncome", "Matches monthly income"),
    _rule(r"^(job.?title|title|position|occupation)$", "jobTitle", "Matches job title"),
    # Loan fields
    _rule(r"^(customer.?id|borrower.?id|client.?id)$", "customerId", "Matches customer reference"),
    _rule(r"^(amount|loan.?amount|principal|disbursement.?amount)$", "amount", "Matches loan amount (principal)"),
    _rule(r"^(interest.?rate|rate|interest|interest.?percentage|interest.?\(%\))$", "interestRate", "Matches interest rate"),
    _rule(
        r"^(duration|months|term|loan.?duration|duration.?months|duration.?\(months\)|loan.?term)$",
        "durationMonths",
        "Matches loan duration",
    ),
    _rule(r"^(loan.?type|type|loan.?category|product)$", "loanType", "Matches loan type"),
    _rule(r"^(disbursement.?date|disbursal.?date|start.?date|loan.?date)$", "disbursementDate", "Matches disbursement date"),
    _rule(r"^(collateral|has.?collateral|collateral.?included)$", "collateralIncluded", "Matches collateral flag"),
)


class MappingConflict(Exception):
    """A mapping that cannot be accepted (duplicate header or non-canonical field).

    Never raised out of the mapper: conflicts are logged and the mapping dropped.
    """


def infer_mappings(
    headers: Sequence[str],
    *,
    config: MatchingConfig | None = None,
    rules: Sequence[HeaderRule] = HEADER_RULES,
) -> list[FieldMapping]:
    """Rule-based mapping for each header, in header order."""
    cfg = config or MatchingConfig()
    mappings: list[FieldMapping] = []
    seen: set[str] = set()
    for header in headers:
        if header in seen:
            logger.debug("duplicate header ignored: %r", header)
            continue
        trimmed = str(header).strip()
        for rule in rules:
            if rule.pattern.match(trimmed):
                mappings.append(
                    FieldMapping(
                        source_column=header,
                        canonical_field=rule.field,
                        confidence=cfg.rule_confidence,
                        rationale=rule.rationale,
                        source=MappingSource.RULE,
                    )
                )
                seen.add(header)
                break
    return mappings


def _check_proposal(
    proposal: FieldMapping, headers: set[str] | None, min_confidence: float
) -> None:
    if not is_canonical(proposal.canonical_field):
        raise MappingConflict(
            f"{proposal.source_column!r} -> {proposal.canonical_field!r}: not a canonical field"
        )
    if headers is not None and proposal.source_column not in headers:
        raise MappingConflict(f"{proposal.source_column!r}: not a header of this dataset")
    if not 0.0 <= proposal.confidence <= 1.0:
        raise MappingConflict(
            f"{proposal.source_column!r}: confidence {proposal.confidence} outside [0, 1]"
        )
    if proposal.confidence <= min_confidence:
        raise MappingConflict(
            f"{proposal.source_column!r} -> {proposal.canonical_field}: "
            f"confidence {proposal.confidence} below {min_confidence}"
        )


def merge_advisory_mappings(
    rule_mappings: Sequence[FieldMapping],
    proposals: Iterable[FieldMapping],
    *,
    headers: Sequence[str] | None = None,
    config: MatchingConfig | None = None,
) -> list[FieldMapping]:
    """Combine rule mappings with advisory proposals.

    A proposal is accepted when its field is canonical, its header exists, and
    its confidence is above the advisory minimum. An accepted proposal may add
    a mapping for an unmapped header or replace the rule mapping for the same
    header when its confidence is strictly higher. Everything else is dropped
    and logged.
    """
    cfg = config or MatchingConfig()
    header_set = set(headers) if headers is not None else None
    by_header: dict[str, FieldMapping] = {m.source_column: m for m in rule_mappings}
    order: list[str] = [m.source_column for m in rule_mappings]

    for proposal in proposals:
        try:
            _check_proposal(proposal, header_set, cfg.advisory_min_confidence)
        except MappingConflict as e:
            logger.warning("advisory mapping dropped: %s", e)
            continue
        accepted = FieldMapping(
            source_column=proposal.source_column,
            canonical_field=proposal.canonical_field,
            confidence=proposal.confidence,
            rationale=proposal.rationale,
            source=MappingSource.ADVISORY,
        )
        current = by_header.get(proposal.source_column)
        if current is None:
            by_header[proposal.source_column] = accepted
            order.append(proposal.source_column)
        elif proposal.confidence > current.confidence:
            by_header[proposal.source_column] = accepted
        else:
            logger.debug(
                "advisory mapping for %r not better than %s (%.2f)",
                proposal.source_column,
                current.canonical_field,
                current.confidence,
            )

    merged = [by_header[h] for h in order]
    # allowlist is re-checked on the final set; nothing non-canonical leaves this function
    return [m for m in merged if m.is_canonical]


_CUSTOMER_HINTS = ("name", "phone", "nrc", "email", "mobile", "national")
_LOAN_HINTS = ("amount", "interest", "duration", "loan", "principal")


def detect_import_kind(headers: Sequence[str]) -> ImportKind:
    """Guess what the dataset describes from its header text."""
    lowered = [str(h).lower() for h in headers]
    has_customer = any(any(k in h for k in _CUSTOMER_HINTS) for h in lowered)
    has_loan = any(any(k in h for k in _LOAN_HINTS) for h in lowered)
    if has_customer and has_loan:
        return ImportKind.MIXED
    if has_loan:
        return ImportKind.LOANS
    return ImportKind.CUSTOMERS
