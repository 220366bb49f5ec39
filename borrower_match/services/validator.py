from __future__ import annotations

import re
from collections.abc import Sequence

from borrower_match.models.field_mapping import FieldMapping
from borrower_match.models.fields import ImportKind
from borrower_match.models.source_row import SourceRow
from borrower_match.models.validation_issue import Severity, ValidationIssue

"""Row validator.

Each required value is resolved from the mapped canonical column first and
then from a fixed list of common raw header aliases, so a row can still be
valid when the mapper missed a header.

Customers: fullName, phone, nationalId are required (error).
Loans: amount > 0 (error) and durationMonths a positive integer (error). In a
mixed borrower+loan sheet the duration is only required when the sheet has a
duration column at all. A present interestRate outside [0, 100] is only a
warning since a default rate may be substituted later.
"""

__all__ = [
    "FIELD_ALIASES",
    "mapped_values",
    "resolve_value",
    "parse_number",
    "parse_positive_int",
    "validate_row",
    "has_usable_identity",
]

FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "fullName": ("Full Name", "fullName", "Name", "name", "Customer Name", "Borrower Name"),
    "phone": ("Phone", "phone", "Phone Number", "Mobile", "mobile", "MSISDN", "Tel"),
    "nationalId": (
        "NRC/ID", "NRC", "nrc", "ID Number", "ID", "id", "National ID", "National ID Number", "nationalId",
    ),
    "email": ("Email", "email", "E-mail", "Email Address"),
    "amount": ("Amount", "amount", "Loan Amount", "loanAmount", "Principal", "principal", "Loan", "loan"),
    "interestRate": ("Interest Rate", "interestRate", "Rate", "rate", "Interest", "interest"),
    "durationMonths": (
        "Duration (Months)", "durationMonths", "Duration", "duration", "Months", "months", "Term", "term",
    ),
    "customerId": ("Customer ID", "customerId", "Borrower ID", "borrower_id"),
}


def mapped_values(row: SourceRow, mappings: Sequence[FieldMapping]) -> dict[str, str]:
    """canonical field -> trimmed value, for every mapping whose cell is non-empty."""
    out: dict[str, str] = {}
    for m in mappings:
        val = row.get(m.source_column)
        if val and m.canonical_field not in out:
            out[m.canonical_field] = val
    return out


def resolve_value(row: SourceRow, mapped: dict[str, str], field: str) -> str:
    """Mapped value first, then the first non-empty alias column, else ""."""
    val = mapped.get(field, "")
    if val:
        return val
    for alias in FIELD_ALIASES.get(field, ()):
        candidate = row.get(alias)
        if candidate:
            return candidate
    return ""


_CURRENCY_PREFIX = re.compile(r"^(?:[A-Za-z]{1,3}\.?|[$€£])\s*")
_PLAIN_NUMBER = re.compile(r"^-?(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d+)?$")


def parse_number(text: str) -> float | None:
    """Parse "5,000.50" / "K 5000" / "12%" style amounts.

    None unless the whole text, after an optional currency prefix and percent
    sign, is one plain decimal number ("1e5" and "1.234,56" are rejected).
    """
    if not text:
        return None
    cleaned = _CURRENCY_PREFIX.sub("", text.strip(), count=1).rstrip("%").strip()
    if not _PLAIN_NUMBER.match(cleaned):
        return None
    return float(cleaned.replace(",", ""))


def parse_positive_int(text: str) -> int | None:
    """Leading-integer parse ("12 months" -> 12); None unless > 0."""
    digits = ""
    for ch in text.strip():
        if ch.isdigit():
            digits += ch
        elif digits:
            break
        elif ch not in " +":
            return None
    if not digits:
        return None
    value = int(digits)
    return value if value > 0 else None


def _has_column(row: SourceRow, mappings: Sequence[FieldMapping], field: str) -> bool:
    if any(m.canonical_field == field for m in mappings):
        return True
    columns = set(row.columns)
    return any(alias in columns for alias in FIELD_ALIASES.get(field, ()))


def validate_row(
    row: SourceRow,
    mappings: Sequence[FieldMapping],
    kind: ImportKind,
) -> list[ValidationIssue]:
    """Return every issue for the row, in field order (possibly empty)."""
    issues: list[ValidationIssue] = []
    mapped = mapped_values(row, mappings)
    idx = row.row_index

    def error(field: str, message: str) -> None:
        issues.append(ValidationIssue(idx, field, message, Severity.ERROR))

    if kind.includes_customers:
        if not resolve_value(row, mapped, "fullName"):
            error("fullName", "Full name is required")
        if not resolve_value(row, mapped, "phone"):
            error("phone", "Phone number is required")
        if not resolve_value(row, mapped, "nationalId"):
            error("nationalId", "NRC/ID is required")

    if kind.includes_loans:
        amount = parse_number(resolve_value(row, mapped, "amount"))
        if amount is None or amount <= 0:
            error("amount", "Valid loan amount is required")

        rate_text = resolve_value(row, mapped, "interestRate")
        if rate_text:
            rate = parse_number(rate_text)
            if rate is None or rate < 0 or rate > 100:
                issues.append(
                    ValidationIssue(
                        idx, "interestRate", "Interest rate must be between 0 and 100", Severity.WARNING
                    )
                )

        if kind is ImportKind.LOANS or _has_column(row, mappings, "durationMonths"):
            if parse_positive_int(resolve_value(row, mapped, "durationMonths")) is None:
                error("durationMonths", "Valid duration (months) is required")

    return issues


def has_usable_identity(row: SourceRow, mappings: Sequence[FieldMapping]) -> bool:
    """True when at least one of name, phone, national ID or amount is present."""
    mapped = mapped_values(row, mappings)
    return any(
        resolve_value(row, mapped, f) for f in ("fullName", "phone", "nationalId", "amount")
    )
