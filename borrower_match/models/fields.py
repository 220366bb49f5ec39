from __future__ import annotations

from enum import Enum

"""Canonical field vocabulary for borrower/loan imports.

The sets below are closed: nothing outside them may reach the record store.
Every mapping produced by the schema mapper (rule based or advisory) is
filtered against CANONICAL_FIELDS before it is handed downstream.
"""

__all__ = [
    "CUSTOMER_FIELDS",
    "LOAN_FIELDS",
    "CANONICAL_FIELDS",
    "IDENTITY_FIELDS",
    "ImportKind",
    "is_canonical",
]

CUSTOMER_FIELDS: frozenset[str] = frozenset({
    "fullName",
    "phone",
    "email",
    "nationalId",
    "address",
    "employmentStatus",
    "monthlyIncome",
    "employer",
    "jobTitle",
})

LOAN_FIELDS: frozenset[str] = frozenset({
    "customerId",
    "customerName",
    "amount",
    "interestRate",
    "durationMonths",
    "loanType",
    "disbursementDate",
    "collateralIncluded",
})

CANONICAL_FIELDS: frozenset[str] = CUSTOMER_FIELDS | LOAN_FIELDS

# Fields the identity matcher reads, in hard-match priority order (name last)
IDENTITY_FIELDS: tuple[str, ...] = ("phone", "nationalId", "email", "fullName")


class ImportKind(Enum):
    """What a dataset describes, detected from its headers.

    - CUSTOMERS: borrower attributes only
    - LOANS: loan terms only
    - MIXED: both in the same row
    """
    CUSTOMERS = "customers"
    LOANS = "loans"
    MIXED = "mixed"

    @property
    def includes_customers(self) -> bool:
        return self in (ImportKind.CUSTOMERS, ImportKind.MIXED)

    @property
    def includes_loans(self) -> bool:
        return self in (ImportKind.LOANS, ImportKind.MIXED)


def is_canonical(field: str) -> bool:
    return field in CANONICAL_FIELDS
