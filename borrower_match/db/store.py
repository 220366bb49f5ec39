from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

from borrower_match.models.orphan import Resolution
from borrower_match.models.records import CustomerRecord, LoanRecord

"""Record store interface.

The core only reads the customer and loan collections of one tenant and
invokes three mutations. Every mutation must be idempotent under retry: the
same call twice leaves the same end state and never a duplicate.
"""

__all__ = [
    "RecordStore",
    "StoreUnavailableError",
    "CommitError",
]


class StoreUnavailableError(Exception):
    """The store cannot be reached at all. Fatal for the whole operation."""


class CommitError(Exception):
    """A single mutation failed. Captured per case by the reconciliation workflow."""


class RecordStore(Protocol):
    def list_customers(self, tenant: str) -> list[CustomerRecord]: ...

    def list_loans(self, tenant: str, status: str | None = None) -> list[LoanRecord]: ...

    def get_loan(self, tenant: str, loan_id: str) -> LoanRecord | None: ...

    def link_loan_to_customer(self, tenant: str, loan_id: str, customer_id: str) -> None: ...

    def create_customer(
        self, tenant: str, fields: Mapping[str, Any], idempotency_key: str
    ) -> str: ...

    def mark_orphan_resolved(self, tenant: str, loan_id: str, resolution: Resolution) -> None: ...
