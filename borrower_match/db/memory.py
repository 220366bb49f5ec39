from __future__ import annotations

import threading
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from borrower_match.models.orphan import Resolution
from borrower_match.models.records import (
    LOAN_STATUS_ACTIVE,
    LOAN_STATUS_SKIPPED,
    CustomerRecord,
    LoanRecord,
)

from .store import CommitError, StoreUnavailableError

"""In-memory RecordStore.

Used by tests and by the CLI when customers come from a JSON file. Data is
kept per tenant; all access goes through one lock.
"""

__all__ = [
    "InMemoryStore",
]


def resolution_status(resolution: Resolution) -> str:
    """Loan status written when an orphan case reaches a terminal resolution."""
    if resolution is Resolution.SKIPPED:
        return LOAN_STATUS_SKIPPED
    if resolution is Resolution.UNRESOLVED:
        raise CommitError("cannot mark a case resolved as 'unresolved'")
    return LOAN_STATUS_ACTIVE


class InMemoryStore:
    def __init__(
        self,
        customers: Mapping[str, Iterable[CustomerRecord]] | None = None,
        loans: Mapping[str, Iterable[LoanRecord]] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._customers: dict[str, dict[str, CustomerRecord]] = {}
        self._loans: dict[str, dict[str, LoanRecord]] = {}
        self._idempotency: dict[tuple[str, str], str] = {}
        self.resolutions: dict[tuple[str, str], Resolution] = {}
        self.available = True
        for tenant, items in (customers or {}).items():
            self._customers[tenant] = {c.id: c for c in items}
        for tenant, items in (loans or {}).items():
            self._loans[tenant] = {loan.id: loan for loan in items}

    def _check(self) -> None:
        if not self.available:
            raise StoreUnavailableError("in-memory store marked unavailable")

    def add_customer(self, tenant: str, customer: CustomerRecord) -> None:
        with self._lock:
            self._customers.setdefault(tenant, {})[customer.id] = customer

    def add_loan(self, tenant: str, loan: LoanRecord) -> None:
        with self._lock:
            self._loans.setdefault(tenant, {})[loan.id] = loan

    def list_customers(self, tenant: str) -> list[CustomerRecord]:
        self._check()
        with self._lock:
            return list(self._customers.get(tenant, {}).values())

    def list_loans(self, tenant: str, status: str | None = None) -> list[LoanRecord]:
        self._check()
        with self._lock:
            loans = list(self._loans.get(tenant, {}).values())
        if status is None:
            return loans
        return [loan for loan in loans if loan.status == status]

    def get_loan(self, tenant: str, loan_id: str) -> LoanRecord | None:
        self._check()
        with self._lock:
            return self._loans.get(tenant, {}).get(loan_id)

    def link_loan_to_customer(self, tenant: str, loan_id: str, customer_id: str) -> None:
        self._check()
        with self._lock:
            loans = self._loans.get(tenant, {})
            if loan_id not in loans:
                raise CommitError(f"loan not found: {loan_id}")
            if customer_id not in self._customers.get(tenant, {}):
                raise CommitError(f"customer not found: {customer_id}")
            loans[loan_id] = replace(loans[loan_id], customer_id=customer_id)

    def create_customer(self, tenant: str, fields: Mapping[str, Any], idempotency_key: str) -> str:
        self._check()
        with self._lock:
            key = (tenant, idempotency_key)
            if key in self._idempotency:
                return self._idempotency[key]
            customer_id = f"CUST-{uuid.uuid4().hex[:12]}"
            record = CustomerRecord.from_dict({**fields, "id": customer_id})
            self._customers.setdefault(tenant, {})[customer_id] = record
            self._idempotency[key] = customer_id
            return customer_id

    def mark_orphan_resolved(self, tenant: str, loan_id: str, resolution: Resolution) -> None:
        self._check()
        status = resolution_status(resolution)
        with self._lock:
            loans = self._loans.get(tenant, {})
            if loan_id not in loans:
                raise CommitError(f"loan not found: {loan_id}")
            loans[loan_id] = replace(loans[loan_id], status=status)
            self.resolutions[(tenant, loan_id)] = resolution
