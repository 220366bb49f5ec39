from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import replace
from typing import Any

from borrower_match.db.store import CommitError, RecordStore, StoreUnavailableError
from borrower_match.logging.error_log import ErrorLogBuffer
from borrower_match.models.config_models import MatchingConfig
from borrower_match.models.error_record import ErrorRecord
from borrower_match.models.match import MatchCandidate, MatchTier
from borrower_match.models.orphan import (
    CommitFailure,
    CommitReport,
    DecisionKind,
    OperatorDecision,
    OrphanCase,
    Resolution,
)
from borrower_match.models.records import LOAN_STATUS_REQUIRES_MAPPING, CustomerRecord, LoanRecord

from .matcher import IdentityAttributes, IdentityMatcher
from .normalize import normalize_national_id, normalize_phone

"""Orphan-loan reconciliation workflow.

1. detect_orphans(): every loan whose own status is requires_mapping becomes
   an OrphanCase with a fresh suggestion from the identity matcher (the
   customer pool may have grown since the loan was imported).
2. The operator picks one decision per case (confirm / select / create / skip).
3. commit(): decisions are applied one case at a time. Each case is its own
   unit of work; a failing case is reported and the batch carries on.

Detection reads the loan status field only, so resolved loans never come
back and re-running detection after a partial commit is safe.
"""

__all__ = [
    "ReconciliationError",
    "ReconciliationWorkflow",
    "raw_identity_fields",
]

logger = logging.getLogger(__name__)


class ReconciliationError(Exception):
    """An operator decision that cannot be applied to the case as it stands."""

    def __init__(self, error_type: str, message: str) -> None:
        super().__init__(message)
        self.error_type = error_type


_RAW_KEYS: dict[str, tuple[str, ...]] = {
    "fullName": ("fullName", "full_name", "borrower_name", "name"),
    "phone": ("phone", "phone_number", "mobile"),
    "nationalId": ("nationalId", "national_id", "nrc"),
    "email": ("email",),
    "address": ("address",),
}


def raw_identity_fields(loan: LoanRecord) -> dict[str, Any]:
    """Canonical identity fields captured on an imported loan."""
    out: dict[str, Any] = {}
    for field, keys in _RAW_KEYS.items():
        for key in keys:
            val = loan.raw_fields.get(key)
            if val is not None and str(val).strip():
                out[field] = str(val).strip()
                break
    if not out.get("fullName") and loan.borrower_name.strip():
        out["fullName"] = loan.borrower_name.strip()
    return out


class ReconciliationWorkflow:
    def __init__(
        self,
        store: RecordStore,
        tenant: str,
        *,
        config: MatchingConfig | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.store = store
        self.tenant = tenant
        self.config = config or MatchingConfig()
        self.error_log = error_log
        self._cases: dict[str, OrphanCase] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._locks_guard = threading.Lock()

    # detection -----------------------------------------------------------

    def detect_orphans(self) -> list[OrphanCase]:
        """Scan the tenant's loans for unresolved orphans and suggest matches."""
        loans = self.store.list_loans(self.tenant, status=LOAN_STATUS_REQUIRES_MAPPING)
        pool = self.store.list_customers(self.tenant)
        matcher = IdentityMatcher.for_pool(pool, self.config)
        pool_ids = {c.id for c in pool}

        cases: list[OrphanCase] = []
        for loan in loans:
            if not loan.requires_mapping:
                continue
            cases.append(self._build_case(loan, matcher, pool_ids))

        self._cases = {c.loan_record_id: c for c in cases}
        logger.info("tenant=%s orphan cases=%d pool=%d", self.tenant, len(cases), len(pool))
        return cases

    def _build_case(self, loan: LoanRecord, matcher: IdentityMatcher, pool_ids: set[str]) -> OrphanCase:
        fields = raw_identity_fields(loan)

        # an explicit borrower reference that now exists beats any identity match
        if loan.borrower_id and loan.borrower_id in pool_ids:
            customer = matcher.index.get(loan.borrower_id)
            suggestion = MatchCandidate(
                candidate_id=loan.borrower_id,
                display_name=(customer.full_name if customer else "") or "Unknown",
                confidence=1.0,
                matched_fields=frozenset({"customerId"}),
                tier=MatchTier.HARD,
                reason=f"Exact borrower ID match: {loan.borrower_id}",
            )
            return OrphanCase(loan.id, fields, suggestion)

        identity = IdentityAttributes.from_fields(fields, self.config.phone_country_code)
        result = matcher.match(identity)
        suggestion = None if result.ambiguous else result.best
        return OrphanCase(loan.id, fields, suggestion, ambiguous=result.ambiguous)

    def pending_cases(self) -> list[OrphanCase]:
        """Cases from the last detection that are still unresolved."""
        return [c for c in self._cases.values() if not c.resolution.is_terminal]

    # manual search ---------------------------------------------------------

    def search_customers(self, query: str, limit: int = 10) -> list[CustomerRecord]:
        """Name substring search; exact phone / NRC hits are listed first."""
        q = query.strip()
        if not q:
            return []
        q_lower = q.lower()
        q_phone = normalize_phone(q, self.config.phone_country_code)
        q_nid = normalize_national_id(q)

        exact: list[CustomerRecord] = []
        partial: list[CustomerRecord] = []
        for c in self.store.list_customers(self.tenant):
            if (q_phone and normalize_phone(c.phone, self.config.phone_country_code) == q_phone) or (
                q_nid and normalize_national_id(c.national_id) == q_nid
            ):
                exact.append(c)
            elif q_lower in c.full_name.lower():
                partial.append(c)
        return (exact + partial)[:limit]

    # commit ------------------------------------------------------------------

    @contextmanager
    def _case_lock(self, loan_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(loan_id, threading.Lock())
            self._lock_users[loan_id] = self._lock_users.get(loan_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                self._lock_users[loan_id] -= 1
                if not self._lock_users[loan_id]:
                    del self._lock_users[loan_id]
                    del self._locks[loan_id]

    def commit(self, decisions: Sequence[OperatorDecision]) -> CommitReport:
        """Apply operator decisions case by case.

        Any error for a case other than StoreUnavailableError becomes a
        CommitFailure entry. StoreUnavailableError is fatal and propagates;
        cases already committed stay committed.
        """
        success = 0
        failures: list[CommitFailure] = []
        resolutions: dict[str, Resolution] = {}
        created: dict[str, str] = {}

        for decision in decisions:
            loan_id = decision.loan_record_id
            with self._case_lock(loan_id):
                try:
                    resolution, new_customer = self._apply(decision)
                except ReconciliationError as e:
                    failures.append(self._failure(loan_id, e.error_type, str(e)))
                    continue
                except CommitError as e:
                    failures.append(self._failure(loan_id, "COMMIT_FAILED", str(e)))
                    continue
                except StoreUnavailableError:
                    raise
                except Exception as e:
                    failures.append(self._failure(loan_id, "COMMIT_FAILED", f"{type(e).__name__}: {e}"))
                    continue
            success += 1
            resolutions[loan_id] = resolution
            if new_customer is not None:
                created[loan_id] = new_customer
            case = self._cases.get(loan_id)
            if case is not None:
                self._cases[loan_id] = replace(case, resolution=resolution)

        if self.error_log is not None and failures:
            self.error_log.flush()
        logger.info(
            "tenant=%s reconciliation committed=%d failed=%d", self.tenant, success, len(failures)
        )
        return CommitReport(
            success_count=success,
            failures=tuple(failures),
            resolutions=resolutions,
            created_customers=created,
        )

    def _failure(self, loan_id: str, error_type: str, message: str) -> CommitFailure:
        logger.error("reconciliation failed loan=%s type=%s: %s", loan_id, error_type, message)
        if self.error_log is not None:
            self.error_log.append(
                ErrorRecord.create(
                    tenant=self.tenant, subject=loan_id, row=-1, error_type=error_type, message=message
                )
            )
        return CommitFailure(loan_record_id=loan_id, error_type=error_type, message=message)

    def _apply(self, decision: OperatorDecision) -> tuple[Resolution, str | None]:
        loan_id = decision.loan_record_id
        loan = self.store.get_loan(self.tenant, loan_id)
        if loan is None:
            raise ReconciliationError("NOT_FOUND", f"loan not found: {loan_id}")
        if not loan.requires_mapping:
            raise ReconciliationError("ALREADY_RESOLVED", f"loan {loan_id} is not awaiting mapping")

        if decision.kind is DecisionKind.SKIP:
            self.store.mark_orphan_resolved(self.tenant, loan_id, Resolution.SKIPPED)
            return Resolution.SKIPPED, None

        if decision.kind is DecisionKind.CONFIRM_SUGGESTION:
            case = self._cases.get(loan_id)
            if case is None:
                pool = self.store.list_customers(self.tenant)
                matcher = IdentityMatcher.for_pool(pool, self.config)
                case = self._build_case(loan, matcher, {c.id for c in pool})
            if case.suggested_match is None:
                raise ReconciliationError("INVALID_DECISION", f"loan {loan_id} has no suggested match")
            self._link(loan_id, case.suggested_match.candidate_id)
            return Resolution.LINKED, None

        if decision.kind is DecisionKind.SELECT_CUSTOMER:
            if not decision.customer_id:
                raise ReconciliationError("INVALID_DECISION", f"loan {loan_id}: no customer selected")
            known = {c.id for c in self.store.list_customers(self.tenant)}
            if decision.customer_id not in known:
                raise ReconciliationError(
                    "INVALID_DECISION", f"loan {loan_id}: unknown customer {decision.customer_id}"
                )
            self._link(loan_id, decision.customer_id)
            return Resolution.LINKED, None

        # CREATE_CUSTOMER
        fields: dict[str, Any] = dict(raw_identity_fields(loan))
        if decision.customer_fields:
            fields.update(self._clean_fields(decision.customer_fields))
        if not str(fields.get("fullName", "")).strip():
            raise ReconciliationError("INVALID_DECISION", f"loan {loan_id}: new customer needs a name")
        customer_id = self.store.create_customer(self.tenant, fields, idempotency_key=f"orphan:{loan_id}")
        self.store.link_loan_to_customer(self.tenant, loan_id, customer_id)
        self.store.mark_orphan_resolved(self.tenant, loan_id, Resolution.CREATED)
        return Resolution.CREATED, customer_id

    def _link(self, loan_id: str, customer_id: str) -> None:
        self.store.link_loan_to_customer(self.tenant, loan_id, customer_id)
        self.store.mark_orphan_resolved(self.tenant, loan_id, Resolution.LINKED)

    @staticmethod
    def _clean_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in fields.items() if v is not None and str(v).strip()}
