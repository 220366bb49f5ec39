from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any

import psycopg2
import psycopg2.extras

from borrower_match.models.orphan import Resolution
from borrower_match.models.records import CustomerRecord, LoanRecord

from .memory import resolution_status
from .store import CommitError, StoreUnavailableError

"""PostgreSQL RecordStore (psycopg2).

Expected tables (tenant scoped):

    customers(id text pk, tenant_id text, full_name text, phone text,
              national_id text, email text, address text, source_key text,
              UNIQUE (tenant_id, source_key))
    loans(id text pk, tenant_id text, customer_id text null, status text,
          borrower_name text, borrower_id text, amount numeric,
          raw_fields jsonb, resolution text null, mapped_at timestamptz null)

Each mutation runs in its own transaction: committed on success, rolled back
and re-raised as CommitError on failure. Connection-level failures become
StoreUnavailableError. Any other error on a read also rolls back and becomes
CommitError, so the connection is never left in an aborted transaction.
"""

__all__ = [
    "PostgresStore",
]

_CUSTOMER_COLS = "id, full_name, phone, national_id, email"
_LOAN_COLS = "id, customer_id, status, borrower_name, borrower_id, amount, raw_fields"


def _customer(row: Mapping[str, Any]) -> CustomerRecord:
    return CustomerRecord(
        id=str(row["id"]),
        full_name=row["full_name"] or "",
        phone=row["phone"] or "",
        national_id=row["national_id"] or "",
        email=row["email"] or "",
    )


def _loan(row: Mapping[str, Any]) -> LoanRecord:
    return LoanRecord(
        id=str(row["id"]),
        customer_id=row["customer_id"],
        status=row["status"],
        borrower_name=row["borrower_name"] or "",
        borrower_id=row["borrower_id"],
        amount=float(row["amount"]) if row["amount"] is not None else None,
        raw_fields=row["raw_fields"] or {},
    )


class PostgresStore:
    def __init__(self, conn: Any) -> None:
        self.conn = conn

    def _query(self, sql: str, params: tuple[Any, ...]) -> list[Mapping[str, Any]]:
        try:
            with self.conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()
            self.conn.rollback()  # close the read transaction
            return rows
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            raise StoreUnavailableError(str(e)) from e
        except psycopg2.Error as e:
            self.conn.rollback()
            raise CommitError(str(e)) from e

    def _mutate(self, sql: str, params: tuple[Any, ...]) -> Any:
        try:
            with self.conn.cursor() as cur:
                cur.execute(sql, params)
                result = cur.fetchone() if cur.description else None
                rowcount = cur.rowcount
            self.conn.commit()
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
            raise StoreUnavailableError(str(e)) from e
        except psycopg2.Error as e:
            self.conn.rollback()
            raise CommitError(str(e)) from e
        return result, rowcount

    def list_customers(self, tenant: str) -> list[CustomerRecord]:
        rows = self._query(f"SELECT {_CUSTOMER_COLS} FROM customers WHERE tenant_id = %s", (tenant,))
        return [_customer(r) for r in rows]

    def list_loans(self, tenant: str, status: str | None = None) -> list[LoanRecord]:
        if status is None:
            rows = self._query(f"SELECT {_LOAN_COLS} FROM loans WHERE tenant_id = %s", (tenant,))
        else:
            rows = self._query(
                f"SELECT {_LOAN_COLS} FROM loans WHERE tenant_id = %s AND status = %s",
                (tenant, status),
            )
        return [_loan(r) for r in rows]

    def get_loan(self, tenant: str, loan_id: str) -> LoanRecord | None:
        rows = self._query(
            f"SELECT {_LOAN_COLS} FROM loans WHERE tenant_id = %s AND id = %s", (tenant, loan_id)
        )
        return _loan(rows[0]) if rows else None

    def link_loan_to_customer(self, tenant: str, loan_id: str, customer_id: str) -> None:
        _, rowcount = self._mutate(
            "UPDATE loans SET customer_id = %s, mapped_at = now() "
            "WHERE tenant_id = %s AND id = %s "
            "AND EXISTS (SELECT 1 FROM customers WHERE tenant_id = %s AND id = %s)",
            (customer_id, tenant, loan_id, tenant, customer_id),
        )
        if rowcount == 0:
            raise CommitError(f"loan {loan_id} or customer {customer_id} not found")

    def create_customer(self, tenant: str, fields: Mapping[str, Any], idempotency_key: str) -> str:
        new_id = f"CUST-{uuid.uuid4().hex[:12]}"
        result, _ = self._mutate(
            "INSERT INTO customers "
            "(id, tenant_id, full_name, phone, national_id, email, address, source_key) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s, %s) "
            "ON CONFLICT (tenant_id, source_key) DO NOTHING RETURNING id",
            (
                new_id,
                tenant,
                fields.get("fullName", ""),
                fields.get("phone", ""),
                fields.get("nationalId", ""),
                fields.get("email", ""),
                fields.get("address", ""),
                idempotency_key,
            ),
        )
        if result is not None:
            return str(result[0])
        rows = self._query(
            "SELECT id FROM customers WHERE tenant_id = %s AND source_key = %s",
            (tenant, idempotency_key),
        )
        if not rows:
            raise CommitError(f"customer for key {idempotency_key} vanished after conflict")
        return str(rows[0]["id"])

    def mark_orphan_resolved(self, tenant: str, loan_id: str, resolution: Resolution) -> None:
        status = resolution_status(resolution)
        _, rowcount = self._mutate(
            "UPDATE loans SET status = %s, resolution = %s WHERE tenant_id = %s AND id = %s",
            (status, resolution.value, tenant, loan_id),
        )
        if rowcount == 0:
            raise CommitError(f"loan not found: {loan_id}")
