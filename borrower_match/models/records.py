from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

"""Store-facing record shapes.

The core does not care how records are stored; it only needs these attributes.
Store implementations translate their rows/documents into these dataclasses.
"""

__all__ = [
    "CustomerRecord",
    "LoanRecord",
    "LOAN_STATUS_REQUIRES_MAPPING",
    "LOAN_STATUS_ACTIVE",
    "LOAN_STATUS_SKIPPED",
]

LOAN_STATUS_REQUIRES_MAPPING = "requires_mapping"
LOAN_STATUS_ACTIVE = "active"
LOAN_STATUS_SKIPPED = "unmapped_skipped"


@dataclass(frozen=True)
class CustomerRecord:
    id: str
    full_name: str = ""
    phone: str = ""
    national_id: str = ""
    email: str = ""
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CustomerRecord:
        """Accept both canonical (fullName) and snake_case (full_name) keys."""
        def pick(*keys: str) -> str:
            for k in keys:
                v = data.get(k)
                if v is not None and str(v).strip():
                    return str(v).strip()
            return ""

        known = {"id", "fullName", "full_name", "phone", "nationalId", "national_id", "nrc", "email"}
        return cls(
            id=str(data["id"]),
            full_name=pick("fullName", "full_name"),
            phone=pick("phone"),
            national_id=pick("nationalId", "national_id", "nrc"),
            email=pick("email"),
            extra={k: v for k, v in data.items() if k not in known},
        )


@dataclass(frozen=True)
class LoanRecord:
    """A persisted loan. raw_fields keeps the borrower data captured at import."""
    id: str
    customer_id: str | None = None
    status: str = LOAN_STATUS_ACTIVE
    borrower_name: str = ""
    borrower_id: str | None = None
    amount: float | None = None
    raw_fields: Mapping[str, Any] = field(default_factory=dict)

    @property
    def requires_mapping(self) -> bool:
        return self.status == LOAN_STATUS_REQUIRES_MAPPING
