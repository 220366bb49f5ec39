from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

Structured records for failures that are reported rather than raised:
per-case commit failures during reconciliation and advisory outages. They are
buffered by ErrorLogBuffer and written as JSON Lines with a fixed key set.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        tenant: tenant (agency) the operation ran for
        subject: loan record id, or "<BATCH>" for batch level problems
        row: zero-based source row index. Use -1 when not row related
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: description of the failure
    """
    timestamp: str
    tenant: str
    subject: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(tenant: str, subject: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            tenant=tenant,
            subject=subject,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
