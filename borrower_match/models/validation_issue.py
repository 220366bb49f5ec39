from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""ValidationIssue model.

Issues are data, never exceptions: the validator returns them for every row
and the classifier decides what they mean for the row's status.
"""

__all__ = [
    "Severity",
    "ValidationIssue",
]


class Severity(Enum):
    """ERROR blocks a row from being ready; WARNING does not."""
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class ValidationIssue:
    row_index: int
    field: str  # canonical field name
    message: str
    severity: Severity = Severity.ERROR

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR
