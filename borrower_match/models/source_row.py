from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

"""SourceRow model for borrower/loan imports.

SourceRow represents a single decoded row of the uploaded dataset, keyed by the
raw column headers exactly as they appeared in the file.
"""

__all__ = [
    "SourceRow",
]


@dataclass(frozen=True)
class SourceRow:
    """One raw input row (column header -> raw string value).

    row_index is zero based and refers to the position in the decoded dataset,
    not to a spreadsheet line number. values is wrapped in a read-only mapping
    so the row cannot be mutated after parsing.
    """
    row_index: int
    values: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # copy first so the caller's dict is never shared
        object.__setattr__(self, "values", MappingProxyType(dict(self.values)))

    @classmethod
    def from_raw(cls, row_index: int, raw: Mapping[str, Any]) -> SourceRow:
        """Build a SourceRow from a loosely-typed record (None / numbers allowed)."""
        values = {}
        for key, val in raw.items():
            if val is None:
                values[str(key)] = ""
            else:
                values[str(key)] = str(val)
        return cls(row_index=row_index, values=values)

    def get(self, column: str) -> str:
        """Return the trimmed value for column, or "" when absent."""
        val = self.values.get(column)
        if val is None:
            return ""
        return str(val).strip()

    @property
    def columns(self) -> list[str]:
        return list(self.values.keys())
