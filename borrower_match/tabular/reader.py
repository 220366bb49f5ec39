from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd

"""CSV / Excel reader.

Decoding happens here and nowhere else: the analysis pipeline receives
headers in file order plus one dict per data row. Every cell is kept as text
(no dtype inference) so IDs and phone numbers keep their leading zeros, and
blank cells become "".
"""

__all__ = [
    "TableData",
    "TableReadError",
    "read_table",
    "SUPPORTED_SUFFIXES",
]

SUPPORTED_SUFFIXES = (".csv", ".xlsx", ".xls")


class TableReadError(Exception):
    """Raised when a file cannot be decoded into a header row plus data rows."""


@dataclass
class TableData:
    source: str
    headers: list[str]
    rows: list[dict[str, Any]]

    @property
    def row_count(self) -> int:
        return len(self.rows)


def _frame_to_table(df: pd.DataFrame, source: str) -> TableData:
    headers = [str(c).strip() for c in df.columns.tolist()]
    if not any(headers):
        raise TableReadError(f"{source}: no header row")
    rows: list[dict[str, Any]] = []
    for raw in df.itertuples(index=False, name=None):
        values = ["" if pd.isna(v) else str(v).strip() for v in raw]
        # fully blank lines are layout, not data
        if not any(values):
            continue
        rows.append(dict(zip(headers, values, strict=False)))
    return TableData(source=source, headers=headers, rows=rows)


def read_table(path: Path, sheet: str | int = 0) -> TableData:
    """Read a CSV or the given sheet of an Excel workbook.

    The first row is the header row. Raises TableReadError for unsupported
    suffixes, missing files and undecodable content.
    """
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise TableReadError(f"unsupported file type: {path.name}")
    if not path.exists():
        raise TableReadError(f"file not found: {path}")

    try:
        if suffix == ".csv":
            df = pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)
        else:
            df = pd.read_excel(path, sheet_name=sheet, dtype=str, keep_default_na=False)
    except (ValueError, OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise TableReadError(f"{path.name}: {e}") from e

    return _frame_to_table(df, path.name)
