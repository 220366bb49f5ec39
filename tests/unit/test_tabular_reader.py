from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from borrower_match.tabular.reader import TableReadError, read_table


def test_read_csv_keeps_text_and_blanks(tmp_path: Path):
    path = tmp_path / "borrowers.csv"
    path.write_text(
        "Full Name,Phone,NRC,Loan Amount\n"
        "Jane Mwale,0971234567,123456/78/1,5000\n"
        ",,,\n"
        "John Banda,,,1200\n",
        encoding="utf-8",
    )
    table = read_table(path)
    assert table.headers == ["Full Name", "Phone", "NRC", "Loan Amount"]
    assert table.row_count == 2
    # leading zero survives, no float conversion
    assert table.rows[0]["Phone"] == "0971234567"
    assert table.rows[0]["Loan Amount"] == "5000"
    assert table.rows[1] == {"Full Name": "John Banda", "Phone": "", "NRC": "", "Loan Amount": "1200"}


def test_read_xlsx(tmp_path: Path):
    path = tmp_path / "loans.xlsx"
    df = pd.DataFrame(
        [["Jane Mwale", "0971234567", "5000"], [None, None, None], ["Peter Phiri", "0955000111", "300"]],
        columns=["Name", "Phone", "Amount"],
    )
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Borrowers", index=False)
    table = read_table(path, sheet="Borrowers")
    assert table.headers == ["Name", "Phone", "Amount"]
    assert [r["Name"] for r in table.rows] == ["Jane Mwale", "Peter Phiri"]
    assert table.rows[0]["Phone"] == "0971234567"


def test_unsupported_suffix(tmp_path: Path):
    path = tmp_path / "data.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(TableReadError, match="unsupported"):
        read_table(path)


def test_missing_file(tmp_path: Path):
    with pytest.raises(TableReadError, match="not found"):
        read_table(tmp_path / "missing.csv")


def test_empty_csv(tmp_path: Path):
    path = tmp_path / "empty.csv"
    path.write_text("", encoding="utf-8")
    with pytest.raises(TableReadError):
        read_table(path)
