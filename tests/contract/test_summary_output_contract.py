from __future__ import annotations

import re

from borrower_match.models.orphan import CommitFailure, CommitReport, Resolution
from borrower_match.services.pipeline import analyze_import
from borrower_match.services.summary import render_commit_summary, render_summary_line

"""SUMMARY line format contract."""

SUMMARY_PATTERN = re.compile(
    r"^SUMMARY\s+kind=(customers|loans|mixed)\s+rows=([0-9]+)\s+ready=([0-9]+)\s+"
    r"review=([0-9]+)\s+invalid=([0-9]+)\s+create=([0-9]+)\s+link=([0-9]+)\s+skip=([0-9]+)\s+"
    r"elapsed_sec=([0-9]+\.?[0-9]*)\s+throughput_rps=([0-9]+\.?[0-9]*)$"
)

COMMIT_PATTERN = re.compile(
    r"^SUMMARY\s+committed=([0-9]+)\s+failed=([0-9]+)\s+linked=([0-9]+)\s+"
    r"created=([0-9]+)\s+skipped=([0-9]+)$"
)


def test_summary_pattern_example_line():
    line = (
        "SUMMARY kind=mixed rows=4 ready=2 review=1 invalid=1 create=2 link=1 skip=1 "
        "elapsed_sec=0.84 throughput_rps=4.76"
    )
    assert SUMMARY_PATTERN.match(line), "SUMMARY line should match contract regex"


def test_rendered_line_matches_and_counts_add_up(customer_pool):
    rows = [
        {"Full Name": "Jane Mwale", "Phone": "0971234567", "NRC": "123456/78/1"},
        {"Full Name": "Someone Else", "Phone": "", "NRC": ""},
        {"Full Name": "", "Phone": "", "NRC": ""},
    ]
    analysis = analyze_import(["Full Name", "Phone", "NRC"], rows, customer_pool, show_progress=False)
    m = SUMMARY_PATTERN.match(render_summary_line(analysis))
    assert m, render_summary_line(analysis)
    rows_n, ready, review, invalid, create, link, skip = (int(m.group(i)) for i in range(2, 9))
    assert rows_n == ready + review + invalid == 3
    assert create + link + skip == rows_n


def test_commit_summary_matches():
    report = CommitReport(
        success_count=2,
        failures=(CommitFailure("L3", "NOT_FOUND", "loan not found: L3"),),
        resolutions={"L1": Resolution.LINKED, "L2": Resolution.SKIPPED},
    )
    line = render_commit_summary(report)
    m = COMMIT_PATTERN.match(line)
    assert m, line
    assert m.groups() == ("2", "1", "1", "0", "1")
