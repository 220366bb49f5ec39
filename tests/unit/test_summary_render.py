from __future__ import annotations

from datetime import UTC, datetime

from borrower_match.models.analysis import ImportAnalysis, ImportSummary
from borrower_match.models.decision import RowAction, RowDecision, RowStatus
from borrower_match.models.fields import ImportKind
from borrower_match.models.match import MatchCandidate, MatchTier
from borrower_match.models.orphan import CommitFailure, CommitReport, Resolution
from borrower_match.services.loan_import import LoanImportResult
from borrower_match.services.summary import (
    _fmt_number,
    render_commit_summary,
    render_reconciliation_report,
    render_summary_line,
)


def _analysis(elapsed: float, throughput: float) -> ImportAnalysis:
    decisions = [
        RowDecision(0, RowStatus.READY, RowAction.LINK),
        RowDecision(1, RowStatus.READY, RowAction.CREATE),
        RowDecision(2, RowStatus.NEEDS_REVIEW, RowAction.CREATE),
        RowDecision(3, RowStatus.INVALID, RowAction.SKIP),
    ]
    now = datetime.now(UTC)
    return ImportAnalysis(
        mappings=[],
        issues=[],
        decisions=decisions,
        summary=ImportSummary.from_decisions(decisions, ImportKind.MIXED),
        start_time=now,
        end_time=now,
        elapsed_seconds=elapsed,
        throughput_rows_per_sec=throughput,
    )


def test_fmt_number():
    assert _fmt_number(0) == "0"
    assert _fmt_number(2.0) == "2"
    assert _fmt_number(1.234) == "1.23"
    assert _fmt_number(0.000123) == "0.000123"


def test_render_summary_line():
    line = render_summary_line(_analysis(1.5, 2.666))
    assert line == (
        "SUMMARY kind=mixed rows=4 ready=2 review=1 invalid=1 create=2 link=1 skip=1 "
        "elapsed_sec=1.50 throughput_rps=2.67"
    )


def test_render_summary_line_zero_elapsed():
    assert render_summary_line(_analysis(0.0, 0.0)).endswith("elapsed_sec=0 throughput_rps=0")


def test_render_commit_summary():
    report = CommitReport(
        success_count=3,
        failures=(CommitFailure("L9", "COMMIT_FAILED", "boom"),),
        resolutions={"L1": Resolution.LINKED, "L2": Resolution.CREATED, "L3": Resolution.LINKED},
    )
    assert render_commit_summary(report) == "SUMMARY committed=3 failed=1 linked=2 created=1 skipped=0"


def test_reconciliation_report_with_orphans():
    result = LoanImportResult(
        imported_count=5,
        linked_count=3,
        orphan_count=2,
        orphan_ids=["L4", "L5"],
        suggestions={"L4": MatchCandidate("C1", "Jane", 0.95, tier=MatchTier.SOFT)},
    )
    text = render_reconciliation_report(result)
    assert "Total Imported: 5" in text
    assert "Automatically Linked: 3" in text
    assert "Orphan Loans (need mapping): 2" in text
    assert "Suggested matches awaiting confirmation: 1" in text
    assert "Action Required: 2 loans" in text


def test_reconciliation_report_without_orphans():
    text = render_reconciliation_report(LoanImportResult(imported_count=2, linked_count=2))
    assert "Action Required" not in text
    assert "Suggested" not in text
