from __future__ import annotations

from borrower_match.models.analysis import ImportAnalysis
from borrower_match.models.orphan import CommitReport

from .loan_import import LoanImportResult

"""Summary rendering.

One-line SUMMARY output for analysed batches and reconciliation commits, plus
the multi-line post-import reconciliation report.
"""


def _fmt_number(value: float) -> str:
    """0 -> "0", 2.0 -> "2", tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.2f}"


def render_summary_line(analysis: ImportAnalysis) -> str:
    """Render the SUMMARY line for an analysed batch.

    Format:
    SUMMARY kind={kind} rows={total} ready={ready} review={needs_review}
    invalid={invalid} create={create} link={link} skip={skip}
    elapsed_sec={elapsed} throughput_rps={throughput}
    """
    s = analysis.summary
    return (
        f"SUMMARY kind={s.detected_kind.value} "
        f"rows={s.total_rows} "
        f"ready={s.ready_rows} "
        f"review={s.needs_review} "
        f"invalid={s.invalid_rows} "
        f"create={s.to_create} "
        f"link={s.to_link} "
        f"skip={s.to_skip} "
        f"elapsed_sec={_fmt_number(analysis.elapsed_seconds)} "
        f"throughput_rps={_fmt_number(analysis.throughput_rows_per_sec)}"
    )


def render_commit_summary(report: CommitReport) -> str:
    """SUMMARY committed={n} failed={n} linked={n} created={n} skipped={n}"""
    counts = {"linked": 0, "created": 0, "skipped": 0}
    for resolution in report.resolutions.values():
        if resolution.value in counts:
            counts[resolution.value] += 1
    return (
        f"SUMMARY committed={report.success_count} "
        f"failed={report.failed_count} "
        f"linked={counts['linked']} "
        f"created={counts['created']} "
        f"skipped={counts['skipped']}"
    )


def render_reconciliation_report(result: LoanImportResult) -> str:
    lines = [
        "Loan Import Report",
        f"Total Imported: {result.imported_count}",
        f"Automatically Linked: {result.linked_count}",
        f"Orphan Loans (need mapping): {result.orphan_count}",
    ]
    if result.suggestions:
        lines.append(f"Suggested matches awaiting confirmation: {len(result.suggestions)}")
    if result.orphan_count > 0:
        lines.append("")
        lines.append(
            f"Action Required: {result.orphan_count} loans need to be manually linked to customers."
        )
        lines.append("Run orphan reconciliation now or later from the loans menu.")
    return "\n".join(lines)
