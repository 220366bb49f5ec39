from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from datetime import datetime

from .decision import RowAction, RowDecision, RowStatus
from .field_mapping import FieldMapping
from .fields import ImportKind
from .validation_issue import ValidationIssue

"""Import analysis result models.

ImportAnalysis aggregates everything the pipeline derived for one batch:
mappings, issues, per-row decisions and the summary counts shown before the
operator commits anything.
"""


@dataclass(frozen=True)
class ImportSummary:
    """Counts by status and action for one analysed batch."""
    total_rows: int
    ready_rows: int
    needs_review: int
    invalid_rows: int
    to_create: int
    to_link: int
    to_skip: int
    detected_kind: ImportKind

    @classmethod
    def from_decisions(cls, decisions: list[RowDecision], kind: ImportKind) -> ImportSummary:
        def count_status(s: RowStatus) -> int:
            return sum(1 for d in decisions if d.status is s)

        def count_action(a: RowAction) -> int:
            return sum(1 for d in decisions if d.action is a)

        return cls(
            total_rows=len(decisions),
            ready_rows=count_status(RowStatus.READY),
            needs_review=count_status(RowStatus.NEEDS_REVIEW),
            invalid_rows=count_status(RowStatus.INVALID),
            to_create=count_action(RowAction.CREATE),
            to_link=count_action(RowAction.LINK),
            to_skip=count_action(RowAction.SKIP),
            detected_kind=kind,
        )


@dataclass(frozen=True)
class ImportAnalysis:
    mappings: list[FieldMapping]
    issues: list[ValidationIssue]
    decisions: list[RowDecision]
    summary: ImportSummary
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float
    avg_row_seconds: float = 0.0
    p95_row_seconds: float = 0.0
    advisory_used: bool = False
    notes: list[str] = field(default_factory=list)

    @property
    def detected_kind(self) -> ImportKind:
        return self.summary.detected_kind

    def decision_for(self, row_index: int) -> RowDecision | None:
        for d in self.decisions:
            if d.row_index == row_index:
                return d
        return None


class RowTimingAccumulator:
    """Collects per-row analysis times and reports mean / p95."""

    def __init__(self) -> None:
        self.row_times: list[float] = []

    def add_row_time(self, elapsed_seconds: float) -> None:
        self.row_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (rows, avg_seconds, p95_seconds)."""
        if not self.row_times:
            return (0, 0.0, 0.0)

        total = len(self.row_times)
        avg = statistics.mean(self.row_times)
        if total == 1:
            p95 = self.row_times[0]
        else:
            p95 = statistics.quantiles(self.row_times, n=20, method="inclusive")[18]
        return (total, avg, p95)
