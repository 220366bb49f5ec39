from __future__ import annotations

import logging
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from typing import Any

from borrower_match.db.store import RecordStore, StoreUnavailableError
from borrower_match.logging.error_log import ErrorLogBuffer
from borrower_match.models.analysis import ImportAnalysis, ImportSummary, RowTimingAccumulator
from borrower_match.models.config_models import ImportConfig
from borrower_match.models.decision import RowDecision
from borrower_match.models.field_mapping import FieldMapping
from borrower_match.models.fields import ImportKind
from borrower_match.models.match import MatchCandidate
from borrower_match.models.records import CustomerRecord
from borrower_match.models.source_row import SourceRow
from borrower_match.models.validation_issue import ValidationIssue

from .advisory import GuardedSuggester, Suggester, apply_match_suggestion
from .classifier import classify_row, is_auto_commit_eligible
from .mapper import detect_import_kind, infer_mappings, merge_advisory_mappings
from .matcher import IdentityAttributes, IdentityMatcher
from .progress import ProgressTracker
from .validator import has_usable_identity, validate_row

"""Import analysis pipeline.

    headers ──> mapper ──> kind detection
    rows ─────> validator ┐
              > matcher ──┴> classifier ──> RowDecision per row

Mapping happens once per batch; validation, matching and classification run
per row on a bounded thread pool. Rows share nothing mutable (the customer
index is read-only), so the result does not depend on scheduling order and a
cancelled batch can simply be analysed again.

Nothing here writes to the store.
"""

__all__ = [
    "analyze_import",
    "analyze_for_tenant",
    "commit_plan",
]

logger = logging.getLogger(__name__)


def _analyze_row(
    row: SourceRow,
    mappings: Sequence[FieldMapping],
    kind: ImportKind,
    matcher: IdentityMatcher,
    advisory: Sequence[MatchCandidate],
    known_ids: set[str],
) -> tuple[list[ValidationIssue], RowDecision, float]:
    started = time.perf_counter()
    issues = validate_row(row, mappings, kind)
    identity = IdentityAttributes.from_row(row, mappings, matcher.config.phone_country_code)
    result = matcher.match(identity)
    for candidate in advisory:
        result = apply_match_suggestion(result, candidate, known_ids)
    decision = classify_row(row.row_index, issues, result, has_usable_identity(row, mappings))
    return issues, decision, time.perf_counter() - started


def analyze_import(
    headers: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
    pool: Sequence[CustomerRecord],
    *,
    config: ImportConfig | None = None,
    suggester: Suggester | None = None,
    tenant: str = "default",
    error_log: ErrorLogBuffer | None = None,
    show_progress: bool | None = None,
) -> ImportAnalysis:
    """Map, validate, match and classify one decoded dataset.

    Args:
        headers: column headers in file order
        rows: decoded rows (header -> value)
        pool: the tenant's existing customers
        config: thresholds and concurrency limit (defaults when None)
        suggester: optional advisor; wrapped in GuardedSuggester unless it
            already is one. Its failures never fail the analysis.
        tenant: used for advisory rate limiting and error records
        error_log: receives ADVISORY_UNAVAILABLE records
        show_progress: force the tqdm bar on/off (None = only on a TTY)

    Returns:
        ImportAnalysis with one RowDecision per input row, in input order
    """
    cfg = config or ImportConfig()
    start_time = datetime.now(UTC)
    source_rows = [SourceRow.from_raw(i, r) for i, r in enumerate(rows)]
    notes: list[str] = []

    mappings = infer_mappings(headers, config=cfg.matching)

    guarded: GuardedSuggester | None = None
    if suggester is not None:
        if isinstance(suggester, GuardedSuggester):
            guarded = suggester
        else:
            guarded = GuardedSuggester(
                suggester, tenant=tenant, config=cfg.advisory, error_log=error_log
            )

    advisory_by_row: dict[int, list[MatchCandidate]] = {}
    if guarded is not None:
        failures_before = guarded.failures
        proposals = guarded.suggest_mappings(headers, source_rows[: cfg.sample_rows])
        mappings = merge_advisory_mappings(mappings, proposals, headers=headers, config=cfg.matching)
        for suggestion in guarded.suggest_matches(source_rows, pool):
            advisory_by_row.setdefault(suggestion.row_index, []).append(suggestion.candidate)
        if guarded.failures > failures_before:
            notes.append("advisory unavailable; rule-based results only")
        if guarded is not suggester:
            guarded.close()

    kind = detect_import_kind(headers)
    matcher = IdentityMatcher.for_pool(pool, cfg.matching)
    known_ids = {c.id for c in matcher.index.customers}
    logger.info(
        "analysing rows=%d kind=%s mapped=%d/%d pool=%d",
        len(source_rows),
        kind.value,
        len(mappings),
        len(headers),
        len(known_ids),
    )

    issues: list[ValidationIssue] = []
    decisions: list[RowDecision] = []
    timing = RowTimingAccumulator()

    with ProgressTracker(len(source_rows), enabled=show_progress) as progress:
        with ThreadPoolExecutor(max_workers=cfg.concurrency_limit, thread_name_prefix="row") as pool_exec:
            results = pool_exec.map(
                lambda r: _analyze_row(
                    r, mappings, kind, matcher, advisory_by_row.get(r.row_index, ()), known_ids
                ),
                source_rows,
            )
            # map() yields in input order
            for row_issues, decision, elapsed in results:
                issues.extend(row_issues)
                decisions.append(decision)
                timing.add_row_time(elapsed)
                progress.update()

    end_time = datetime.now(UTC)
    elapsed_seconds = (end_time - start_time).total_seconds()
    throughput = len(decisions) / elapsed_seconds if elapsed_seconds > 0 else 0.0
    _, avg_row, p95_row = timing.get_stats()

    if error_log is not None:
        error_log.flush()

    return ImportAnalysis(
        mappings=mappings,
        issues=issues,
        decisions=decisions,
        summary=ImportSummary.from_decisions(decisions, kind),
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=elapsed_seconds,
        throughput_rows_per_sec=throughput,
        avg_row_seconds=avg_row,
        p95_row_seconds=p95_row,
        advisory_used=guarded is not None and not notes,
        notes=notes,
    )


def analyze_for_tenant(
    store: RecordStore | None,
    tenant: str,
    headers: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
    **kwargs: Any,
) -> ImportAnalysis:
    """analyze_import() against the tenant's current customer pool.

    Raises:
        StoreUnavailableError: no store, or the store cannot be read. This is
            the only failure that aborts an analysis.
    """
    if store is None:
        raise StoreUnavailableError("no record store configured")
    pool = store.list_customers(tenant)
    return analyze_import(headers, rows, pool, tenant=tenant, **kwargs)


def commit_plan(analysis: ImportAnalysis, config: ImportConfig | None = None) -> list[RowDecision]:
    """Decisions that may be persisted without an operator gate."""
    cfg = config or ImportConfig()
    return [
        d
        for d in analysis.decisions
        if is_auto_commit_eligible(d, include_needs_review=cfg.auto_commit_needs_review)
    ]
