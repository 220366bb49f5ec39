from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from borrower_match.config.loader import ConfigError, load_config
from borrower_match.db.connection import db_connection
from borrower_match.db.memory import InMemoryStore
from borrower_match.db.postgres import PostgresStore
from borrower_match.db.store import CommitError, RecordStore, StoreUnavailableError
from borrower_match.logging.error_log import ErrorLogBuffer
from borrower_match.logging.init import log_summary, setup_logging
from borrower_match.models.config_models import ImportConfig
from borrower_match.models.decision import RowDecision
from borrower_match.models.records import CustomerRecord
from borrower_match.services.advisory import RuleBasedSuggester
from borrower_match.services.pipeline import analyze_for_tenant
from borrower_match.services.reconciliation import ReconciliationWorkflow
from borrower_match.services.summary import render_summary_line
from borrower_match.tabular.reader import TableReadError, read_table

"""Command-line entrypoint.

    python -m borrower_match.cli analyze FILE [--customers JSON] [--config YAML]
    python -m borrower_match.cli orphans --tenant T [--config YAML]

analyze: read a CSV/XLSX, print one line per row decision and a SUMMARY line.
Customers come from a JSON file (list of objects) when --customers is given,
otherwise from PostgreSQL. Nothing is written.

orphans: list the tenant's unresolved orphan loans with their suggestions.

Exit codes:
    0  every row ready (analyze) / listing succeeded (orphans)
    2  some rows need review or are invalid
    1  fatal: bad config, unreadable file, store unavailable
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

DEFAULT_CONFIG_PATH = Path("config/import.yml")


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env so DATABASE_URL / PG* win over the config file."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="borrower_match", description="Import identity matching and orphan-loan reconciliation"
    )
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    a = sub.add_parser("analyze", help="Analyse an import file without writing anything")
    a.add_argument("file", type=Path, help="CSV or XLSX file")
    a.add_argument("--customers", type=Path, default=None, help="JSON file with the existing customer pool")
    a.add_argument("--tenant", default="default")
    a.add_argument("--sheet", default=0, help="Excel sheet name or index")
    a.add_argument("--advisory", action="store_true", help="Enable the rule-based advisory suggester")
    a.add_argument("--config", type=Path, default=None, help="YAML config (default: config/import.yml if present)")

    o = sub.add_parser("orphans", help="List unresolved orphan loans")
    o.add_argument("--tenant", required=True)
    o.add_argument("--config", type=Path, default=None, help="YAML config (default: config/import.yml if present)")
    return p.parse_args(argv)


def _load_cfg(path: Path | None) -> ImportConfig:
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return ImportConfig()


def _load_customers(path: Path, tenant: str) -> InMemoryStore:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise StoreUnavailableError(f"cannot read customers file {path}: {e}") from e
    if not isinstance(data, list):
        raise StoreUnavailableError(f"customers file must hold a JSON list: {path}")
    try:
        records = [CustomerRecord.from_dict(item) for item in data]
    except (KeyError, TypeError, AttributeError) as e:
        raise StoreUnavailableError(f"bad customer entry in {path}: {e}") from e
    return InMemoryStore(customers={tenant: records})


def _format_decision(d: RowDecision) -> str:
    parts = [f"row={d.row_index}", f"status={d.status.value}", f"action={d.action.value}"]
    if d.link_target:
        parts.append(f"link={d.link_target}")
    elif d.match_candidates:
        best = d.match_candidates[0]
        parts.append(f"candidate={best.candidate_id}({best.confidence:.2f})")
    if d.ambiguous:
        parts.append("ambiguous=yes")
    if d.errors:
        parts.append("errors=" + ";".join(f"{i.field}:{i.message}" for i in d.errors))
    return " ".join(parts)


def _run_analyze(args: argparse.Namespace, cfg: ImportConfig, store: RecordStore, logger: logging.Logger) -> int:
    sheet: str | int = int(args.sheet) if str(args.sheet).isdigit() else args.sheet
    table = read_table(args.file, sheet=sheet)
    logger.info(f"read {table.source}: columns={len(table.headers)} rows={table.row_count}")

    error_log = ErrorLogBuffer()
    suggester = RuleBasedSuggester(cfg.matching) if (args.advisory or cfg.advisory.enabled) else None
    analysis = analyze_for_tenant(
        store,
        args.tenant,
        table.headers,
        table.rows,
        config=cfg,
        suggester=suggester,
        error_log=error_log,
    )

    for m in analysis.mappings:
        logger.info(f"map {m.source_column!r} -> {m.canonical_field} ({m.confidence:.2f}, {m.source})")
    for d in analysis.decisions:
        if d.errors:
            logger.error(_format_decision(d))
        else:
            logger.info(_format_decision(d))
    for note in analysis.notes:
        logger.warning(note)

    # log_summary adds the "SUMMARY " prefix itself
    log_summary(render_summary_line(analysis)[len("SUMMARY "):])

    s = analysis.summary
    if s.needs_review or s.invalid_rows:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _run_orphans(args: argparse.Namespace, cfg: ImportConfig, store: RecordStore, logger: logging.Logger) -> int:
    workflow = ReconciliationWorkflow(store, args.tenant, config=cfg.matching)
    cases = workflow.detect_orphans()
    suggested = 0
    ambiguous = 0
    for case in cases:
        if case.suggested_match is not None:
            suggested += 1
            m = case.suggested_match
            logger.info(
                f"loan={case.loan_record_id} borrower={case.borrower_name!r} "
                f"suggest={m.candidate_id} ({m.confidence:.2f}) {m.reason}"
            )
        else:
            if case.ambiguous:
                ambiguous += 1
            logger.info(
                f"loan={case.loan_record_id} borrower={case.borrower_name!r} "
                f"suggest=none{' ambiguous=yes' if case.ambiguous else ''}"
            )
    log_summary(f"orphans={len(cases)} suggested={suggested} ambiguous={ambiguous}")
    return EXIT_SUCCESS_ALL


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # None only: an explicit [] from tests must not fall back to sys.argv
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    if args.debug:
        for h in logger.handlers:
            h.setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
        logger.debug("debug mode enabled")

    try:
        cfg = _load_cfg(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    runner = _run_analyze if args.command == "analyze" else _run_orphans
    try:
        if args.command == "analyze" and args.customers is not None:
            return runner(args, cfg, _load_customers(args.customers, args.tenant), logger)
        with db_connection(cfg.database) as conn:
            return runner(args, cfg, PostgresStore(conn), logger)
    except TableReadError as e:
        logger.error(f"read: {e}")
        return EXIT_FATAL
    except (StoreUnavailableError, CommitError) as e:
        logger.error(f"store: {e}")
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
