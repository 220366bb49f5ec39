from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2

from borrower_match.models.config_models import DatabaseConfig

from .store import StoreUnavailableError

"""PostgreSQL connection helpers.

Connection settings resolve in this order:
    1. DATABASE_URL / PGDSN environment variables (full DSN)
    2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. the database section of the config file
"""

__all__ = [
    "resolve_dsn",
    "db_connection",
]


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def db_connection(db_cfg: DatabaseConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """Yield an open psycopg2 connection; raise StoreUnavailableError if none can be made."""
    try:
        conn = psycopg2.connect(resolve_dsn(db_cfg))
    except psycopg2.OperationalError as e:
        raise StoreUnavailableError(f"cannot connect to database: {e}") from e
    conn.autocommit = False
    try:
        yield conn
    finally:
        conn.close()
