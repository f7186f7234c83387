"""SQLite connection helpers."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .config import AppConfig
from .exceptions import DatabaseError

BUSY_TIMEOUT_SECONDS = 5.0


def quote_identifier(name: str) -> str:
    """Quote a table or column name for interpolation into SQL text."""
    return '"' + name.replace('"', '""') + '"'


def _resolve_database_path(config: AppConfig) -> Path:
    db_path = config.database.path
    if not db_path.exists():
        raise DatabaseError(f"Database path not found: {db_path}")
    return db_path


def _open_connection(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(f"file:{path}?mode=ro", uri=True, timeout=BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@contextmanager
def connect(config: AppConfig) -> Iterator[sqlite3.Connection]:
    """Yield a read-only SQLite connection for the configured database.

    The database file must already exist; writes go through the mutation
    backend instead.
    """
    connection = _open_connection(_resolve_database_path(config))
    try:
        yield connection
    finally:
        connection.close()
