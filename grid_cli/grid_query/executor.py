"""Snapshot retrieval and schema inspection for grid-edit."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from contextlib import contextmanager
from typing import Any, Iterator

from grid_cli.grid_core.types import ColumnMeta, Pagination, ResultSnapshot
from grid_cli.shared.config import AppConfig
from grid_cli.shared.database import connect, quote_identifier
from grid_cli.shared.exceptions import DatabaseError, QueryError

from .types import TableQuery


def build_table_query(
    table: str,
    where: str | None = None,
    order_by: str | None = None,
) -> TableQuery:
    """Describe ``SELECT * FROM table`` with optional filter and sort clauses."""

    for label, clause in (("where", where), ("order by", order_by)):
        if clause and ";" in clause:
            raise QueryError(f"The {label} clause must not contain ';'.")
    return TableQuery(table=table, where=where or None, order_by=order_by or None)


def fetch_snapshot(
    *,
    config: AppConfig,
    query: TableQuery,
    page: int = 1,
    page_size: int = 0,
) -> tuple[ResultSnapshot, Pagination]:
    """Execute ``query`` for one page and return the snapshot with its pagination.

    Pages are 1-based; ``page_size <= 0`` returns every row on a single page.
    """

    if page < 1:
        raise QueryError("Page numbers start at 1.")

    sql = query.sql()
    with _read_only_connection(config) as connection:
        total_rows = int(connection.execute(f"SELECT COUNT(*) FROM ({query.sql(ordered=False)})").fetchone()[0])
        if page_size > 0:
            offset = (page - 1) * page_size
            cursor = connection.execute(f"{sql} LIMIT ? OFFSET ?", (page_size, offset))
        else:
            cursor = connection.execute(sql)
        rows = cursor.fetchall()
        description = cursor.description or ()

    columns = tuple(col[0] for col in description)
    try:
        snapshot = ResultSnapshot.from_rows(columns, rows)
    except ValueError as exc:
        raise QueryError(str(exc)) from exc

    if page_size > 0:
        truncated = page * page_size < total_rows
        pagination = Pagination(page=page, page_size=page_size, total_rows=total_rows, truncated=truncated)
    else:
        pagination = Pagination(page=1, page_size=0, total_rows=total_rows)
    return snapshot, pagination


def list_tables(*, config: AppConfig) -> list[str]:
    with _read_only_connection(config) as connection:
        return _fetch_table_names(connection)


def get_column_metadata(*, config: AppConfig, table: str) -> tuple[ColumnMeta, ...]:
    """Describe the columns of ``table``.

    SQLite reports no auto-increment flag; a sole ``INTEGER PRIMARY KEY``
    column aliases the rowid and is treated as auto-increment.
    """

    with _read_only_connection(config) as connection:
        if table not in _fetch_table_names(connection):
            raise QueryError(f"Table '{table}' does not exist in the database.")
        rows = _fetch_table_info(connection, table)

    pk_count = sum(1 for row in rows if row["pk"] > 0)
    columns: list[ColumnMeta] = []
    for row in rows:
        is_pk = row["pk"] > 0
        data_type = str(row["type"] or "")
        default_value = row["dflt_value"]
        columns.append(
            ColumnMeta(
                name=row["name"],
                data_type=data_type,
                is_primary_key=is_pk,
                is_nullable=not row["notnull"],
                is_auto_increment=is_pk and pk_count == 1 and data_type.upper() == "INTEGER",
                has_default=default_value is not None,
                default_value=default_value,
            )
        )
    return tuple(columns)


# ---------------------------------------------------------------------------
# Internal helpers


@contextmanager
def _read_only_connection(config: AppConfig) -> Iterator[sqlite3.Connection]:
    """Yield a connection that prevents writes to the user database.

    sqlite3 failures raised while the connection is in use surface as
    ``QueryError``.
    """
    try:
        with connect(config) as connection:
            yield connection
    except sqlite3.OperationalError as exc:
        raise QueryError(f"SQLite error: {exc}") from exc
    except sqlite3.DatabaseError as exc:
        raise QueryError(f"Database error during execution: {exc}") from exc
    except DatabaseError as exc:
        if isinstance(exc, QueryError):
            raise
        raise QueryError(str(exc)) from exc


def _fetch_table_names(connection: sqlite3.Connection) -> list[str]:
    sql = "SELECT name FROM sqlite_schema WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    return [row[0] for row in connection.execute(sql).fetchall()]


def _fetch_table_info(connection: sqlite3.Connection, table: str) -> Sequence[Any]:
    return connection.execute(f"PRAGMA table_info({quote_identifier(table)})").fetchall()
