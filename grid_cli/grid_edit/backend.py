"""Asynchronous SQLite implementation of the per-row mutation commands."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

import aiosqlite

from grid_cli.grid_core.values import USE_DEFAULT_SENTINEL
from grid_cli.shared.database import BUSY_TIMEOUT_SECONDS, quote_identifier
from grid_cli.shared.exceptions import MutationError

logger = logging.getLogger(__name__)


def _bind_value(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return value


class SQLiteMutationBackend:
    """Issue single-row UPDATE/DELETE/INSERT statements with aiosqlite.

    Every call opens its own connection, so the calls of one commit batch may
    run concurrently; SQLite serialises the writes behind its busy timeout.
    """

    def __init__(self, db_path: str | Path, *, timeout: float = BUSY_TIMEOUT_SECONDS) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout

    async def update_cell(self, table: str, pk_column: str, pk_value: Any, column: str, value: Any) -> None:
        async with self._connect() as conn:
            if value is USE_DEFAULT_SENTINEL:
                expression = await self._default_expression(conn, table, column)
                sql = (
                    f"UPDATE {quote_identifier(table)} SET {quote_identifier(column)} = ({expression}) "
                    f"WHERE {quote_identifier(pk_column)} = ?"
                )
                params: Sequence[Any] = (pk_value,)
            else:
                sql = (
                    f"UPDATE {quote_identifier(table)} SET {quote_identifier(column)} = ? "
                    f"WHERE {quote_identifier(pk_column)} = ?"
                )
                params = (_bind_value(value), pk_value)
            await self._execute(conn, sql, params)

    async def delete_row(self, table: str, pk_column: str, pk_value: Any) -> None:
        async with self._connect() as conn:
            sql = f"DELETE FROM {quote_identifier(table)} WHERE {quote_identifier(pk_column)} = ?"
            await self._execute(conn, sql, (pk_value,))

    async def insert_row(self, table: str, data: Mapping[str, Any]) -> None:
        async with self._connect() as conn:
            if not data:
                sql = f"INSERT INTO {quote_identifier(table)} DEFAULT VALUES"
                params: Sequence[Any] = ()
            else:
                columns = ", ".join(quote_identifier(name) for name in data)
                placeholders = ", ".join("?" for _ in data)
                sql = f"INSERT INTO {quote_identifier(table)} ({columns}) VALUES ({placeholders})"
                params = tuple(_bind_value(value) for value in data.values())
            await self._execute(conn, sql, params)

    # ------------------------------------------------------------------

    def _connect(self) -> aiosqlite.Connection:
        if not self.db_path.exists():
            raise MutationError(f"Database path not found: {self.db_path}")
        return aiosqlite.connect(self.db_path, timeout=self.timeout, isolation_level=None)

    async def _execute(self, conn: aiosqlite.Connection, sql: str, params: Sequence[Any]) -> None:
        try:
            await conn.execute("PRAGMA foreign_keys=ON")
            # Concurrent writers wait on the busy timeout for this lock.
            await conn.execute("BEGIN IMMEDIATE")
            cursor = await conn.execute(sql, params)
            await conn.commit()
        except aiosqlite.Error as exc:
            raise MutationError(str(exc)) from exc
        logger.debug("%s -> %d row(s)", sql, cursor.rowcount)

    async def _default_expression(self, conn: aiosqlite.Connection, table: str, column: str) -> str:
        """Declared default of ``column`` as SQL text; ``NULL`` when none is declared."""
        try:
            async with conn.execute(f"PRAGMA table_info({quote_identifier(table)})") as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise MutationError(str(exc)) from exc
        for row in rows:
            if row[1] == column:
                return row[4] if row[4] is not None else "NULL"
        raise MutationError(f"no such column: {column}")
