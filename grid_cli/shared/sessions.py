"""Persistence of an editing session between CLI invocations.

A session holds the opened table, the last snapshot, the pending overlay and
the selection. It is stored as JSON in ~/.gridedit/session.json (or the
configured path) and always written atomically so that pending edits are
never left half-written.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from grid_cli.grid_core.selection import EMPTY_SELECTION, SelectionState
from grid_cli.grid_core.store import PendingChangeStore, reserve_temp_ids
from grid_cli.grid_core.types import (
    EMPTY_SNAPSHOT,
    ColumnMeta,
    Pagination,
    PendingChange,
    PendingInsertion,
    ResultSnapshot,
)
from grid_cli.grid_core.values import decode_value, encode_value, pk_key

from .exceptions import SessionError, ValueTypeError

logger = logging.getLogger(__name__)

# Current schema version - increment when breaking changes occur
SESSION_VERSION = 1


@dataclass(slots=True)
class SavedSession:
    """Everything needed to rebuild a grid session."""

    table: str
    where: str | None = None
    order_by: str | None = None
    page: int = 1
    page_size: int = 0
    column_meta: tuple[ColumnMeta, ...] = ()
    snapshot: ResultSnapshot = EMPTY_SNAPSHOT
    pagination: Pagination | None = None
    store: PendingChangeStore = field(default_factory=PendingChangeStore)
    selection: SelectionState = EMPTY_SELECTION
    version: int = SESSION_VERSION
    updated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        pagination = None
        if self.pagination is not None:
            pagination = {
                "page": self.pagination.page,
                "page_size": self.pagination.page_size,
                "total_rows": self.pagination.total_rows,
                "truncated": self.pagination.truncated,
            }
        return {
            "version": self.version,
            "updated_at": self.updated_at,
            "table": self.table,
            "query": {
                "where": self.where,
                "order_by": self.order_by,
                "page": self.page,
                "page_size": self.page_size,
            },
            "columns": [
                {
                    "name": column.name,
                    "data_type": column.data_type,
                    "is_primary_key": column.is_primary_key,
                    "is_nullable": column.is_nullable,
                    "is_auto_increment": column.is_auto_increment,
                    "has_default": column.has_default,
                    "default_value": column.default_value,
                }
                for column in self.column_meta
            ],
            "snapshot": {
                "columns": list(self.snapshot.columns),
                "rows": [[encode_value(value) for value in row] for row in self.snapshot.rows],
            },
            "pagination": pagination,
            "pending": {
                "changes": [
                    {
                        "pk": encode_value(entry.original_pk_value),
                        "changes": {column: encode_value(value) for column, value in entry.changes.items()},
                    }
                    for entry in self.store.changes.values()
                ],
                "deletions": [encode_value(pk_value) for pk_value in self.store.deletions.values()],
                "insertions": [
                    {
                        "temp_id": insertion.temp_id,
                        "data": {column: encode_value(value) for column, value in insertion.data.items()},
                    }
                    for insertion in self.store.insertions.values()
                ],
            },
            "selection": {
                "indices": sorted(self.selection.indices),
                "anchor": self.selection.anchor,
            },
        }


def load_session(path: str | Path) -> SavedSession | None:
    """Load the persisted session, or ``None`` when no session file exists.

    An unreadable or malformed file raises ``SessionError`` rather than being
    replaced, since it may hold unsaved edits.
    """
    resolved_path = Path(path)
    if not resolved_path.exists():
        return None

    try:
        with resolved_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as exc:
        raise SessionError(f"Failed to read session from {resolved_path}: {exc}") from exc

    try:
        session = _parse_session(data)
    except (KeyError, TypeError, ValueError, ValueTypeError) as exc:
        raise SessionError(f"Session file {resolved_path} is malformed: {exc}") from exc

    reserve_temp_ids(session.store.insertions)
    logger.debug("Loaded session for table %s from %s", session.table, resolved_path)
    return session


def save_session(session: SavedSession, path: str | Path) -> Path:
    """Save the session with an atomic write and return the path written."""
    resolved_path = Path(path)

    parent = resolved_path.parent
    if not parent.exists():
        parent.mkdir(parents=True, exist_ok=True, mode=0o700)
        logger.info("Created session directory: %s", parent)

    session.updated_at = datetime.now(timezone.utc).isoformat()
    json_content = json.dumps(session.to_dict(), indent=2, ensure_ascii=False)

    try:
        fd, temp_path = tempfile.mkstemp(suffix=".tmp", prefix=".session_", dir=parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(json_content)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, resolved_path)
            logger.debug("Saved session to %s", resolved_path)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise
    except OSError as exc:
        raise SessionError(f"Failed to save session to {resolved_path}: {exc}") from exc

    return resolved_path


def _parse_session(data: Mapping[str, Any]) -> SavedSession:
    version = data.get("version", SESSION_VERSION)
    if version != SESSION_VERSION:
        raise ValueError(f"unsupported session version {version!r}")

    query = data.get("query") or {}
    column_meta = tuple(ColumnMeta(**entry) for entry in data.get("columns") or [])

    snapshot_data = data.get("snapshot") or {}
    snapshot = ResultSnapshot.from_rows(
        snapshot_data.get("columns") or [],
        ([decode_value(value) for value in row] for row in snapshot_data.get("rows") or []),
    )

    pagination_data = data.get("pagination")
    pagination = Pagination(**pagination_data) if pagination_data else None

    selection_data = data.get("selection") or {}
    selection = SelectionState(
        indices=frozenset(int(index) for index in selection_data.get("indices") or []),
        anchor=selection_data.get("anchor"),
    )

    return SavedSession(
        table=str(data["table"]),
        where=query.get("where"),
        order_by=query.get("order_by"),
        page=int(query.get("page", 1)),
        page_size=int(query.get("page_size", 0)),
        column_meta=column_meta,
        snapshot=snapshot,
        pagination=pagination,
        store=_parse_store(data.get("pending") or {}),
        selection=selection,
        version=version,
        updated_at=data.get("updated_at", datetime.now(timezone.utc).isoformat()),
    )


def _parse_store(pending: Mapping[str, Any]) -> PendingChangeStore:
    changes: dict[str, PendingChange] = {}
    for entry in pending.get("changes") or []:
        pk_value = decode_value(entry["pk"])
        values = {column: decode_value(value) for column, value in entry["changes"].items()}
        if values:
            changes[pk_key(pk_value)] = PendingChange(original_pk_value=pk_value, changes=values)

    deletions: dict[str, Any] = {}
    for encoded in pending.get("deletions") or []:
        pk_value = decode_value(encoded)
        deletions[pk_key(pk_value)] = pk_value

    insertions: dict[str, PendingInsertion] = {}
    for entry in pending.get("insertions") or []:
        temp_id = str(entry["temp_id"])
        data = {column: decode_value(value) for column, value in entry["data"].items()}
        insertions[temp_id] = PendingInsertion(temp_id=temp_id, data=data)

    return PendingChangeStore(changes=changes, deletions=deletions, insertions=insertions)
