"""Turn the pending overlay into remote calls and reconcile it afterwards.

Commit policy:

* scope is the whole store when ``apply_to_all`` is set or nothing is
  selected, otherwise the rows at the selected display indices;
* a row that is both edited and marked for deletion is only deleted;
* every changed cell is its own update call and all calls of a batch run
  concurrently;
* the store is only touched after the whole batch settled. On success the
  executed entries are removed; if any call failed nothing is removed and
  calls that already succeeded remotely are not compensated.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from grid_cli.shared.exceptions import CommitError, CommitInProgressError, InsertionValidationError

from .insertions import insertion_to_backend_data, validate_insertion
from .selection import SelectionState
from .store import PendingChangeStore
from .types import (
    ColumnMeta,
    CommitPlan,
    InsertionRow,
    MergedRow,
    PlannedDeletion,
    PlannedInsertion,
    PlannedUpdate,
)
from .values import pk_key

logger = logging.getLogger(__name__)


class MutationBackend(Protocol):
    """Per-row mutation commands offered by the data store."""

    async def update_cell(self, table: str, pk_column: str, pk_value: Any, column: str, value: Any) -> None:
        ...

    async def delete_row(self, table: str, pk_column: str, pk_value: Any) -> None:
        ...

    async def insert_row(self, table: str, data: dict[str, Any]) -> None:
        ...


@dataclass(frozen=True, slots=True)
class CommitScope:
    """Store keys and insertion ids eligible for a commit or rollback."""

    keys: frozenset[str] | None  # None means every key
    temp_ids: frozenset[str] | None

    def includes_key(self, key: str) -> bool:
        return self.keys is None or key in self.keys

    def includes_insertion(self, temp_id: str) -> bool:
        return self.temp_ids is None or temp_id in self.temp_ids


@dataclass(frozen=True, slots=True)
class CommitOutcome:
    """Settled result of executing a plan."""

    call_count: int
    errors: tuple[str, ...] = ()
    refresh_error: str | None = None

    @property
    def succeeded(self) -> bool:
        return not self.errors


def resolve_scope(
    selection: SelectionState,
    apply_to_all: bool,
    merged_rows: Sequence[MergedRow],
    pk_column: str | None,
    columns: Sequence[str],
) -> CommitScope:
    """Translate the selection into store keys via the merged rows."""
    if apply_to_all or not selection:
        return CommitScope(keys=None, temp_ids=None)

    pk_index = columns.index(pk_column) if pk_column in columns else None
    keys: set[str] = set()
    temp_ids: set[str] = set()
    for row in merged_rows:
        if row.display_index not in selection:
            continue
        if isinstance(row, InsertionRow):
            temp_ids.add(row.temp_id)
        elif pk_index is not None:
            keys.add(pk_key(row.row_data[pk_index]))
    return CommitScope(keys=frozenset(keys), temp_ids=frozenset(temp_ids))


def plan_commit(
    store: PendingChangeStore,
    selection: SelectionState,
    apply_to_all: bool,
    merged_rows: Sequence[MergedRow],
    pk_column: str | None,
    columns: Sequence[str],
    column_meta: Iterable[ColumnMeta] = (),
) -> CommitPlan:
    """Build the remote calls for the scoped part of ``store``.

    Raises ``InsertionValidationError`` when an in-scope insertion misses a
    required value, before any call is made.
    """
    scope = resolve_scope(selection, apply_to_all, merged_rows, pk_column, columns)
    column_meta = tuple(column_meta)

    deletions: list[PlannedDeletion] = []
    updates: list[PlannedUpdate] = []
    if pk_column:
        for key, pk_value in store.deletions.items():
            if scope.includes_key(key):
                deletions.append(PlannedDeletion(key=key, pk_value=pk_value))
        for key, entry in store.changes.items():
            if not scope.includes_key(key) or key in store.deletions:
                continue
            for column, value in entry.changes.items():
                updates.append(
                    PlannedUpdate(key=key, pk_value=entry.original_pk_value, column=column, value=value)
                )

    insertions: list[PlannedInsertion] = []
    failures: dict[str, dict[str, str]] = {}
    for temp_id, insertion in store.insertions.items():
        if not scope.includes_insertion(temp_id):
            continue
        errors = validate_insertion(insertion.data, column_meta)
        if errors:
            failures[temp_id] = errors
            continue
        insertions.append(
            PlannedInsertion(temp_id=temp_id, data=insertion_to_backend_data(insertion.data, column_meta))
        )
    if failures:
        raise InsertionValidationError(failures)

    return CommitPlan(updates=tuple(updates), deletions=tuple(deletions), insertions=tuple(insertions))


def _plan_calls(plan: CommitPlan, backend: MutationBackend, table: str, pk_column: str | None) -> list[Awaitable[None]]:
    calls: list[Awaitable[None]] = []
    if pk_column:
        calls.extend(backend.delete_row(table, pk_column, item.pk_value) for item in plan.deletions)
        calls.extend(
            backend.update_cell(table, pk_column, item.pk_value, item.column, item.value)
            for item in plan.updates
        )
    calls.extend(backend.insert_row(table, dict(item.data)) for item in plan.insertions)
    return calls


async def execute_plan(
    plan: CommitPlan,
    backend: MutationBackend,
    *,
    table: str,
    pk_column: str | None,
) -> CommitOutcome:
    """Issue every call of ``plan`` concurrently and wait for all of them."""
    if plan.is_empty:
        return CommitOutcome(call_count=0)

    calls = _plan_calls(plan, backend, table, pk_column)
    logger.debug("Issuing %d call(s) against %s", len(calls), table)
    results = await asyncio.gather(*calls, return_exceptions=True)
    errors = tuple(str(result) for result in results if isinstance(result, Exception))
    for message in errors:
        logger.warning("Commit call failed: %s", message)
    return CommitOutcome(call_count=len(calls), errors=errors)


def rollback(
    store: PendingChangeStore,
    selection: SelectionState,
    apply_to_all: bool,
    merged_rows: Sequence[MergedRow],
    pk_column: str | None,
    columns: Sequence[str],
) -> PendingChangeStore:
    """Discard scoped pending entries without contacting the backend."""
    scope = resolve_scope(selection, apply_to_all, merged_rows, pk_column, columns)
    if scope.keys is None:
        return store.cleared()
    return store.without_scope(scope.keys, scope.temp_ids or ())


class CommitPhase(enum.Enum):
    IDLE = "idle"
    COMMITTING = "committing"


class CommitCoordinator:
    """Run commits one at a time against a mutation backend."""

    def __init__(self, backend: MutationBackend, *, table: str, pk_column: str | None) -> None:
        self.backend = backend
        self.table = table
        self.pk_column = pk_column
        self.phase = CommitPhase.IDLE

    @property
    def is_committing(self) -> bool:
        return self.phase is CommitPhase.COMMITTING

    async def submit(self, plan: CommitPlan) -> CommitOutcome:
        """Execute ``plan``; raise ``CommitError`` if any call failed.

        A second submit while one is in flight raises ``CommitInProgressError``.
        """
        if self.phase is CommitPhase.COMMITTING:
            raise CommitInProgressError()
        self.phase = CommitPhase.COMMITTING
        try:
            outcome = await execute_plan(plan, self.backend, table=self.table, pk_column=self.pk_column)
        finally:
            self.phase = CommitPhase.IDLE
        if not outcome.succeeded:
            raise CommitError(outcome.errors, call_count=outcome.call_count)
        return outcome
