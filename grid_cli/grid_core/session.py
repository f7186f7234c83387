"""Session handle combining snapshot, pending overlay, selection and commit."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any, Callable

from grid_cli.shared.exceptions import GridEditError, OverlayError, ReadOnlyTableError

from . import selection as selection_ops
from .commit import CommitCoordinator, CommitOutcome, MutationBackend, plan_commit, rollback
from .insertions import initialize_new_row
from .merger import RowMerger
from .navigation import EditCursor
from .resolver import cell_state, resolve_existing, resolve_insertion
from .selection import EMPTY_SELECTION, SelectionState
from .store import PendingChangeStore
from .types import (
    EMPTY_SNAPSHOT,
    CellView,
    ColumnClassification,
    ColumnMeta,
    CommitPlan,
    InsertionRow,
    MergedRow,
    Pagination,
    ResultSnapshot,
)
from .values import DEFAULT_NULL_LABEL, UNDO_SENTINEL, USE_DEFAULT_SENTINEL, pk_key, value_text

logger = logging.getLogger(__name__)

SnapshotSource = Callable[[], "tuple[ResultSnapshot, Pagination | None]"]


class GridSession:
    """Editable view over one table's query result.

    Reads (``merged_rows``, ``resolve_cell``) are pure functions of the current
    snapshot, store and selection. Every mutating handle replaces the store
    or selection with a new value.
    """

    def __init__(
        self,
        table: str,
        column_meta: Iterable[ColumnMeta] = (),
        snapshot: ResultSnapshot = EMPTY_SNAPSHOT,
        *,
        backend: MutationBackend | None = None,
        source: SnapshotSource | None = None,
        store: PendingChangeStore | None = None,
        selection: SelectionState = EMPTY_SELECTION,
        pagination: Pagination | None = None,
        null_label: str = DEFAULT_NULL_LABEL,
    ) -> None:
        self.table = table
        self.column_meta = tuple(column_meta)
        self.classification = ColumnClassification.from_meta(self.column_meta)
        self.snapshot = snapshot
        self.pagination = pagination
        self.store = store if store is not None else PendingChangeStore()
        self.selection = selection
        self.null_label = null_label
        self.backend = backend
        self.source = source
        self.cursor = EditCursor(self)
        self._merger = RowMerger()
        self._coordinator = (
            CommitCoordinator(backend, table=table, pk_column=self.classification.primary_key)
            if backend is not None
            else None
        )

    # ------------------------------------------------------------------
    # Derived state

    @property
    def columns(self) -> tuple[str, ...]:
        return self.snapshot.columns

    @property
    def pk_column(self) -> str | None:
        """Primary key column, provided the snapshot actually carries it."""
        primary_key = self.classification.primary_key
        if self.snapshot.column_index(primary_key) is None:
            return None
        return primary_key

    @property
    def is_read_only(self) -> bool:
        return self.pk_column is None

    @property
    def merged_rows(self) -> tuple[MergedRow, ...]:
        return self._merger.merge(self.snapshot.rows, self.store.insertions, self.snapshot.columns)

    @property
    def pending_count(self) -> int:
        return self.store.pending_count

    @property
    def has_pending_changes(self) -> bool:
        return self.store.has_pending_changes

    @property
    def is_committing(self) -> bool:
        return self._coordinator is not None and self._coordinator.is_committing

    @property
    def row_count(self) -> int:
        return len(self.merged_rows)

    @property
    def column_count(self) -> int:
        return len(self.columns)

    def row_at(self, display_index: int) -> MergedRow:
        rows = self.merged_rows
        if not 0 <= display_index < len(rows):
            raise OverlayError(f"Row {display_index} is out of range (0-{len(rows) - 1}).")
        return rows[display_index]

    def column_position(self, column: str) -> int:
        index = self.snapshot.column_index(column)
        if index is None:
            raise OverlayError(f"Unknown column: {column!r}")
        return index

    def _require_pk(self) -> tuple[str, int]:
        pk_column = self.pk_column
        if pk_column is None:
            raise ReadOnlyTableError(
                f"Table {self.table!r} has no single-column primary key; rows cannot be edited or deleted."
            )
        return pk_column, self.columns.index(pk_column)

    def _row_pk(self, row: MergedRow) -> Any:
        _, pk_index = self._require_pk()
        return row.row_data[pk_index]

    def is_row_pending_delete(self, display_index: int) -> bool:
        row = self.row_at(display_index)
        if row.is_insertion or self.pk_column is None:
            return False
        return self.store.is_marked_for_deletion(self._row_pk(row))

    def current_value(self, display_index: int, col_index: int) -> Any:
        """Value a cell editor starts from: the pending value, else the snapshot value."""
        row = self.row_at(display_index)
        raw = row.row_data[col_index]
        if row.is_insertion or self.pk_column is None:
            return raw
        found, pending = self.store.pending_value(self._row_pk(row), self.columns[col_index])
        return pending if found else raw

    def resolve_cell(self, display_index: int, col_index: int) -> CellView:
        row = self.row_at(display_index)
        col_info = self.classification.display_info(self.columns[col_index])
        raw = row.row_data[col_index]
        if isinstance(row, InsertionRow):
            return resolve_insertion(raw, col_info, null_label=self.null_label)
        pk_column = self.pk_column
        key = pk_key(self._row_pk(row)) if pk_column else None
        return resolve_existing(
            raw, key, pk_column, self.store.changes, col_info, null_label=self.null_label
        )

    def cell_state_at(self, display_index: int, col_index: int) -> str:
        row = self.row_at(display_index)
        return cell_state(
            self.resolve_cell(display_index, col_index),
            is_pending_delete=self.is_row_pending_delete(display_index),
            is_selected=display_index in self.selection,
            is_insertion=row.is_insertion,
        )

    # ------------------------------------------------------------------
    # Edits

    def on_cell_commit(self, display_index: int, col_index: int, value: Any) -> None:
        """Record an edited cell value.

        A value whose text equals the original (``1`` vs ``"1"``) clears the
        pending change instead of recording one.
        """
        row = self.row_at(display_index)
        column = self.columns[col_index]
        original = row.row_data[col_index]

        if isinstance(row, InsertionRow):
            if value is not USE_DEFAULT_SENTINEL and value_text(value) == value_text(original):
                return
            self.store = self.store.set_insertion_cell(row.temp_id, column, value)
            return

        pk_value = self._row_pk(row)
        if value is not USE_DEFAULT_SENTINEL and value_text(value) == value_text(original):
            value = UNDO_SENTINEL
        self.store = self.store.set_cell_change(pk_value, column, value)

    def on_row_delete(self, display_indices: Iterable[int]) -> None:
        """Mark snapshot rows for deletion; pending insertions are discarded outright."""
        rows = [self.row_at(index) for index in display_indices]
        if any(not row.is_insertion for row in rows):
            self._require_pk()
        store = self.store
        for row in rows:
            if isinstance(row, InsertionRow):
                store = store.discard_insertion(row.temp_id)
            else:
                store = store.mark_for_deletion(self._row_pk(row))
        self.store = store
        self._prune_selection()

    def on_row_undelete(self, display_indices: Iterable[int]) -> None:
        rows = [self.row_at(index) for index in display_indices]
        store = self.store
        for row in rows:
            if not row.is_insertion:
                store = store.revert_deletion(self._row_pk(row))
        self.store = store

    def on_insertion_add(self, data: Mapping[str, Any] | None = None) -> str:
        """Append a pending row seeded from the column metadata; return its temp id."""
        row = {name: value for name, value in initialize_new_row(self.column_meta).items() if name in self.columns}
        row.update(data or {})
        unknown = sorted(set(row) - set(self.columns))
        if unknown:
            raise OverlayError(f"Unknown column(s): {', '.join(unknown)}")
        self.store, temp_id = self.store.add_insertion(row)
        return temp_id

    def on_insertion_discard(self, temp_id: str) -> None:
        self.store = self.store.discard_insertion(temp_id)
        self._prune_selection()

    # ------------------------------------------------------------------
    # Selection

    def on_selection_change(self, display_index: int, *, shift: bool = False, ctrl: bool = False) -> SelectionState:
        self.row_at(display_index)
        self.selection = selection_ops.click(self.selection, display_index, shift=shift, ctrl=ctrl)
        return self.selection

    def select_all(self) -> SelectionState:
        self.selection = selection_ops.toggle_all(self.selection, self.row_count)
        return self.selection

    def clear_selection(self) -> SelectionState:
        self.selection = selection_ops.clear_selection()
        return self.selection

    def selected_rows(self) -> list[tuple[Any, ...]]:
        """Cell values of the selected rows in display order, pending edits applied."""
        return [
            tuple(self.current_value(row.display_index, col_index) for col_index in range(self.column_count))
            for row in self.merged_rows
            if row.display_index in self.selection
        ]

    def _prune_selection(self) -> None:
        self.selection = selection_ops.prune(self.selection, self.row_count)

    # ------------------------------------------------------------------
    # Commit and rollback

    def plan_changes(self, scope_to_all: bool = False) -> CommitPlan:
        return plan_commit(
            self.store,
            self.selection,
            scope_to_all,
            self.merged_rows,
            self.pk_column,
            self.columns,
            self.column_meta,
        )

    async def submit_changes(self, scope_to_all: bool = False) -> CommitOutcome:
        """Send the scoped overlay to the backend.

        On success the executed entries leave the store and the snapshot is
        re-fetched keeping whatever is still pending. A failed re-fetch does
        not undo the reconciliation; it is reported through
        ``outcome.refresh_error``. On failure a ``CommitError`` propagates and
        the store is exactly as before.
        """
        plan = self.plan_changes(scope_to_all)
        if plan.is_empty:
            return CommitOutcome(call_count=0)
        if self._coordinator is None:
            raise OverlayError("No mutation backend is configured for this session.")

        outcome = await self._coordinator.submit(plan)
        # Edits recorded while the batch was in flight are kept.
        self.store = self.store.without_plan(plan)
        logger.info("Committed %d change(s) to %s", outcome.call_count, self.table)
        if self.source is None:
            self._prune_selection()
            return outcome
        try:
            self.refresh(preserve_pending=True)
        except GridEditError as exc:
            self._prune_selection()
            return replace(outcome, refresh_error=str(exc))
        return outcome

    def rollback_changes(self, scope_to_all: bool = False) -> None:
        self.store = rollback(
            self.store, self.selection, scope_to_all, self.merged_rows, self.pk_column, self.columns
        )
        self._prune_selection()

    # ------------------------------------------------------------------
    # Snapshot lifecycle

    def load_snapshot(
        self,
        snapshot: ResultSnapshot,
        *,
        preserve_pending: bool = False,
        pagination: Pagination | None = None,
    ) -> None:
        """Replace the base snapshot; the selection always resets."""
        self.snapshot = snapshot
        if pagination is not None:
            self.pagination = pagination
        if not preserve_pending:
            self.store = self.store.cleared()
        self.selection = EMPTY_SELECTION
        self.cursor.cancel()

    def refresh(self, preserve_pending: bool = False) -> None:
        """Re-run the snapshot query. A failed fetch leaves everything untouched."""
        if self.source is None:
            raise OverlayError("No snapshot source is configured for this session.")
        try:
            snapshot, pagination = self.source()
        except GridEditError:
            logger.warning("Snapshot refresh of %s failed; pending changes kept", self.table)
            raise
        self.load_snapshot(snapshot, preserve_pending=preserve_pending, pagination=pagination)
