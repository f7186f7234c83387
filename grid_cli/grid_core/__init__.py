"""Public exports for the grid-core package."""

from .clipboard import row_to_tsv, rows_to_tsv
from .commit import CommitCoordinator, CommitOutcome, MutationBackend, execute_plan, plan_commit, rollback
from .merger import RowMerger, merge_rows
from .navigation import EditCursor, Editing, Idle, next_cell
from .resolver import cell_state, resolve_existing, resolve_insertion
from .selection import SelectionState, clear_selection, prune, toggle_all
from .session import GridSession
from .store import PendingChangeStore
from .types import CellView, ColumnMeta, CommitPlan, ExistingRow, InsertionRow, Pagination, ResultSnapshot
from .values import UNDO_SENTINEL, USE_DEFAULT_SENTINEL

__all__ = [
    "UNDO_SENTINEL",
    "USE_DEFAULT_SENTINEL",
    "CellView",
    "ColumnMeta",
    "CommitCoordinator",
    "CommitOutcome",
    "CommitPlan",
    "EditCursor",
    "Editing",
    "ExistingRow",
    "GridSession",
    "Idle",
    "InsertionRow",
    "MutationBackend",
    "Pagination",
    "PendingChangeStore",
    "ResultSnapshot",
    "RowMerger",
    "SelectionState",
    "cell_state",
    "clear_selection",
    "execute_plan",
    "merge_rows",
    "next_cell",
    "plan_commit",
    "prune",
    "resolve_existing",
    "resolve_insertion",
    "rollback",
    "row_to_tsv",
    "rows_to_tsv",
    "toggle_all",
]
