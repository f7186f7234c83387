"""In-place cell editing lifecycle and keyboard-style movement across the grid."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Protocol, Union

logger = logging.getLogger(__name__)


class EditHost(Protocol):
    """What the cursor needs from the grid it edits."""

    @property
    def row_count(self) -> int:
        ...

    @property
    def column_count(self) -> int:
        ...

    def is_row_pending_delete(self, display_index: int) -> bool:
        ...

    def current_value(self, display_index: int, col_index: int) -> Any:
        ...

    def on_cell_commit(self, display_index: int, col_index: int, value: Any) -> None:
        ...


@dataclass(frozen=True, slots=True)
class Idle:
    pass


@dataclass(frozen=True, slots=True)
class Editing:
    row_index: int
    col_index: int
    draft: Any


CursorState = Union[Idle, Editing]

IDLE = Idle()


def next_cell(row_index: int, col_index: int, row_count: int, col_count: int) -> tuple[int, int]:
    """Position after ``(row_index, col_index)``: next column, then next row, then the top."""
    if col_index + 1 < col_count:
        return row_index, col_index + 1
    if row_index + 1 < row_count:
        return row_index + 1, 0
    return 0, 0


class EditCursor:
    def __init__(self, host: EditHost) -> None:
        self.host = host
        self.state: CursorState = IDLE
        self._committing = False

    @property
    def is_editing(self) -> bool:
        return isinstance(self.state, Editing)

    def begin_edit(self, row_index: int, col_index: int) -> bool:
        """Open a cell for editing, seeded with its current value.

        Rows pending deletion cannot be edited; the call returns ``False``
        and the cursor stays idle.
        """
        if self.host.is_row_pending_delete(row_index):
            self.state = IDLE
            return False
        draft = self.host.current_value(row_index, col_index)
        self.state = Editing(row_index=row_index, col_index=col_index, draft=draft)
        return True

    def update_draft(self, value: Any) -> None:
        if isinstance(self.state, Editing):
            self.state = replace(self.state, draft=value)

    def confirm(self) -> bool:
        """Commit the draft (Enter) and go idle. Ignored while idle or committing."""
        return self._commit_current()

    def blur(self) -> bool:
        """Losing focus commits exactly like :meth:`confirm`."""
        return self._commit_current()

    def cancel(self) -> None:
        """Drop the draft (Escape) without touching the pending store."""
        self.state = IDLE

    def advance(self) -> CursorState:
        """Commit the current cell (Tab) and open the next editable one.

        Cells on rows pending deletion are skipped. The cursor stays idle
        when one full lap finds nothing to edit.
        """
        state = self.state
        if not isinstance(state, Editing) or not self._commit_current():
            return self.state
        row_count, col_count = self.host.row_count, self.host.column_count
        row_index, col_index = state.row_index, state.col_index
        for _ in range(row_count * col_count):
            row_index, col_index = next_cell(row_index, col_index, row_count, col_count)
            if self.begin_edit(row_index, col_index):
                break
        return self.state

    def _commit_current(self) -> bool:
        state = self.state
        if self._committing or not isinstance(state, Editing):
            logger.debug("Ignoring commit trigger while %s", "committing" if self._committing else "idle")
            return False
        self._committing = True
        try:
            self.host.on_cell_commit(state.row_index, state.col_index, state.draft)
            self.state = IDLE
        finally:
            self._committing = False
        return True
