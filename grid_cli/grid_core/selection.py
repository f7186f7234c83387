"""Positional row selection with click, ctrl-click and shift-click semantics."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SelectionState:
    """Selected display indices plus the anchor used by shift-click ranges.

    Membership only: consumers derive any ordering from the merged rows.
    """

    indices: frozenset[int] = frozenset()
    anchor: int | None = None

    def __contains__(self, index: object) -> bool:
        return index in self.indices

    def __len__(self) -> int:
        return len(self.indices)

    def __bool__(self) -> bool:
        return bool(self.indices)


EMPTY_SELECTION = SelectionState()


def selection_range(start: int, end: int) -> list[int]:
    """Inclusive list of indices between two positions, in either order."""
    low, high = min(start, end), max(start, end)
    return list(range(low, high + 1))


def click(
    state: SelectionState,
    index: int,
    *,
    shift: bool = False,
    ctrl: bool = False,
) -> SelectionState:
    """Apply one click on row ``index``.

    * plain: select only ``index`` and anchor there;
    * ctrl/cmd: toggle ``index``; adding it moves the anchor;
    * shift (with an anchor): select the anchor..index range, replacing the
      selection unless ctrl/cmd is also held. The anchor stays put.
    """
    if shift and state.anchor is not None:
        span = selection_range(state.anchor, index)
        base = state.indices if ctrl else frozenset()
        return SelectionState(indices=base | frozenset(span), anchor=state.anchor)

    if ctrl:
        if index in state.indices:
            return SelectionState(indices=state.indices - {index}, anchor=state.anchor)
        return SelectionState(indices=state.indices | {index}, anchor=index)

    return SelectionState(indices=frozenset({index}), anchor=index)


def toggle_all(state: SelectionState, row_count: int) -> SelectionState:
    """Select every row, or clear when every row is already selected."""
    everything = frozenset(range(row_count))
    if row_count and everything <= state.indices:
        return SelectionState(anchor=state.anchor)
    return SelectionState(indices=everything, anchor=state.anchor)


def clear_selection() -> SelectionState:
    return EMPTY_SELECTION


def prune(state: SelectionState, row_count: int) -> SelectionState:
    """Silently drop indices that no longer address a row."""
    kept = frozenset(index for index in state.indices if 0 <= index < row_count)
    anchor = state.anchor if state.anchor is not None and 0 <= state.anchor < row_count else None
    if kept == state.indices and anchor == state.anchor:
        return state
    return SelectionState(indices=kept, anchor=anchor)
