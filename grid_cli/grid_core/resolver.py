"""Resolve what a grid cell shows and which visual state applies.

Resolution depends only on its arguments: it runs once per visible cell per
render, so it must not read or keep any other state.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from .types import CellView, ColumnDisplayInfo, PendingChange
from .values import (
    DEFAULT_LABEL,
    DEFAULT_NULL_LABEL,
    GENERATED_LABEL,
    USE_DEFAULT_SENTINEL,
    format_cell_value,
)

# Visual states returned by cell_state().
STATE_DELETED = "deleted"
STATE_PLACEHOLDER = "insertion-placeholder"
STATE_SELECTED_INSERTION_MODIFIED = "selected-insertion-modified"
STATE_SELECTED_INSERTION = "selected-insertion"
STATE_INSERTION_MODIFIED = "insertion-modified"
STATE_INSERTION = "insertion"
STATE_MODIFIED = "modified"
STATE_PLAIN = "plain"


def resolve_existing(
    raw_value: Any,
    pk_value_key: str | None,
    pk_column: str | None,
    pending_changes: Mapping[str, PendingChange] | None,
    col_info: ColumnDisplayInfo,
    *,
    null_label: str = DEFAULT_NULL_LABEL,
) -> CellView:
    """Resolve a cell of a snapshot row, preferring its pending change."""

    if pk_column and pk_value_key is not None and pending_changes:
        entry = pending_changes.get(pk_value_key)
        if entry is not None and col_info.col_name in entry.changes:
            pending = entry.changes[col_info.col_name]
            if pending is USE_DEFAULT_SENTINEL:
                return CellView(
                    display_value=DEFAULT_LABEL,
                    has_pending_change=True,
                    is_modified=True,
                    is_default_value_placeholder=True,
                )
            return CellView(
                display_value=format_cell_value(pending, null_label),
                has_pending_change=True,
                is_modified=True,
                is_null=pending is None,
            )

    return CellView(
        display_value=format_cell_value(raw_value, null_label),
        is_null=raw_value is None,
    )


def resolve_insertion(
    raw_value: Any,
    col_info: ColumnDisplayInfo,
    *,
    null_label: str = DEFAULT_NULL_LABEL,
) -> CellView:
    """Resolve a cell of a pending insertion.

    A null auto-increment column shows ``<generated>``; a null non-nullable
    column with a schema default shows ``<default>``. Anything else, the
    empty string included, is shown literally.
    """

    col_name = col_info.col_name
    is_modified = raw_value is not None and raw_value != ""

    if raw_value is None and col_name in col_info.auto_increment_columns:
        return CellView(
            display_value=GENERATED_LABEL,
            has_pending_change=True,
            is_auto_increment_placeholder=True,
        )
    if (raw_value is None and col_name in col_info.default_value_columns
            and col_name not in col_info.nullable_columns) or raw_value is USE_DEFAULT_SENTINEL:
        return CellView(
            display_value=DEFAULT_LABEL,
            has_pending_change=True,
            is_default_value_placeholder=True,
        )
    return CellView(
        display_value=format_cell_value(raw_value, null_label),
        has_pending_change=True,
        is_modified=is_modified,
        is_null=raw_value is None,
    )


def cell_state(
    view: CellView,
    *,
    is_pending_delete: bool = False,
    is_selected: bool = False,
    is_insertion: bool = False,
) -> str:
    """Name the visual state of a cell; deletion wins over everything else."""

    if is_pending_delete:
        return STATE_DELETED
    if is_insertion:
        if view.is_placeholder:
            return STATE_PLACEHOLDER
        if is_selected:
            return STATE_SELECTED_INSERTION_MODIFIED if view.is_modified else STATE_SELECTED_INSERTION
        return STATE_INSERTION_MODIFIED if view.is_modified else STATE_INSERTION
    if view.is_modified:
        return STATE_MODIFIED
    return STATE_PLAIN
