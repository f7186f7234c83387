"""Output rendering helpers for grid-edit."""

from __future__ import annotations

import json
import sys
from typing import IO, Any

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from grid_cli.grid_core.resolver import (
    STATE_DELETED,
    STATE_INSERTION,
    STATE_INSERTION_MODIFIED,
    STATE_MODIFIED,
    STATE_PLACEHOLDER,
    STATE_SELECTED_INSERTION,
    STATE_SELECTED_INSERTION_MODIFIED,
)
from grid_cli.grid_core.session import GridSession
from grid_cli.grid_core.types import CommitPlan, InsertionRow
from grid_cli.grid_core.values import format_cell_value
from grid_cli.shared.logging import Logger

STATE_STYLES = {
    STATE_DELETED: "strike red",
    STATE_PLACEHOLDER: "dim italic",
    STATE_SELECTED_INSERTION_MODIFIED: "bold green reverse",
    STATE_SELECTED_INSERTION: "green reverse",
    STATE_INSERTION_MODIFIED: "bold green",
    STATE_INSERTION: "green",
    STATE_MODIFIED: "bold yellow",
}


def render_grid(
    session: GridSession,
    *,
    output_format: str,
    logger: Logger,
    stream: IO[str] | None = None,
) -> None:
    """Render the merged rows of ``session`` with their pending state."""
    output_stream = stream or sys.stdout
    fmt = (output_format or "table").lower()

    if fmt == "table":
        _render_table(session, logger=logger, stream=output_stream)
    elif fmt == "json":
        _render_json(session, stream=output_stream)
    else:  # pragma: no cover - Click validation should prevent this
        raise ValueError(f"Unsupported output format '{output_format}'.")

    pagination = session.pagination
    if pagination is not None and pagination.page_size > 0:
        logger.info(
            f"Page {pagination.page} of {pagination.page_count} ({pagination.total_rows} rows in {session.table})."
        )
        if pagination.truncated:
            logger.warning("More rows are available. Re-open with --page to see them.")
    if session.is_read_only:
        logger.warning(f"Table '{session.table}' has no single-column primary key; it is read-only.")


def render_status(session: GridSession, *, stream: IO[str] | None = None) -> None:
    """Summarise the pending overlay."""
    output_stream = stream or sys.stdout
    store = session.store
    console = Console(file=output_stream, highlight=False, force_terminal=False)
    console.print(f"[bold]{session.table}[/bold]: {session.pending_count} pending row change(s)")
    console.print(f"  updated rows:  {len([key for key in store.changes if key not in store.deletions])}")
    console.print(f"  deleted rows:  {len(store.deletions)}")
    console.print(f"  new rows:      {len(store.insertions)}")
    if session.selection:
        selected = ", ".join(str(index) for index in sorted(session.selection.indices))
        console.print(f"  selected rows: {selected}")


def render_plan(plan: CommitPlan, *, null_label: str, stream: IO[str] | None = None) -> None:
    """List the calls a commit would issue."""
    output_stream = stream or sys.stdout
    console = Console(file=output_stream, highlight=False, force_terminal=False)
    table = Table(box=box.SIMPLE, show_header=True, header_style="bold")
    table.add_column("Action")
    table.add_column("Row")
    table.add_column("Column")
    table.add_column("Value")
    for deletion in plan.deletions:
        table.add_row("delete", deletion.key, "", "")
    for update in plan.updates:
        table.add_row("update", update.key, update.column, format_cell_value(update.value, null_label))
    for insertion in plan.insertions:
        values = ", ".join(
            f"{column}={format_cell_value(value, null_label)}" for column, value in insertion.data.items()
        )
        table.add_row("insert", insertion.temp_id, "", values or "(defaults)")
    console.print(table)


def _row_label(session: GridSession, display_index: int) -> str:
    row = session.row_at(display_index)
    marker = "*" if display_index in session.selection else " "
    if isinstance(row, InsertionRow):
        return f"{marker}{display_index} {row.temp_id}"
    return f"{marker}{display_index}"


def _render_table(session: GridSession, *, logger: Logger, stream: IO[str]) -> None:
    console = Console(file=stream, highlight=False, force_terminal=False)
    table = Table(box=box.SIMPLE_HEAVY, show_header=bool(session.columns), header_style="bold")
    table.add_column("#", style="dim")
    for column in session.columns:
        label = f"{column} (pk)" if column == session.pk_column else column
        table.add_column(label)

    rows = session.merged_rows
    for row in rows:
        cells: list[Any] = [_row_label(session, row.display_index)]
        for col_index in range(session.column_count):
            view = session.resolve_cell(row.display_index, col_index)
            state = session.cell_state_at(row.display_index, col_index)
            cells.append(Text(view.display_value, style=STATE_STYLES.get(state, "")))
        table.add_row(*cells)

    if not rows:
        logger.info("Query returned zero rows.")
    console.print(table)


def _render_json(session: GridSession, *, stream: IO[str]) -> None:
    records: list[dict[str, object]] = []
    for row in session.merged_rows:
        index = row.display_index
        values: dict[str, str] = {}
        states: dict[str, str] = {}
        for col_index, column in enumerate(session.columns):
            values[column] = session.resolve_cell(index, col_index).display_value
            states[column] = session.cell_state_at(index, col_index)
        record: dict[str, object] = {
            "index": index,
            "kind": "insertion" if row.is_insertion else "existing",
            "selected": index in session.selection,
            "pending_delete": session.is_row_pending_delete(index),
            "values": values,
            "states": states,
        }
        if isinstance(row, InsertionRow):
            record["temp_id"] = row.temp_id
        records.append(record)
    json.dump(records, stream, indent=2, ensure_ascii=False)
    stream.write("\n")
