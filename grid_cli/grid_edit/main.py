"""grid-edit CLI: stage edits to a table, review them, then commit.

Edits accumulate in a session file and never touch the database until
``commit --apply`` is run. ``commit`` without ``--apply`` only previews the
calls it would make.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass

import click

from grid_cli.grid_core.clipboard import rows_to_tsv
from grid_cli.grid_core.session import GridSession, SnapshotSource
from grid_cli.grid_core.types import Pagination, ResultSnapshot
from grid_cli.grid_core.values import USE_DEFAULT_SENTINEL
from grid_cli.grid_query.executor import build_table_query, fetch_snapshot, get_column_metadata, list_tables
from grid_cli.shared.cli import (
    CLIContext,
    common_cli_options,
    handle_cli_errors,
    pass_cli_context,
)
from grid_cli.shared.sessions import SavedSession, load_session, save_session

from .backend import SQLiteMutationBackend
from .render import render_grid, render_plan, render_status

OUTPUT_FORMATS = click.Choice(["table", "json"], case_sensitive=False)


@dataclass(slots=True)
class LoadedSession:
    saved: SavedSession
    grid: GridSession


def _effective_dry_run(cli_ctx: CLIContext, apply: bool) -> bool:
    """Return True when we should avoid writes to the database."""

    return cli_ctx.dry_run or (not apply)


def _snapshot_source(cli_ctx: CLIContext, saved: SavedSession) -> SnapshotSource:
    query = build_table_query(saved.table, saved.where, saved.order_by)

    def fetch() -> tuple[ResultSnapshot, Pagination]:
        return fetch_snapshot(config=cli_ctx.config, query=query, page=saved.page, page_size=saved.page_size)

    return fetch


def _build_grid(cli_ctx: CLIContext, saved: SavedSession) -> GridSession:
    return GridSession(
        saved.table,
        saved.column_meta,
        saved.snapshot,
        backend=SQLiteMutationBackend(cli_ctx.db_path),
        source=_snapshot_source(cli_ctx, saved),
        store=saved.store,
        selection=saved.selection,
        pagination=saved.pagination,
        null_label=cli_ctx.config.grid.null_label,
    )


def _load(cli_ctx: CLIContext) -> LoadedSession:
    saved = load_session(cli_ctx.session_path)
    if saved is None:
        raise click.ClickException("No table is open. Run 'grid-edit open TABLE' first.")
    return LoadedSession(saved=saved, grid=_build_grid(cli_ctx, saved))


def _save(cli_ctx: CLIContext, loaded: LoadedSession) -> None:
    if cli_ctx.dry_run:
        cli_ctx.logger.info("[dry-run] Session left unchanged.")
        return
    saved, grid = loaded.saved, loaded.grid
    saved.snapshot = grid.snapshot
    saved.pagination = grid.pagination
    saved.store = grid.store
    saved.selection = grid.selection
    save_session(saved, cli_ctx.session_path)
    cli_ctx.logger.debug(f"Session saved to {cli_ctx.session_path}")


def _parse_assignment(raw: str) -> tuple[str, str]:
    column, sep, value = raw.partition("=")
    if not sep or not column.strip():
        raise click.BadParameter(f"Expected COLUMN=VALUE, got '{raw}'.", param_hint="--set")
    return column.strip(), value


def _pending_summary(grid: GridSession) -> str:
    return f"{grid.pending_count} pending row change(s)."


@click.group(help="Stage, review and commit edits to a SQLite table.")
@common_cli_options
@handle_cli_errors
def main(cli_ctx: CLIContext) -> None:
    mode = "DRY-RUN" if cli_ctx.dry_run else "NORMAL"
    cli_ctx.logger.debug(f"grid-edit initialised (mode={mode}, db={cli_ctx.db_path}, session={cli_ctx.session_path})")


@main.command("tables")
@pass_cli_context
@handle_cli_errors
def tables(cli_ctx: CLIContext) -> None:
    """List the tables of the database."""

    names = list_tables(config=cli_ctx.config)
    if not names:
        cli_ctx.logger.info(f"No tables found in database {cli_ctx.db_path}.")
        return
    for name in names:
        cli_ctx.logger.console.print(name, markup=False)


@main.command("open")
@click.argument("table")
@click.option("--where", type=str, help="SQL WHERE clause limiting the rows shown.")
@click.option("--order-by", type=str, help="SQL ORDER BY clause.")
@click.option("--page", type=int, default=1, show_default=True, help="Page number (1-based).")
@click.option("--page-size", type=int, help="Rows per page; 0 disables paging. Defaults to grid.page_size.")
@click.option("--discard-pending", is_flag=True, help="Drop pending edits of the current session.")
@click.option("--format", "output_format", type=OUTPUT_FORMATS, default="table", show_default=True)
@pass_cli_context
@handle_cli_errors
def open_table(
    cli_ctx: CLIContext,
    table: str,
    where: str | None,
    order_by: str | None,
    page: int,
    page_size: int | None,
    discard_pending: bool,
    output_format: str,
) -> None:
    """Open TABLE and start a new editing session."""

    current = load_session(cli_ctx.session_path)
    if current is not None and current.store.has_pending_changes and not discard_pending:
        raise click.ClickException(
            f"Session for '{current.table}' has {current.store.pending_count} pending row change(s). "
            "Commit or roll them back, or pass --discard-pending."
        )

    saved = SavedSession(
        table=table,
        where=where,
        order_by=order_by,
        page=page,
        page_size=cli_ctx.config.grid.page_size if page_size is None else page_size,
        column_meta=get_column_metadata(config=cli_ctx.config, table=table),
    )
    grid = _build_grid(cli_ctx, saved)
    grid.refresh()
    loaded = LoadedSession(saved=saved, grid=grid)
    _save(cli_ctx, loaded)
    render_grid(grid, output_format=output_format, logger=cli_ctx.logger)


@main.command("show")
@click.option("--format", "output_format", type=OUTPUT_FORMATS, default="table", show_default=True)
@pass_cli_context
@handle_cli_errors
def show(cli_ctx: CLIContext, output_format: str) -> None:
    """Show the merged rows with pending edits applied."""

    loaded = _load(cli_ctx)
    render_grid(loaded.grid, output_format=output_format, logger=cli_ctx.logger)


@main.command("refresh")
@click.option("--keep-pending", is_flag=True, help="Keep pending edits instead of discarding them.")
@pass_cli_context
@handle_cli_errors
def refresh(cli_ctx: CLIContext, keep_pending: bool) -> None:
    """Re-run the table query."""

    loaded = _load(cli_ctx)
    grid = loaded.grid
    if grid.has_pending_changes and not keep_pending:
        cli_ctx.logger.warning(f"Discarding {_pending_summary(grid)}")
    grid.refresh(preserve_pending=keep_pending)
    _save(cli_ctx, loaded)
    cli_ctx.logger.success(f"Loaded {len(grid.snapshot)} row(s) from {grid.table}.")


@main.command("set")
@click.argument("row", type=int)
@click.argument("column")
@click.argument("value", required=False)
@click.option("--null", "set_null", is_flag=True, help="Set the cell to NULL.")
@click.option("--default", "use_default", is_flag=True, help="Reset the cell to its schema default.")
@pass_cli_context
@handle_cli_errors
def set_cell(
    cli_ctx: CLIContext,
    row: int,
    column: str,
    value: str | None,
    set_null: bool,
    use_default: bool,
) -> None:
    """Stage VALUE for COLUMN of the row at display index ROW."""

    if sum([value is not None, set_null, use_default]) != 1:
        raise click.ClickException("Provide exactly one of VALUE, --null, or --default.")

    loaded = _load(cli_ctx)
    grid = loaded.grid
    col_index = grid.column_position(column)
    if not grid.cursor.begin_edit(row, col_index):
        raise click.ClickException(f"Row {row} is marked for deletion; undelete it before editing.")
    if set_null:
        grid.cursor.update_draft(None)
    elif use_default:
        grid.cursor.update_draft(USE_DEFAULT_SENTINEL)
    else:
        grid.cursor.update_draft(value)
    grid.cursor.confirm()

    _save(cli_ctx, loaded)
    cell = grid.resolve_cell(row, col_index)
    if cell.has_pending_change:
        cli_ctx.logger.success(f"Row {row}: {column} = {cell.display_value} (pending).")
    else:
        cli_ctx.logger.info(f"Row {row}: {column} matches the stored value; no change pending.")


@main.command("delete")
@click.argument("rows", type=int, nargs=-1, required=True)
@pass_cli_context
@handle_cli_errors
def delete_rows(cli_ctx: CLIContext, rows: Sequence[int]) -> None:
    """Mark rows for deletion; new rows are discarded immediately."""

    loaded = _load(cli_ctx)
    loaded.grid.on_row_delete(sorted(set(rows)))
    _save(cli_ctx, loaded)
    cli_ctx.logger.success(f"Marked {len(set(rows))} row(s). {_pending_summary(loaded.grid)}")


@main.command("undelete")
@click.argument("rows", type=int, nargs=-1, required=True)
@pass_cli_context
@handle_cli_errors
def undelete_rows(cli_ctx: CLIContext, rows: Sequence[int]) -> None:
    """Revert pending deletions."""

    loaded = _load(cli_ctx)
    loaded.grid.on_row_undelete(rows)
    _save(cli_ctx, loaded)
    cli_ctx.logger.success(_pending_summary(loaded.grid))


@main.command("insert")
@click.option("-s", "--set", "assignments", multiple=True, help="COLUMN=VALUE for the new row (repeatable).")
@pass_cli_context
@handle_cli_errors
def insert_row(cli_ctx: CLIContext, assignments: Sequence[str]) -> None:
    """Stage a new row."""

    data = dict(_parse_assignment(raw) for raw in assignments)
    loaded = _load(cli_ctx)
    temp_id = loaded.grid.on_insertion_add(data)
    _save(cli_ctx, loaded)
    cli_ctx.logger.console.print(temp_id, markup=False)
    cli_ctx.logger.success(f"Staged new row {temp_id}. {_pending_summary(loaded.grid)}")


@main.command("discard")
@click.argument("temp_id")
@pass_cli_context
@handle_cli_errors
def discard_insertion(cli_ctx: CLIContext, temp_id: str) -> None:
    """Drop a staged new row."""

    loaded = _load(cli_ctx)
    loaded.grid.on_insertion_discard(temp_id)
    _save(cli_ctx, loaded)
    cli_ctx.logger.success(f"Discarded {temp_id}. {_pending_summary(loaded.grid)}")


@main.command("select")
@click.argument("row", type=int, required=False)
@click.option("--shift", is_flag=True, help="Extend from the anchor row to ROW.")
@click.option("--ctrl", is_flag=True, help="Toggle ROW without clearing the selection.")
@click.option("--all", "select_all", is_flag=True, help="Select every row, or clear if all are selected.")
@click.option("--clear", is_flag=True, help="Clear the selection.")
@pass_cli_context
@handle_cli_errors
def select_rows(
    cli_ctx: CLIContext,
    row: int | None,
    shift: bool,
    ctrl: bool,
    select_all: bool,
    clear: bool,
) -> None:
    """Change which rows commit and rollback apply to."""

    if sum([row is not None, select_all, clear]) != 1:
        raise click.ClickException("Provide exactly one of ROW, --all, or --clear.")

    loaded = _load(cli_ctx)
    grid = loaded.grid
    if select_all:
        selection = grid.select_all()
    elif clear:
        selection = grid.clear_selection()
    else:
        selection = grid.on_selection_change(row, shift=shift, ctrl=ctrl)
    _save(cli_ctx, loaded)
    indices = ", ".join(str(index) for index in sorted(selection.indices)) or "(none)"
    cli_ctx.logger.console.print(f"Selected: {indices}", markup=False)


@main.command("copy")
@pass_cli_context
@handle_cli_errors
def copy_rows(cli_ctx: CLIContext) -> None:
    """Print the selected rows as tab-separated values, pending edits applied."""

    grid = _load(cli_ctx).grid
    rows = grid.selected_rows()
    if not rows:
        cli_ctx.logger.info("No rows selected. Use 'grid-edit select' first.")
        return
    click.echo(rows_to_tsv(rows, grid.null_label))
    cli_ctx.logger.info(f"Copied {len(rows)} row(s).")


@main.command("status")
@pass_cli_context
@handle_cli_errors
def status(cli_ctx: CLIContext) -> None:
    """Summarise pending edits."""

    loaded = _load(cli_ctx)
    render_status(loaded.grid)


@main.command("commit")
@click.option("--all", "scope_to_all", is_flag=True, help="Commit every pending edit, ignoring the selection.")
@click.option("--apply", is_flag=True, help="Perform writes (default is preview only).")
@pass_cli_context
@handle_cli_errors
def commit(cli_ctx: CLIContext, scope_to_all: bool, apply: bool) -> None:
    """Send pending edits for the selected rows (or all rows) to the database."""

    loaded = _load(cli_ctx)
    grid = loaded.grid
    plan = grid.plan_changes(scope_to_all)
    if plan.is_empty:
        cli_ctx.logger.info("Nothing to commit.")
        return

    render_plan(plan, null_label=grid.null_label)
    if _effective_dry_run(cli_ctx, apply):
        cli_ctx.logger.info(
            f"[dry-run] {plan.call_count} change(s) planned. Re-run with --apply to write them."
        )
        return

    outcome = asyncio.run(grid.submit_changes(scope_to_all))
    _save(cli_ctx, loaded)
    cli_ctx.logger.success(f"Committed {outcome.call_count} change(s). {_pending_summary(grid)}")
    if outcome.refresh_error:
        cli_ctx.logger.warning(
            f"Rows shown are stale ({outcome.refresh_error}). Run 'grid-edit refresh --keep-pending'."
        )


@main.command("rollback")
@click.option("--all", "scope_to_all", is_flag=True, help="Drop every pending edit, ignoring the selection.")
@pass_cli_context
@handle_cli_errors
def rollback(cli_ctx: CLIContext, scope_to_all: bool) -> None:
    """Drop pending edits for the selected rows (or all rows) without writing."""

    loaded = _load(cli_ctx)
    before = loaded.grid.pending_count
    loaded.grid.rollback_changes(scope_to_all)
    _save(cli_ctx, loaded)
    cli_ctx.logger.success(
        f"Rolled back {before - loaded.grid.pending_count} row change(s). {_pending_summary(loaded.grid)}"
    )


if __name__ == "__main__":  # pragma: no cover
    main()
