from __future__ import annotations

from grid_cli.grid_core import resolver
from grid_cli.grid_core.store import PendingChangeStore
from grid_cli.grid_core.types import CellView, ColumnClassification, ColumnMeta
from grid_cli.grid_core.values import UNDO_SENTINEL, USE_DEFAULT_SENTINEL, pk_key

CLASSIFICATION = ColumnClassification.from_meta(
    [
        ColumnMeta(name="id", is_primary_key=True, is_auto_increment=True, is_nullable=False),
        ColumnMeta(name="name", is_nullable=False),
        ColumnMeta(name="status", is_nullable=False, has_default=True, default_value="'new'"),
        ColumnMeta(name="note", is_nullable=True, has_default=True, default_value="''"),
    ]
)


def test_existing_cell_without_change_shows_raw_value() -> None:
    view = resolver.resolve_existing("abc", pk_key(1), "id", {}, CLASSIFICATION.display_info("name"))
    assert view == CellView(display_value="abc")


def test_existing_null_shows_null_label() -> None:
    view = resolver.resolve_existing(
        None, pk_key(1), "id", None, CLASSIFICATION.display_info("note"), null_label="(null)"
    )
    assert view.display_value == "(null)"
    assert view.is_null is True
    assert view.has_pending_change is False


def test_existing_cell_prefers_pending_change() -> None:
    store = PendingChangeStore().set_cell_change(1, "name", "renamed")
    view = resolver.resolve_existing("abc", pk_key(1), "id", store.changes, CLASSIFICATION.display_info("name"))
    assert view.display_value == "renamed"
    assert view.has_pending_change is True
    assert view.is_modified is True


def test_pending_use_default_renders_placeholder() -> None:
    store = PendingChangeStore().set_cell_change(1, "status", USE_DEFAULT_SENTINEL)
    view = resolver.resolve_existing("done", pk_key(1), "id", store.changes, CLASSIFICATION.display_info("status"))
    assert view.display_value == "<default>"
    assert view.is_modified is True
    assert view.is_default_value_placeholder is True


def test_undo_never_reaches_display() -> None:
    store = (
        PendingChangeStore()
        .set_cell_change(1, "name", "renamed")
        .set_cell_change(1, "name", UNDO_SENTINEL)
    )
    view = resolver.resolve_existing("abc", pk_key(1), "id", store.changes, CLASSIFICATION.display_info("name"))
    assert view == CellView(display_value="abc")


def test_existing_cell_ignores_changes_without_pk() -> None:
    store = PendingChangeStore().set_cell_change(1, "name", "renamed")
    view = resolver.resolve_existing("abc", None, None, store.changes, CLASSIFICATION.display_info("name"))
    assert view.display_value == "abc"


def test_insertion_auto_increment_placeholder() -> None:
    view = resolver.resolve_insertion(None, CLASSIFICATION.display_info("id"))
    assert view.display_value == "<generated>"
    assert view.is_auto_increment_placeholder is True
    assert view.has_pending_change is True


def test_insertion_default_placeholder_for_required_defaulted_column() -> None:
    view = resolver.resolve_insertion(None, CLASSIFICATION.display_info("status"))
    assert view.display_value == "<default>"
    assert view.is_default_value_placeholder is True


def test_insertion_nullable_defaulted_column_shows_null() -> None:
    view = resolver.resolve_insertion(None, CLASSIFICATION.display_info("note"))
    assert view.display_value == "NULL"
    assert view.is_placeholder is False


def test_insertion_empty_string_is_literal() -> None:
    view = resolver.resolve_insertion("", CLASSIFICATION.display_info("name"))
    assert view.display_value == ""
    assert view.is_modified is False
    assert view.is_placeholder is False

    typed = resolver.resolve_insertion("Widget", CLASSIFICATION.display_info("name"))
    assert typed.is_modified is True


def test_cell_state_precedence() -> None:
    modified = CellView(display_value="x", has_pending_change=True, is_modified=True)
    placeholder = CellView(display_value="<generated>", has_pending_change=True, is_auto_increment_placeholder=True)
    plain_insertion = CellView(display_value="", has_pending_change=True)

    assert resolver.cell_state(modified, is_pending_delete=True) == resolver.STATE_DELETED
    assert resolver.cell_state(placeholder, is_insertion=True, is_selected=True) == resolver.STATE_PLACEHOLDER
    assert (
        resolver.cell_state(modified, is_insertion=True, is_selected=True)
        == resolver.STATE_SELECTED_INSERTION_MODIFIED
    )
    assert resolver.cell_state(plain_insertion, is_insertion=True, is_selected=True) == resolver.STATE_SELECTED_INSERTION
    assert resolver.cell_state(modified, is_insertion=True) == resolver.STATE_INSERTION_MODIFIED
    assert resolver.cell_state(plain_insertion, is_insertion=True) == resolver.STATE_INSERTION
    assert resolver.cell_state(modified) == resolver.STATE_MODIFIED
    assert resolver.cell_state(CellView(display_value="x")) == resolver.STATE_PLAIN
