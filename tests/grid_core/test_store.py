from __future__ import annotations

import pytest

from grid_cli.grid_core.store import PendingChangeStore, generate_temp_id, reserve_temp_ids
from grid_cli.grid_core.types import CommitPlan, PlannedDeletion, PlannedInsertion, PlannedUpdate
from grid_cli.grid_core.values import UNDO_SENTINEL, USE_DEFAULT_SENTINEL, pk_key
from grid_cli.shared.exceptions import UnknownInsertionError, ValueTypeError


def test_set_cell_change_is_idempotent() -> None:
    once = PendingChangeStore().set_cell_change(1, "name", "x")
    twice = once.set_cell_change(1, "name", "x")
    assert twice == once


def test_undo_removes_column_then_row_entry() -> None:
    store = PendingChangeStore().set_cell_change(1, "name", "x").set_cell_change(1, "price", 3)

    store = store.set_cell_change(1, "name", UNDO_SENTINEL)
    assert store.changes[pk_key(1)].changes == {"price": 3}

    store = store.set_cell_change(1, "price", UNDO_SENTINEL)
    assert store.changes == {}
    assert store.has_pending_changes is False


def test_undo_on_unknown_cell_is_a_no_op() -> None:
    store = PendingChangeStore()
    assert store.set_cell_change(5, "name", UNDO_SENTINEL) is store


def test_operations_never_mutate_the_receiver() -> None:
    before = PendingChangeStore().set_cell_change(1, "name", "x")
    snapshot = (dict(before.changes), dict(before.deletions), dict(before.insertions))

    before.set_cell_change(1, "name", "y")
    before.mark_for_deletion(2)
    before.add_insertion({"name": "z"})

    assert (before.changes, before.deletions, before.insertions) == snapshot
    assert before.changes[pk_key(1)].changes == {"name": "x"}


def test_original_pk_value_is_fixed_by_first_change() -> None:
    store = PendingChangeStore().set_cell_change(10, "name", "a").set_cell_change("10", "price", 1)
    entry = store.changes[pk_key(10)]
    assert entry.original_pk_value == 10
    assert entry.changes == {"name": "a", "price": 1}


def test_pending_value_reports_sentinels() -> None:
    store = PendingChangeStore().set_cell_change(1, "price", USE_DEFAULT_SENTINEL)
    assert store.pending_value(1, "price") == (True, USE_DEFAULT_SENTINEL)
    assert store.pending_value(1, "name") == (False, None)


def test_set_cell_change_rejects_unsupported_values() -> None:
    with pytest.raises(ValueTypeError):
        PendingChangeStore().set_cell_change(1, "name", object())


def test_deletion_toggle() -> None:
    store = PendingChangeStore().mark_for_deletion(4)
    assert store.is_marked_for_deletion(4)
    assert store.mark_for_deletion(4) is store

    store = store.revert_deletion(4)
    assert not store.is_marked_for_deletion(4)
    assert store.revert_deletion(4) is store


def test_pending_count_counts_rows_not_cells() -> None:
    store = (
        PendingChangeStore()
        .set_cell_change(1, "name", "a")
        .set_cell_change(1, "price", 2)
        .set_cell_change(2, "name", "b")
        .mark_for_deletion(2)
        .mark_for_deletion(3)
    )
    store, _ = store.add_insertion()
    assert store.pending_count == 4


def test_insertions_keep_creation_order_and_unique_ids() -> None:
    store = PendingChangeStore()
    store, first = store.add_insertion()
    store, second = store.add_insertion()
    store = store.set_insertion_cell(first, "name", "edited")

    assert list(store.insertions) == [first, second]
    assert first != second
    assert store.insertions[first].data == {"name": "edited"}

    store = store.discard_insertion(first)
    _, third = store.add_insertion()
    assert third not in (first, second)


def test_unknown_insertion_ids_raise() -> None:
    store = PendingChangeStore()
    with pytest.raises(UnknownInsertionError, match="temp_missing"):
        store.set_insertion_cell("temp_missing", "name", "x")
    with pytest.raises(UnknownInsertionError):
        store.discard_insertion("temp_missing")


def test_insertion_cells_cannot_be_undone() -> None:
    store, temp_id = PendingChangeStore().add_insertion()
    with pytest.raises(ValueTypeError):
        store.set_insertion_cell(temp_id, "name", UNDO_SENTINEL)


def test_reserve_temp_ids_skips_restored_ids() -> None:
    current = int(generate_temp_id().split("_")[1])
    reserve_temp_ids([f"temp_{current + 50}", "not-a-temp-id"])
    assert int(generate_temp_id().split("_")[1]) > current + 50


def test_without_plan_keeps_edits_made_after_planning() -> None:
    store = PendingChangeStore().set_cell_change(1, "name", "sent").set_cell_change(1, "price", 5)
    plan = CommitPlan(
        updates=(
            PlannedUpdate(key=pk_key(1), pk_value=1, column="name", value="sent"),
            PlannedUpdate(key=pk_key(1), pk_value=1, column="price", value=5),
        )
    )
    store = store.set_cell_change(1, "name", "edited meanwhile")

    reconciled = store.without_plan(plan)

    assert reconciled.changes[pk_key(1)].changes == {"name": "edited meanwhile"}


def test_without_plan_removes_deleted_rows_and_insertions() -> None:
    store = PendingChangeStore().set_cell_change(2, "name", "x").mark_for_deletion(2).mark_for_deletion(3)
    store, temp_id = store.add_insertion({"name": "n"})
    store, kept_id = store.add_insertion({"name": "m"})
    plan = CommitPlan(
        deletions=(PlannedDeletion(key=pk_key(2), pk_value=2),),
        insertions=(PlannedInsertion(temp_id=temp_id, data={"name": "n"}),),
    )

    reconciled = store.without_plan(plan)

    assert reconciled.changes == {}
    assert list(reconciled.deletions) == [pk_key(3)]
    assert list(reconciled.insertions) == [kept_id]


def test_without_scope_and_cleared() -> None:
    store = PendingChangeStore().set_cell_change(1, "name", "a").set_cell_change(2, "name", "b").mark_for_deletion(1)
    store, temp_id = store.add_insertion()

    scoped = store.without_scope([pk_key(1)], [temp_id])
    assert list(scoped.changes) == [pk_key(2)]
    assert scoped.deletions == {}
    assert scoped.insertions == {}

    assert store.cleared() == PendingChangeStore()
