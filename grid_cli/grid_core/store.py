"""Pending overlay of cell changes, deletions and insertions.

The store is an immutable value: every operation returns a new store and
leaves the receiver untouched, so a caller can keep the previous state for
comparison or to restore it.

Invariants:

* a change entry never has an empty ``changes`` mapping;
* ``original_pk_value`` of an entry is fixed by the first change recorded;
* insertion order of ``insertions`` equals creation order and temp ids are
  never reused within the process.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

from grid_cli.shared.exceptions import UnknownInsertionError, ValueTypeError

from .types import CommitPlan, PendingChange, PendingInsertion
from .values import (
    UNDO_SENTINEL,
    USE_DEFAULT_SENTINEL,
    PendingValue,
    RawValue,
    ensure_raw_value,
    pk_key,
)

logger = logging.getLogger(__name__)

_temp_ids = itertools.count(1)


def generate_temp_id() -> str:
    """Return a process-local temporary id for a new pending insertion."""
    return f"temp_{next(_temp_ids)}"


def reserve_temp_ids(existing: Iterable[str]) -> None:
    """Advance the id counter past ids restored from a persisted session."""
    global _temp_ids
    highest = 0
    for temp_id in existing:
        _, _, suffix = temp_id.partition("_")
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    current = next(_temp_ids)
    _temp_ids = itertools.count(max(current, highest + 1))


def _checked(value: PendingValue) -> PendingValue:
    if value is USE_DEFAULT_SENTINEL:
        return value
    return ensure_raw_value(value)


@dataclass(frozen=True, slots=True)
class PendingChangeStore:
    changes: dict[str, PendingChange] = field(default_factory=dict)
    deletions: dict[str, Any] = field(default_factory=dict)
    insertions: dict[str, PendingInsertion] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Cell changes

    def set_cell_change(self, pk_value: RawValue, column: str, value: PendingValue) -> PendingChangeStore:
        """Record ``column = value`` for the row ``pk_value``.

        ``UNDO_SENTINEL`` removes the column's pending change instead; the
        row entry disappears with its last change.
        """
        key = pk_key(pk_value)
        entry = self.changes.get(key)

        if value is UNDO_SENTINEL:
            if entry is None or column not in entry.changes:
                return self
            remaining = {name: val for name, val in entry.changes.items() if name != column}
            changes = dict(self.changes)
            if remaining:
                changes[key] = replace(entry, changes=remaining)
            else:
                del changes[key]
            return replace(self, changes=changes)

        value = _checked(value)
        if entry is None:
            entry = PendingChange(original_pk_value=pk_value, changes={column: value})
        else:
            entry = replace(entry, changes={**entry.changes, column: value})
        return replace(self, changes={**self.changes, key: entry})

    def pending_value(self, pk_value: RawValue, column: str) -> tuple[bool, PendingValue]:
        """Return ``(found, value)`` for a cell's pending change."""
        entry = self.changes.get(pk_key(pk_value))
        if entry is None or column not in entry.changes:
            return False, None
        return True, entry.changes[column]

    # ------------------------------------------------------------------
    # Deletions

    def mark_for_deletion(self, pk_value: RawValue) -> PendingChangeStore:
        key = pk_key(pk_value)
        if key in self.deletions:
            return self
        return replace(self, deletions={**self.deletions, key: pk_value})

    def revert_deletion(self, pk_value: RawValue) -> PendingChangeStore:
        key = pk_key(pk_value)
        if key not in self.deletions:
            return self
        return replace(self, deletions={k: v for k, v in self.deletions.items() if k != key})

    def is_marked_for_deletion(self, pk_value: RawValue) -> bool:
        return pk_key(pk_value) in self.deletions

    # ------------------------------------------------------------------
    # Insertions

    def add_insertion(self, data: Mapping[str, Any] | None = None) -> tuple[PendingChangeStore, str]:
        temp_id = generate_temp_id()
        row = {column: _checked(value) for column, value in (data or {}).items()}
        insertion = PendingInsertion(temp_id=temp_id, data=row)
        logger.debug("Added pending insertion %s", temp_id)
        return replace(self, insertions={**self.insertions, temp_id: insertion}), temp_id

    def set_insertion_cell(self, temp_id: str, column: str, value: PendingValue) -> PendingChangeStore:
        insertion = self.insertions.get(temp_id)
        if insertion is None:
            raise UnknownInsertionError(temp_id)
        if value is UNDO_SENTINEL:
            raise ValueTypeError("Insertion cells cannot be reverted individually; discard the row instead.")
        updated = replace(insertion, data={**insertion.data, column: _checked(value)})
        # Re-assigning an existing key keeps its position in the dict.
        return replace(self, insertions={**self.insertions, temp_id: updated})

    def discard_insertion(self, temp_id: str) -> PendingChangeStore:
        if temp_id not in self.insertions:
            raise UnknownInsertionError(temp_id)
        return replace(self, insertions={k: v for k, v in self.insertions.items() if k != temp_id})

    # ------------------------------------------------------------------
    # Reconciliation

    def without_plan(self, plan: CommitPlan) -> PendingChangeStore:
        """Drop exactly what ``plan`` sent.

        An update pair is only dropped while the store still holds the value
        that was sent; a newer edit to the same cell survives. Deleted rows
        lose their change entry too.
        """
        changes = {key: dict(entry.changes) for key, entry in self.changes.items()}
        for update in plan.updates:
            row_changes = changes.get(update.key)
            if row_changes is None or update.column not in row_changes:
                continue
            if _same_value(row_changes[update.column], update.value):
                del row_changes[update.column]

        deleted_keys = {deletion.key for deletion in plan.deletions}
        inserted_ids = {insertion.temp_id for insertion in plan.insertions}

        new_changes = {
            key: replace(self.changes[key], changes=row_changes)
            for key, row_changes in changes.items()
            if row_changes and key not in deleted_keys
        }
        return PendingChangeStore(
            changes=new_changes,
            deletions={k: v for k, v in self.deletions.items() if k not in deleted_keys},
            insertions={k: v for k, v in self.insertions.items() if k not in inserted_ids},
        )

    def without_scope(self, keys: Iterable[str], temp_ids: Iterable[str]) -> PendingChangeStore:
        """Drop change entries and deletions for ``keys`` and the given insertions."""
        keys = set(keys)
        temp_ids = set(temp_ids)
        return PendingChangeStore(
            changes={k: v for k, v in self.changes.items() if k not in keys},
            deletions={k: v for k, v in self.deletions.items() if k not in keys},
            insertions={k: v for k, v in self.insertions.items() if k not in temp_ids},
        )

    def cleared(self) -> PendingChangeStore:
        return PendingChangeStore()

    # ------------------------------------------------------------------
    # Derived state

    @property
    def pending_count(self) -> int:
        """Number of rows affected by the overlay."""
        return len(set(self.changes) | set(self.deletions)) + len(self.insertions)

    @property
    def has_pending_changes(self) -> bool:
        return bool(self.changes or self.deletions or self.insertions)


def _same_value(left: Any, right: Any) -> bool:
    if left is right:
        return True
    return type(left) is type(right) and left == right
