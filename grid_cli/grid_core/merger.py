"""Combine the base snapshot with pending insertions into one display sequence."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from .types import ExistingRow, InsertionRow, MergedRow, PendingInsertion


def merge_rows(
    base_rows: Sequence[Sequence[Any]],
    insertions: Mapping[str, PendingInsertion],
    columns: Sequence[str],
) -> tuple[MergedRow, ...]:
    """Return snapshot rows followed by insertion rows, ordered by display index.

    Snapshot rows keep their position as display index. Insertions follow in
    creation order (the mapping's iteration order) starting at
    ``len(base_rows)``; missing columns read as ``None``.
    """

    merged: list[MergedRow] = [
        ExistingRow(row_data=tuple(row), display_index=index) for index, row in enumerate(base_rows)
    ]
    offset = len(base_rows)
    for order, (temp_id, insertion) in enumerate(insertions.items()):
        merged.append(
            InsertionRow(
                row_data=tuple(insertion.data.get(column) for column in columns),
                display_index=offset + order,
                temp_id=temp_id,
            )
        )
    merged.sort(key=lambda row: row.display_index)
    return tuple(merged)


class RowMerger:
    """Memoised :func:`merge_rows` keyed on the identity of its inputs.

    The previous inputs are held by reference, so an identity match always
    means the very same objects and never a recycled ``id()``.
    """

    __slots__ = ("_inputs", "_result")

    def __init__(self) -> None:
        self._inputs: tuple[Any, Any, Any] | None = None
        self._result: tuple[MergedRow, ...] = ()

    def merge(
        self,
        base_rows: Sequence[Sequence[Any]],
        insertions: Mapping[str, PendingInsertion],
        columns: Sequence[str],
    ) -> tuple[MergedRow, ...]:
        previous = self._inputs
        if (
            previous is not None
            and previous[0] is base_rows
            and previous[1] is insertions
            and previous[2] is columns
        ):
            return self._result
        self._result = merge_rows(base_rows, insertions, columns)
        self._inputs = (base_rows, insertions, columns)
        return self._result
