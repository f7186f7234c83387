"""Tab-separated rendering of grid rows for copy operations."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from .values import DEFAULT_NULL_LABEL, format_cell_value


def row_to_tsv(row: Sequence[Any], null_label: str = DEFAULT_NULL_LABEL) -> str:
    return "\t".join(format_cell_value(cell, null_label) for cell in row)


def rows_to_tsv(rows: Iterable[Sequence[Any]], null_label: str = DEFAULT_NULL_LABEL) -> str:
    """Join rows with newlines; no trailing newline and no header."""
    return "\n".join(row_to_tsv(row, null_label) for row in rows)
