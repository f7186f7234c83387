"""Helpers for pending row insertions."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from .types import ColumnMeta
from .values import USE_DEFAULT_SENTINEL

REQUIRED_FIELD_MESSAGE = "Required field"


def _is_blank(value: Any) -> bool:
    return value is None or value == "" or value is USE_DEFAULT_SENTINEL


def initialize_new_row(columns: Iterable[ColumnMeta]) -> dict[str, Any]:
    """Return the starting values of a new row.

    Auto-increment, defaulted and nullable columns start as ``None`` (shown as
    placeholders or null); required columns start as an empty string.
    """
    data: dict[str, Any] = {}
    for column in columns:
        if column.is_auto_increment or column.has_default or column.is_nullable:
            data[column.name] = None
        else:
            data[column.name] = ""
    return data


def validate_insertion(data: Mapping[str, Any], columns: Iterable[ColumnMeta]) -> dict[str, str]:
    """Return ``{column: message}`` for required columns left empty."""
    errors: dict[str, str] = {}
    for column in columns:
        if column.is_auto_increment or column.has_default or column.is_nullable:
            continue
        value = data.get(column.name)
        if value is None or value == "":
            errors[column.name] = REQUIRED_FIELD_MESSAGE
    return errors


def insertion_to_backend_data(data: Mapping[str, Any], columns: Iterable[ColumnMeta]) -> dict[str, Any]:
    """Shape a pending insertion into the mapping sent to ``insert_row``.

    Empty auto-increment and defaulted columns are omitted so the database
    generates or defaults them. Columns without metadata pass through as-is.
    """
    meta = {column.name: column for column in columns}
    payload: dict[str, Any] = {}
    for name, value in data.items():
        column = meta.get(name)
        if column is not None and (column.is_auto_increment or column.has_default) and _is_blank(value):
            continue
        if value is USE_DEFAULT_SENTINEL:
            # Without a declared default the column simply stays unset.
            continue
        payload[name] = value
    return payload
