"""Raw cell values, sentinels and their textual forms.

Cell values crossing the boundary with the database are limited to a closed
set of Python types (``RawValue``). Two sentinels sit outside that set:
``UNDO_SENTINEL`` asks the store to forget a column's pending change and
``USE_DEFAULT_SENTINEL`` asks the backend to reset the column to its schema
default. Because they are enum members, no user-entered string can collide
with them.
"""

from __future__ import annotations

import base64
import enum
import json
from typing import Any, Mapping, Union

from grid_cli.shared.exceptions import ValueTypeError

RawValue = Union[None, bool, int, float, str, bytes, dict, list]

DEFAULT_LABEL = "<default>"
GENERATED_LABEL = "<generated>"
DEFAULT_NULL_LABEL = "NULL"


class Sentinel(enum.Enum):
    UNDO = "undo"
    USE_DEFAULT = "use_default"

    def __repr__(self) -> str:
        return f"<{self.name}>"


UNDO_SENTINEL = Sentinel.UNDO
USE_DEFAULT_SENTINEL = Sentinel.USE_DEFAULT

# What a pending cell change may hold once recorded.
PendingValue = Union[RawValue, Sentinel]

_SCALAR_TYPES = (bool, int, float, str, bytes)


def ensure_raw_value(value: Any) -> RawValue:
    """Return ``value`` unchanged if it belongs to ``RawValue``; raise otherwise."""
    if value is None or isinstance(value, _SCALAR_TYPES):
        return value
    if isinstance(value, (dict, list)):
        try:
            json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise ValueTypeError(f"JSON cell value is not serialisable: {exc}") from exc
        return value
    raise ValueTypeError(f"Unsupported cell value type: {type(value).__name__}")


def _compact_json(value: dict | list) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def value_text(value: Any) -> str:
    """Type-insensitive text of a value, used to decide whether an edit changed anything.

    ``1`` and ``"1"`` compare equal; ``None`` reads as ``"null"``.
    """
    if value is None:
        return "null"
    if isinstance(value, Sentinel):
        return repr(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return _compact_json(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def pk_key(value: RawValue) -> str:
    """Serialise a primary-key value into the key used by the pending store."""
    return value_text(value)


def format_cell_value(value: Any, null_label: str = DEFAULT_NULL_LABEL) -> str:
    """Render a raw value for display; null is shown as ``null_label``."""
    if value is None:
        return null_label
    if value is USE_DEFAULT_SENTINEL:
        return DEFAULT_LABEL
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return _compact_json(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


# ---------------------------------------------------------------------------
# JSON codec for persisted sessions


def encode_value(value: PendingValue) -> dict[str, Any]:
    """Encode a raw value or sentinel as a tagged JSON object."""
    if value is USE_DEFAULT_SENTINEL:
        return {"kind": "use_default"}
    if value is UNDO_SENTINEL:
        raise ValueError("UNDO_SENTINEL is never persisted.")
    if isinstance(value, bytes):
        return {"kind": "bytes", "value": base64.b64encode(value).decode("ascii")}
    if isinstance(value, (dict, list)):
        return {"kind": "json", "value": value}
    return {"kind": "literal", "value": value}


def decode_value(payload: Mapping[str, Any]) -> PendingValue:
    """Inverse of :func:`encode_value`."""
    kind = payload.get("kind")
    if kind == "use_default":
        return USE_DEFAULT_SENTINEL
    if kind == "bytes":
        return base64.b64decode(payload["value"])
    if kind in {"json", "literal"}:
        return ensure_raw_value(payload.get("value"))
    raise ValueError(f"Unknown value kind {kind!r}")
