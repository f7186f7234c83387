"""Data structures shared across the grid overlay modules."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence, Union


@dataclass(frozen=True, slots=True)
class ResultSnapshot:
    """Immutable base result set from the last successful query execution."""

    columns: tuple[str, ...]
    rows: tuple[tuple[Any, ...], ...]

    def __post_init__(self) -> None:
        if len(set(self.columns)) != len(self.columns):
            duplicates = sorted({name for name in self.columns if self.columns.count(name) > 1})
            raise ValueError(f"Snapshot columns must be unique; duplicated: {', '.join(duplicates)}")

    @classmethod
    def from_rows(cls, columns: Iterable[str], rows: Iterable[Sequence[Any]]) -> ResultSnapshot:
        return cls(columns=tuple(columns), rows=tuple(tuple(row) for row in rows))

    def column_index(self, name: str | None) -> int | None:
        if name is None or name not in self.columns:
            return None
        return self.columns.index(name)

    def __len__(self) -> int:
        return len(self.rows)


EMPTY_SNAPSHOT = ResultSnapshot(columns=(), rows=())


@dataclass(frozen=True, slots=True)
class Pagination:
    """Paging metadata reported alongside a snapshot."""

    page: int
    page_size: int
    total_rows: int
    truncated: bool = False

    @property
    def page_count(self) -> int:
        if self.page_size <= 0:
            return 1
        return max(1, -(-self.total_rows // self.page_size))


@dataclass(frozen=True, slots=True)
class ColumnMeta:
    """Schema facts about one table column."""

    name: str
    data_type: str = ""
    is_primary_key: bool = False
    is_nullable: bool = True
    is_auto_increment: bool = False
    has_default: bool = False
    default_value: str | None = None


@dataclass(frozen=True, slots=True)
class ColumnDisplayInfo:
    """Classification of a single column as needed by the cell resolver."""

    col_name: str
    auto_increment_columns: frozenset[str] = frozenset()
    default_value_columns: frozenset[str] = frozenset()
    nullable_columns: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class ColumnClassification:
    """Which columns are the primary key, auto-increment, defaulted or nullable."""

    primary_key: str | None = None
    auto_increment_columns: frozenset[str] = frozenset()
    default_value_columns: frozenset[str] = frozenset()
    nullable_columns: frozenset[str] = frozenset()

    @classmethod
    def from_meta(cls, columns: Iterable[ColumnMeta]) -> ColumnClassification:
        columns = list(columns)
        pk_columns = [column.name for column in columns if column.is_primary_key]
        # Composite keys cannot address a row through a single pk value.
        primary_key = pk_columns[0] if len(pk_columns) == 1 else None
        return cls(
            primary_key=primary_key,
            auto_increment_columns=frozenset(c.name for c in columns if c.is_auto_increment),
            default_value_columns=frozenset(c.name for c in columns if c.has_default),
            nullable_columns=frozenset(c.name for c in columns if c.is_nullable),
        )

    def display_info(self, col_name: str) -> ColumnDisplayInfo:
        return ColumnDisplayInfo(
            col_name=col_name,
            auto_increment_columns=self.auto_increment_columns,
            default_value_columns=self.default_value_columns,
            nullable_columns=self.nullable_columns,
        )


@dataclass(frozen=True, slots=True)
class ExistingRow:
    """A row of the base snapshot; ``display_index`` is its snapshot position."""

    row_data: tuple[Any, ...]
    display_index: int

    is_insertion = False


@dataclass(frozen=True, slots=True)
class InsertionRow:
    """A speculative new row, shown after every snapshot row."""

    row_data: tuple[Any, ...]
    display_index: int
    temp_id: str

    is_insertion = True


MergedRow = Union[ExistingRow, InsertionRow]


@dataclass(frozen=True, slots=True)
class CellView:
    """What to render for one cell and which visual state applies."""

    display_value: str
    has_pending_change: bool = False
    is_modified: bool = False
    is_auto_increment_placeholder: bool = False
    is_default_value_placeholder: bool = False
    is_null: bool = False

    @property
    def is_placeholder(self) -> bool:
        return self.is_auto_increment_placeholder or self.is_default_value_placeholder


@dataclass(frozen=True, slots=True)
class PendingChange:
    """Pending cell changes for one existing row, keyed by column name."""

    original_pk_value: Any
    changes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PendingInsertion:
    """Column values of one speculative row, in creation order."""

    temp_id: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class PlannedUpdate:
    """One remote update call: set ``column`` of the row addressed by ``pk_value``."""

    key: str
    pk_value: Any
    column: str
    value: Any


@dataclass(frozen=True, slots=True)
class PlannedDeletion:
    key: str
    pk_value: Any


@dataclass(frozen=True, slots=True)
class PlannedInsertion:
    temp_id: str
    data: dict[str, Any]


@dataclass(frozen=True, slots=True)
class CommitPlan:
    """Remote calls derived from the scoped overlay."""

    updates: tuple[PlannedUpdate, ...] = ()
    deletions: tuple[PlannedDeletion, ...] = ()
    insertions: tuple[PlannedInsertion, ...] = ()

    @property
    def call_count(self) -> int:
        return len(self.updates) + len(self.deletions) + len(self.insertions)

    @property
    def is_empty(self) -> bool:
        return self.call_count == 0
