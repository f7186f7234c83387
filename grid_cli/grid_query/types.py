"""Data structures shared across grid-query modules."""

from __future__ import annotations

from dataclasses import dataclass

from grid_cli.shared.database import quote_identifier


@dataclass(frozen=True, slots=True)
class TableQuery:
    """A ``SELECT *`` over one table with optional filter and sort clauses."""

    table: str
    where: str | None = None
    order_by: str | None = None

    def sql(self, *, ordered: bool = True) -> str:
        text = f"SELECT * FROM {quote_identifier(self.table)}"
        if self.where:
            text += f" WHERE {self.where}"
        if ordered and self.order_by:
            text += f" ORDER BY {self.order_by}"
        return text
