# src/tradedesk/data/storage/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

TABLES = ("accounts", "orders", "positions")

OPERATORS = ("=", "!=", "<", "<=", ">", ">=")

# filters: {column: value} for equality, or {column: (op, value)}
Filters = Mapping[str, Any]


def split_filter(value: Any) -> tuple[str, Any]:
    if isinstance(value, tuple) and len(value) == 2 and value[0] in OPERATORS:
        return value[0], value[1]
    return "=", value


def check_table(table: str) -> str:
    if table not in TABLES:
        raise ValueError(f"unknown table: {table!r}")
    return table


class Storage(ABC):
    """
    Table-scoped data access against the hosted relational backend.

    Backend failures surface as PersistenceError (cause chained).
    """

    @abstractmethod
    def exec_ddl(self, ddl_sql: str) -> None: ...

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]: ...

    def select_one(self, table: str, filters: Filters) -> dict | None:
        rows = self.select(table, filters, limit=1)
        return rows[0] if rows else None

    @abstractmethod
    def insert(self, table: str, row: Mapping[str, Any]) -> dict:
        """Inserts one row and returns it as stored."""

    @abstractmethod
    def update(self, table: str, filters: Filters, values: Mapping[str, Any]) -> list[dict]:
        """Updates matching rows and returns them after the update."""

    @abstractmethod
    def delete(self, table: str, filters: Filters) -> int:
        """Deletes matching rows and returns how many were removed."""
