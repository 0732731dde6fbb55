# src/tradedesk/data/storage/memory.py
from __future__ import annotations

import copy
import logging
import operator
import threading
from typing import Any, Mapping, Optional

from tradedesk.core.errors import PersistenceError
from tradedesk.data.storage.base import TABLES, Filters, Storage, check_table, split_filter

logger = logging.getLogger(__name__)

_OPS = {
    "=": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

# unique columns besides the primary key "id"
_UNIQUE = {"accounts": ("wallet_address",)}


class MemoryStorage(Storage):
    """
    In-process Storage: offline demo mode and tests.
    Rows are deep-copied in and out so callers never share state with the store.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tables: dict[str, dict[str, dict]] = {t: {} for t in TABLES}

    # ======================================================================
    # HELPERS
    # ======================================================================

    @staticmethod
    def _matches(row: Mapping[str, Any], filters: Optional[Filters]) -> bool:
        for col, raw in (filters or {}).items():
            op, value = split_filter(raw)
            current = row.get(col)
            if current is None and op != "=" and op != "!=":
                return False
            try:
                if not _OPS[op](current, value):
                    return False
            except TypeError as e:
                raise PersistenceError(f"cannot compare {col}={current!r} {op} {value!r}") from e
        return True

    # ======================================================================
    # API
    # ======================================================================

    def exec_ddl(self, ddl_sql: str) -> None:
        logger.debug("[MEMORY] exec_ddl ignored (%d chars)", len(ddl_sql or ""))

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        check_table(table)
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._tables[table].values() if self._matches(r, filters)]

        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)), reverse=descending)
        if limit is not None:
            rows = rows[: int(limit)]
        return rows

    def insert(self, table: str, row: Mapping[str, Any]) -> dict:
        check_table(table)
        data = copy.deepcopy(dict(row))
        row_id = data.get("id")
        if not row_id:
            raise PersistenceError(f"{table}: row without id")

        with self._lock:
            store = self._tables[table]
            if row_id in store:
                raise PersistenceError(f"{table}: duplicate id {row_id}")
            for col in _UNIQUE.get(table, ()):
                if any(r.get(col) == data.get(col) for r in store.values()):
                    raise PersistenceError(f"{table}: duplicate {col}={data.get(col)!r}")
            store[row_id] = data
        return copy.deepcopy(data)

    def update(self, table: str, filters: Filters, values: Mapping[str, Any]) -> list[dict]:
        check_table(table)
        out: list[dict] = []
        with self._lock:
            for row in self._tables[table].values():
                if self._matches(row, filters):
                    row.update(copy.deepcopy(dict(values)))
                    out.append(copy.deepcopy(row))
        return out

    def delete(self, table: str, filters: Filters) -> int:
        check_table(table)
        with self._lock:
            store = self._tables[table]
            doomed = [k for k, r in store.items() if self._matches(r, filters)]
            for k in doomed:
                del store[k]
        return len(doomed)
