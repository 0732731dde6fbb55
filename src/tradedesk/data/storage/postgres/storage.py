# src/tradedesk/data/storage/postgres/storage.py
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import psycopg
from psycopg import sql
from psycopg_pool import ConnectionPool

from tradedesk.core.errors import PersistenceError
from tradedesk.data.storage.base import Filters, Storage, check_table, split_filter

logger = logging.getLogger(__name__)


class PostgreSQLStorage(Storage):

    """
    PostgreSQL storage: table-scoped CRUD over accounts / orders / positions.
    Identifiers are composed with psycopg.sql, values are always bound.
    """

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    # ======================================================================
    # HELPERS
    # ======================================================================

    @staticmethod
    def _where(filters: Optional[Filters]) -> tuple[sql.Composable, list[Any]]:
        if not filters:
            return sql.SQL(""), []
        parts: list[sql.Composable] = []
        params: list[Any] = []
        for col, raw in filters.items():
            op, value = split_filter(raw)
            if value is None and op in ("=", "!="):
                parts.append(
                    sql.SQL("{} IS NULL" if op == "=" else "{} IS NOT NULL").format(sql.Identifier(col))
                )
                continue
            parts.append(sql.SQL("{} {} %s").format(sql.Identifier(col), sql.SQL(op)))
            params.append(value)
        return sql.SQL(" WHERE ") + sql.SQL(" AND ").join(parts), params

    def _run(self, query: sql.Composable, params: list[Any], *, fetch: bool) -> list[dict]:
        try:
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, params)
                    rows = cur.fetchall() if fetch else []
                    count = cur.rowcount
                conn.commit()
        except psycopg.Error as e:
            logger.error("[PG] query failed: %s", e)
            raise PersistenceError(str(e)) from e
        if not fetch:
            return [{"rowcount": count}]
        return [dict(r) for r in rows]

    # ======================================================================
    # API
    # ======================================================================

    def exec_ddl(self, ddl_sql: str) -> None:
        try:
            with self.pool.connection() as conn:
                conn.execute(ddl_sql)
                conn.commit()
        except psycopg.Error as e:
            raise PersistenceError(str(e)) from e

    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict]:
        where, params = self._where(filters)
        q = sql.SQL("SELECT * FROM {}").format(sql.Identifier(check_table(table))) + where
        if order_by:
            q += sql.SQL(" ORDER BY {} {}").format(
                sql.Identifier(order_by), sql.SQL("DESC" if descending else "ASC")
            )
        if limit is not None:
            q += sql.SQL(" LIMIT %s")
            params.append(int(limit))
        return self._run(q, params, fetch=True)

    def insert(self, table: str, row: Mapping[str, Any]) -> dict:
        cols = list(row.keys())
        q = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(check_table(table)),
            sql.SQL(", ").join(sql.Identifier(c) for c in cols),
            sql.SQL(", ").join(sql.Placeholder() for _ in cols),
        )
        rows = self._run(q, [row[c] for c in cols], fetch=True)
        if not rows:
            raise PersistenceError(f"{table}: insert returned no row")
        return rows[0]

    def update(self, table: str, filters: Filters, values: Mapping[str, Any]) -> list[dict]:
        if not values:
            return self.select(table, filters)
        cols = list(values.keys())
        where, where_params = self._where(filters)
        q = (
            sql.SQL("UPDATE {} SET ").format(sql.Identifier(check_table(table)))
            + sql.SQL(", ").join(sql.SQL("{} = %s").format(sql.Identifier(c)) for c in cols)
            + where
            + sql.SQL(" RETURNING *")
        )
        return self._run(q, [values[c] for c in cols] + where_params, fetch=True)

    def delete(self, table: str, filters: Filters) -> int:
        where, params = self._where(filters)
        q = sql.SQL("DELETE FROM {}").format(sql.Identifier(check_table(table))) + where
        res = self._run(q, params, fetch=False)
        return int(res[0]["rowcount"] or 0)
