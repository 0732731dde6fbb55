# src/tradedesk/data/positions_repository.py
from dataclasses import dataclass
from typing import Optional

from tradedesk.core.models.enums import MarginMode
from tradedesk.core.models.position import Position
from tradedesk.data.storage.base import Storage

TABLE = "positions"


@dataclass(frozen=True)
class PositionFilters:
    market: Optional[str] = None
    is_open: Optional[bool] = None
    margin_mode: Optional[MarginMode] = None
    min_size: Optional[float] = None
    max_size: Optional[float] = None
    min_pnl: Optional[float] = None
    max_pnl: Optional[float] = None

    def to_storage(self) -> dict:
        out: dict = {}
        if self.market:
            out["market"] = self.market.upper()
        if self.is_open is not None:
            out["is_open"] = bool(self.is_open)
        if self.margin_mode is not None:
            out["margin_mode"] = MarginMode(self.margin_mode).value
        # one (op, value) per column, so a min+max pair on the same column is
        # split between storage and post-filtering
        if self.min_size is not None:
            out["amount"] = (">=", float(self.min_size))
        if self.min_pnl is not None:
            out["pnl"] = (">=", float(self.min_pnl))
        return out

    def post_filter(self, p: Position) -> bool:
        if self.max_size is not None and p.amount > self.max_size:
            return False
        if self.max_pnl is not None and p.pnl > self.max_pnl:
            return False
        return True


def _mutable_row(position: Position) -> dict:
    row = position.to_row()
    row.pop("id")
    row.pop("created_at")
    return row


class PositionsRepository:
    def __init__(self, storage: Storage):
        self._storage = storage

    def insert(self, position: Position) -> Position:
        return Position.from_row(self._storage.insert(TABLE, position.to_row()))

    def save(self, position: Position) -> Position:
        """Whole-row overwrite of an existing position."""
        rows = self._storage.update(TABLE, {"id": position.id}, _mutable_row(position))
        return Position.from_row(rows[0]) if rows else position

    def save_if_open(self, position: Position) -> Optional[Position]:
        """
        Overwrite only while the stored row is still open.
        Returns None when the position was closed in the meantime.
        """
        rows = self._storage.update(TABLE, {"id": position.id, "is_open": True}, _mutable_row(position))
        return Position.from_row(rows[0]) if rows else None

    def get(self, position_id: str) -> Optional[Position]:
        row = self._storage.select_one(TABLE, {"id": str(position_id)})
        return Position.from_row(row) if row else None

    def delete(self, position_id: str) -> int:
        return self._storage.delete(TABLE, {"id": str(position_id)})

    def for_account(self, account_id: str, filters: Optional[PositionFilters] = None) -> list[Position]:
        f = filters or PositionFilters()
        query = {"account_id": str(account_id)}
        query.update(f.to_storage())
        rows = self._storage.select(TABLE, query, order_by="created_at", descending=True)
        return [p for p in (Position.from_row(r) for r in rows) if f.post_filter(p)]

    def open_for_account(self, account_id: str, market: Optional[str] = None) -> list[Position]:
        return self.for_account(account_id, PositionFilters(market=market, is_open=True))
