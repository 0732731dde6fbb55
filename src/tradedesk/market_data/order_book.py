# src/tradedesk/market_data/order_book.py
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable

from tradedesk.core.models.market import OrderBookLevel
from tradedesk.exchanges.binance.normalize import norm_levels

BOOK_DEPTH = 20


@dataclass(frozen=True, slots=True)
class DepthRow:
    price: float
    quantity: float
    total: float


def _apply_side(levels: list[OrderBookLevel], updates: Iterable[OrderBookLevel], *, descending: bool, depth: int):
    by_price = {lvl.price: lvl for lvl in levels}
    for u in updates:
        if u.quantity == 0:
            by_price.pop(u.price, None)
        else:
            by_price[u.price] = u
    out = sorted(by_price.values(), key=lambda lvl: lvl.price, reverse=descending)
    return out[:depth]


def with_totals(levels: Iterable[OrderBookLevel]) -> list[DepthRow]:
    """Cumulative quantity from the top of the side down."""
    total = 0.0
    rows: list[DepthRow] = []
    for lvl in levels:
        total += lvl.quantity
        rows.append(DepthRow(price=lvl.price, quantity=lvl.quantity, total=total))
    return rows


class OrderBook:
    """
    Top-N order book for one symbol.

    Bids are kept descending, asks ascending, both cut to `depth` after
    every update.
    """

    def __init__(self, symbol: str, *, depth: int = BOOK_DEPTH):
        self.symbol = symbol.upper()
        self.depth = int(depth)
        self._bids: list[OrderBookLevel] = []
        self._asks: list[OrderBookLevel] = []
        self._lock = threading.Lock()

    @classmethod
    def from_snapshot(cls, symbol: str, snapshot: dict, *, depth: int = BOOK_DEPTH) -> "OrderBook":
        book = cls(symbol, depth=depth)
        book.replace(norm_levels(snapshot.get("bids")), norm_levels(snapshot.get("asks")))
        return book

    @property
    def bids(self) -> list[OrderBookLevel]:
        with self._lock:
            return list(self._bids)

    @property
    def asks(self) -> list[OrderBookLevel]:
        with self._lock:
            return list(self._asks)

    def best_bid(self) -> OrderBookLevel | None:
        with self._lock:
            return self._bids[0] if self._bids else None

    def best_ask(self) -> OrderBookLevel | None:
        with self._lock:
            return self._asks[0] if self._asks else None

    def spread(self) -> float | None:
        bid, ask = self.best_bid(), self.best_ask()
        if bid is None or ask is None:
            return None
        return ask.price - bid.price

    def replace(self, bids: Iterable[OrderBookLevel], asks: Iterable[OrderBookLevel]) -> None:
        with self._lock:
            self._bids = _apply_side([], bids, descending=True, depth=self.depth)
            self._asks = _apply_side([], asks, descending=False, depth=self.depth)

    def apply_delta(self, raw: dict) -> None:
        """
        Accepts both depth payload shapes:
          - partial book: {"bids": [...], "asks": [...]} -> replaces the book
          - diff update:  {"b": [...], "a": [...]}       -> upsert / delete qty=0
        """
        if not isinstance(raw, dict):
            return
        if "bids" in raw or "asks" in raw:
            self.replace(norm_levels(raw.get("bids")), norm_levels(raw.get("asks")))
            return

        with self._lock:
            if raw.get("b"):
                self._bids = _apply_side(self._bids, norm_levels(raw["b"]), descending=True, depth=self.depth)
            if raw.get("a"):
                self._asks = _apply_side(self._asks, norm_levels(raw["a"]), descending=False, depth=self.depth)

    def depth_rows(self) -> tuple[list[DepthRow], list[DepthRow]]:
        return with_totals(self.bids), with_totals(self.asks)

    def __repr__(self) -> str:
        return f"OrderBook({self.symbol} bids={len(self._bids)} asks={len(self._asks)})"
