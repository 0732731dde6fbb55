# src/tradedesk/core/position/position_book.py
from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional

from tradedesk.core.events import EventBus, PositionUpdated, Topic
from tradedesk.core.ledger import PositionLedger
from tradedesk.core.models.market import PriceTick
from tradedesk.core.models.position import MarginSnapshot, Position


class PositionBook:
    """
    In-memory open positions of ONE account, kept current by price ticks.

    Responsibilities:
      ✔ mark open positions of a symbol to market on every tick
      ✔ whole-object replacement (no in-place mutation)
      ✔ publish POSITION_UPDATE per changed position
      ✖ NO persistence (the positions poller writes snapshots back)

    Updates from different sources (WS ticks, REST polls, post-order reloads)
    are last-write-wins; every update is a complete snapshot.
    """

    def __init__(
        self,
        *,
        account_id: str,
        ledger: PositionLedger,
        bus: Optional[EventBus] = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.account_id = str(account_id)
        self.ledger = ledger
        self.bus = bus
        self.logger = logger or logging.getLogger("tradedesk.position_book")

        self._lock = threading.Lock()
        # key = position id
        self._positions: Dict[str, Position] = {}

    # ------------------------------------------------------------
    def replace_all(self, positions: Iterable[Position]) -> None:
        fresh = {p.id: p for p in positions if p.is_open and p.account_id == self.account_id}
        with self._lock:
            self._positions = fresh
        self.logger.debug("[POSITIONS] loaded %d open positions", len(fresh))

    def upsert(self, position: Position) -> None:
        with self._lock:
            if position.is_open:
                self._positions[position.id] = position
            else:
                self._positions.pop(position.id, None)
        self._notify(position)

    def get(self, position_id: str) -> Optional[Position]:
        with self._lock:
            return self._positions.get(position_id)

    def snapshot(self) -> List[Position]:
        with self._lock:
            return list(self._positions.values())

    def symbols(self) -> set[str]:
        with self._lock:
            return {p.market for p in self._positions.values()}

    # ------------------------------------------------------------
    def apply_tick(self, tick: PriceTick) -> List[Position]:
        """
        Mark every open position on tick.symbol to tick.price.
        Returns the updated positions.
        """
        symbol = str(tick.symbol).upper()
        with self._lock:
            targets = [p for p in self._positions.values() if p.market == symbol]
            updated = [self.ledger.mark_to_market(p, tick.price) for p in targets]
            for p in updated:
                self._positions[p.id] = p

        for p in updated:
            self._notify(p)
        return updated

    def summary(self, balance: float, max_leverage: Optional[float] = None) -> MarginSnapshot:
        return self.ledger.account_summary(balance, self.snapshot(), max_leverage)

    def liquidatable(self) -> List[Position]:
        return [p for p in self.snapshot() if self.ledger.is_liquidatable(p)]

    # ------------------------------------------------------------
    def _notify(self, position: Position) -> None:
        if self.bus is not None:
            self.bus.publish(Topic.POSITION_UPDATE, PositionUpdated(self.account_id, position.id))
