# src/tradedesk/market_state/poller.py
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from tradedesk.core.events import BalanceUpdated, EventBus, Topic
from tradedesk.core.ledger import PositionLedger
from tradedesk.core.models.account import Account
from tradedesk.core.models.position import Position
from tradedesk.core.position import PositionBook
from tradedesk.data.accounts_repository import AccountsRepository
from tradedesk.data.positions_repository import PositionsRepository

logger = logging.getLogger(__name__)


class PositionsRefresher(threading.Thread):
    """
    ONE refresher per account.

    Every `poll_sec`: load open positions, mark them at the latest REST price,
    persist, and replace the PositionBook contents. Every `balance_sec` the
    account row is re-read and announced on Topic.BALANCE_UPDATE.
    A position whose price or save fails keeps its previous state; one closed
    while its price was fetched is dropped, never written back.
    """

    def __init__(
        self,
        *,
        account_id: str,
        positions: PositionsRepository,
        ledger: PositionLedger,
        book: PositionBook,
        price_source: Callable[[str], float],
        accounts: Optional[AccountsRepository] = None,
        bus: Optional[EventBus] = None,
        poll_sec: float = 5.0,
        balance_sec: float = 10.0,
    ):
        super().__init__(daemon=True, name=f"PositionsRefresher-{account_id[:8]}")
        self.account_id = account_id
        self.positions = positions
        self.ledger = ledger
        self.book = book
        self.price_source = price_source
        self.accounts = accounts
        self.bus = bus
        self.poll_sec = float(poll_sec)
        self.balance_sec = float(balance_sec)

        self.account: Optional[Account] = None
        self._last_balance_ts = 0.0
        self._stop_event = threading.Event()

    def stop(self):
        self._stop_event.set()

    def run(self):
        logger.info("[POSITIONS] refresher started account=%s every %.1fs", self.account_id, self.poll_sec)

        while not self._stop_event.is_set():
            try:
                self.refresh_once()
            except Exception as e:
                logger.exception("[POSITIONS] refresh error: %s", e)

            if self.accounts is not None and time.monotonic() - self._last_balance_ts >= self.balance_sec:
                try:
                    self.refresh_balance()
                except Exception as e:
                    logger.exception("[POSITIONS] balance refresh error: %s", e)

            self._stop_event.wait(self.poll_sec)

        logger.info("[POSITIONS] refresher stopped account=%s", self.account_id)

    def refresh_once(self) -> list[Position]:
        open_positions = self.positions.open_for_account(self.account_id)

        prices: dict[str, float] = {}
        out: list[Position] = []
        for p in open_positions:
            try:
                px = prices.get(p.market)
                if px is None:
                    px = float(self.price_source(p.market))
                    prices[p.market] = px
                marked = self.ledger.mark_to_market(p, px)
                saved = self.positions.save_if_open(marked)
                if saved is None:
                    logger.info("[POSITIONS] id=%s closed during refresh, dropped", p.id)
                    continue
                out.append(saved)
            except Exception:
                logger.exception("[POSITIONS] refresh failed id=%s market=%s, keeping previous", p.id, p.market)
                out.append(p)

        self.book.replace_all(out)
        logger.debug("[POSITIONS] refreshed %d positions (%d prices)", len(out), len(prices))
        return out

    def refresh_balance(self) -> Optional[Account]:
        self._last_balance_ts = time.monotonic()
        acc = self.accounts.get(self.account_id) if self.accounts is not None else None
        if acc is None:
            return None
        self.account = acc
        if self.bus is not None:
            self.bus.publish(Topic.BALANCE_UPDATE, BalanceUpdated(acc.id, acc.balance, acc.pnl))
        return acc
