# src/tradedesk/market_data/feed.py
from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from tradedesk.config import MarketDataConfig
from tradedesk.core.errors import FeedUnavailable, ValidationError
from tradedesk.core.events import EventBus, FeedError, Topic
from tradedesk.core.models.market import Candle, PriceTick
from tradedesk.exchanges.binance.normalize import is_valid_market, norm_kline_event, norm_ticker_tick
from tradedesk.exchanges.binance.ws import BinanceWS, combined_stream_url
from tradedesk.market_data.backoff import ReconnectPolicy
from tradedesk.market_data.candles import CandleSeries, timeframe_limit
from tradedesk.market_data.order_book import BOOK_DEPTH, OrderBook

log = logging.getLogger("tradedesk.market_data.feed")

_ids = itertools.count(1)


@dataclass
class FeedHandle:
    """One subscription: the connections it owns plus the state they maintain."""

    id: int
    kind: str                               # ticker | depth | kline
    symbols: tuple[str, ...]
    connections: list = field(default_factory=list)
    book: Optional[OrderBook] = None
    candles: Optional[CandleSeries] = None
    closed: bool = False

    @property
    def streams(self) -> list[str]:
        return [c.url for c in self.connections]


def _dedupe(symbols: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for s in symbols:
        sym = str(s or "").strip().upper()
        if not sym or sym in seen:
            continue
        seen.add(sym)
        out.append(sym)
    return out


def _chunks(items: list[str], size: int) -> list[list[str]]:
    size = max(1, int(size))
    return [items[i:i + size] for i in range(0, len(items), size)]


class MarketDataFeed:
    """
    Live Binance market data over combined WebSocket streams.

    Ticker subscriptions are split into connections of at most
    `max_streams_per_connection` streams. Every connection reconnects on its
    own with bounded exponential backoff; exhaustion is reported once per
    connection on Topic.FEED_ERROR and through the handle's on_unavailable.
    """

    def __init__(
        self,
        bus: EventBus,
        cfg: MarketDataConfig | None = None,
        *,
        rest=None,
        ws_factory: Callable[..., object] = BinanceWS,
        logger: logging.Logger | None = None,
    ):
        self.bus = bus
        self.cfg = cfg or MarketDataConfig()
        self.rest = rest
        self._ws_factory = ws_factory
        self.logger = logger or log

        self._handles: dict[int, FeedHandle] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------
    # connections
    # ------------------------------------------------------------

    def _open(
        self,
        handle: FeedHandle,
        streams: list[str],
        on_payload: Callable[[dict], None],
        on_unavailable: Optional[Callable[[FeedUnavailable], None]],
    ) -> None:
        n = len(handle.connections) + 1
        name = f"feed-{handle.kind}-{handle.id}.{n}"

        def _unavailable(err: FeedUnavailable) -> None:
            self.logger.error("[FEED] %s unavailable: %s", name, err)
            self.bus.publish(Topic.FEED_ERROR, FeedError(name=name, message=str(err)))
            if on_unavailable is not None:
                try:
                    on_unavailable(err)
                except Exception:
                    self.logger.exception("[FEED] on_unavailable callback failed (%s)", name)

        conn = self._ws_factory(
            url=combined_stream_url(streams, base=self.cfg.ws_base_url),
            on_message=on_payload,
            name=name,
            on_unavailable=_unavailable,
            policy=ReconnectPolicy.from_config(self.cfg),
        )
        handle.connections.append(conn)
        conn.start()

    def _register(self, handle: FeedHandle) -> FeedHandle:
        with self._lock:
            self._handles[handle.id] = handle
        return handle

    @property
    def handles(self) -> list[FeedHandle]:
        with self._lock:
            return list(self._handles.values())

    # ------------------------------------------------------------
    # tickers
    # ------------------------------------------------------------

    def subscribe(
        self,
        symbols: Iterable[str],
        on_tick: Optional[Callable[[PriceTick], None]] = None,
        on_unavailable: Optional[Callable[[FeedUnavailable], None]] = None,
    ) -> FeedHandle:
        syms = _dedupe(symbols)
        if not syms:
            raise ValidationError("at least one symbol is required")

        handle = FeedHandle(id=next(_ids), kind="ticker", symbols=tuple(syms))

        def _on_payload(payload: dict) -> None:
            tick = norm_ticker_tick(payload)
            if tick is None:
                return
            self.bus.publish(Topic.PRICE_UPDATE, tick)
            if on_tick is not None:
                try:
                    on_tick(tick)
                except Exception:
                    self.logger.exception("[FEED] on_tick callback failed symbol=%s", tick.symbol)

        for chunk in _chunks(syms, self.cfg.max_streams_per_connection):
            self._open(handle, [f"{s.lower()}@ticker" for s in chunk], _on_payload, on_unavailable)

        self.logger.info(
            "[FEED] ticker subscribed symbols=%d connections=%d", len(syms), len(handle.connections)
        )
        return self._register(handle)

    # ------------------------------------------------------------
    # order book
    # ------------------------------------------------------------

    def subscribe_depth(
        self,
        symbol: str,
        on_book: Optional[Callable[[OrderBook], None]] = None,
        on_unavailable: Optional[Callable[[FeedUnavailable], None]] = None,
    ) -> FeedHandle:
        sym = str(symbol or "").strip().upper()
        if not is_valid_market(sym):
            raise ValidationError(f"invalid market symbol {symbol!r}")

        if self.rest is not None:
            book = OrderBook.from_snapshot(sym, self.rest.depth(sym, limit=BOOK_DEPTH))
        else:
            book = OrderBook(sym)

        handle = FeedHandle(id=next(_ids), kind="depth", symbols=(sym,), book=book)

        def _on_payload(payload: dict) -> None:
            book.apply_delta(payload)
            if on_book is not None:
                try:
                    on_book(book)
                except Exception:
                    self.logger.exception("[FEED] on_book callback failed symbol=%s", sym)

        self._open(handle, [f"{sym.lower()}@depth{BOOK_DEPTH}@100ms"], _on_payload, on_unavailable)
        self.logger.info("[FEED] depth subscribed %s", sym)
        return self._register(handle)

    # ------------------------------------------------------------
    # klines
    # ------------------------------------------------------------

    def subscribe_klines(
        self,
        symbol: str,
        interval: str,
        on_candle: Optional[Callable[[Candle, bool], None]] = None,
        on_unavailable: Optional[Callable[[FeedUnavailable], None]] = None,
    ) -> FeedHandle:
        sym = str(symbol or "").strip().upper()
        if not is_valid_market(sym):
            raise ValidationError(f"invalid market symbol {symbol!r}")
        timeframe_limit(interval)

        if self.rest is not None:
            series = CandleSeries.load(self.rest, sym, interval)
        else:
            series = CandleSeries(sym, interval)

        handle = FeedHandle(id=next(_ids), kind="kline", symbols=(sym,), candles=series)

        def _on_payload(payload: dict) -> None:
            parsed = norm_kline_event(payload)
            if parsed is None:
                return
            candle, is_closed = parsed
            series.apply(candle, is_closed)
            if on_candle is not None:
                try:
                    on_candle(candle, is_closed)
                except Exception:
                    self.logger.exception("[FEED] on_candle callback failed symbol=%s", sym)

        self._open(handle, [f"{sym.lower()}@kline_{interval}"], _on_payload, on_unavailable)
        self.logger.info("[FEED] klines subscribed %s %s", sym, interval)
        return self._register(handle)

    # ------------------------------------------------------------
    # teardown
    # ------------------------------------------------------------

    def unsubscribe(self, handle: FeedHandle) -> None:
        with self._lock:
            if handle.closed:
                return
            handle.closed = True
            self._handles.pop(handle.id, None)

        for conn in handle.connections:
            try:
                conn.stop()
            except Exception:
                self.logger.exception("[FEED] stop failed (%s)", getattr(conn, "name", "?"))
        self.logger.info("[FEED] unsubscribed %s #%d", handle.kind, handle.id)

    def close(self) -> None:
        for h in self.handles:
            self.unsubscribe(h)
