# src/tradedesk/market_data/candles.py
from __future__ import annotations

import logging
import threading
from typing import Optional

from tradedesk.core.errors import ValidationError
from tradedesk.core.models.market import Candle
from tradedesk.exchanges.binance.normalize import norm_rest_kline

log = logging.getLogger("tradedesk.market_data.candles")

# interval -> history limit
TIMEFRAMES: dict[str, int] = {
    "1m": 1000,
    "5m": 1000,
    "15m": 1000,
    "30m": 1000,
    "1h": 1000,
    "6h": 500,
    "1d": 500,
    "1M": 200,
}


def timeframe_limit(interval: str) -> int:
    try:
        return TIMEFRAMES[interval]
    except KeyError:
        raise ValidationError(f"unsupported timeframe {interval!r} (allowed: {', '.join(TIMEFRAMES)})") from None


class CandleSeries:
    """
    Closed candles ordered by open time plus the candle still forming.
    """

    def __init__(self, symbol: str, interval: str, *, limit: Optional[int] = None):
        self.symbol = symbol.upper()
        self.interval = interval
        self.limit = int(limit) if limit is not None else timeframe_limit(interval)
        self._candles: list[Candle] = []
        self.current: Optional[Candle] = None
        self._lock = threading.Lock()

    @classmethod
    def load(cls, rest, symbol: str, interval: str) -> "CandleSeries":
        series = cls(symbol, interval)
        rows = rest.klines(series.symbol, interval=interval, limit=series.limit) or []
        candles = [c for c in (norm_rest_kline(r) for r in rows) if c is not None]
        series.extend(candles)
        log.info("[CANDLES] %s %s loaded %d", series.symbol, interval, len(series))
        return series

    def __len__(self) -> int:
        with self._lock:
            return len(self._candles)

    @property
    def candles(self) -> list[Candle]:
        with self._lock:
            return list(self._candles)

    def last(self) -> Optional[Candle]:
        with self._lock:
            return self._candles[-1] if self._candles else None

    def extend(self, candles) -> None:
        for c in candles:
            self._put_closed(c)

    def apply(self, candle: Candle, is_closed: bool) -> None:
        if is_closed:
            self._put_closed(candle)
            with self._lock:
                if self.current is not None and self.current.time == candle.time:
                    self.current = None
        else:
            with self._lock:
                self.current = candle

    def _put_closed(self, candle: Candle) -> None:
        with self._lock:
            for i in range(len(self._candles) - 1, -1, -1):
                t = self._candles[i].time
                if t == candle.time:
                    self._candles[i] = candle
                    return
                if t < candle.time:
                    self._candles.insert(i + 1, candle)
                    break
            else:
                self._candles.insert(0, candle)

            if len(self._candles) > self.limit:
                del self._candles[: len(self._candles) - self.limit]
