# src/tradedesk/exchanges/binance/normalize.py
from __future__ import annotations
import re
import time
from typing import Any

from tradedesk.core.models.market import Candle, OrderBookLevel, PriceTick

SYMBOL_RE = re.compile(r"^[A-Z0-9]+USDT$")


def to_float(x: Any, default: float = 0.0) -> float:
    try:
        return float(x)
    except (TypeError, ValueError):
        return float(default)


def is_valid_market(symbol: str) -> bool:
    return bool(symbol) and bool(SYMBOL_RE.match(str(symbol)))


def unwrap_combined(msg: Any) -> Any:
    # combined stream -> {"stream":"...", "data":{...}}
    if isinstance(msg, dict) and "data" in msg and "stream" in msg:
        return msg.get("data")
    return msg


def norm_ticker_tick(raw: dict) -> PriceTick | None:
    """<symbol>@ticker payload: s = symbol, c = last price, E = event time (ms)."""
    if not isinstance(raw, dict):
        return None
    sym = raw.get("s")
    px = raw.get("c")
    if not sym or px is None:
        return None
    try:
        price = float(px)
    except (TypeError, ValueError):
        return None
    ts = raw.get("E")
    return PriceTick(
        symbol=str(sym).upper(),
        price=price,
        timestamp=int(ts) / 1000.0 if ts else time.time(),
    )


def norm_levels(raw_levels) -> list[OrderBookLevel]:
    out: list[OrderBookLevel] = []
    for lvl in raw_levels or []:
        if not isinstance(lvl, (list, tuple)) or len(lvl) < 2:
            continue
        out.append(OrderBookLevel(price=to_float(lvl[0]), quantity=to_float(lvl[1])))
    return out


def norm_kline_event(raw: dict) -> tuple[Candle, bool] | None:
    """
    Returns (candle, is_closed) from a <symbol>@kline_<interval> payload.
    Unlike the DB collectors, forming candles are kept: x=false means forming.
    """
    if not isinstance(raw, dict):
        return None
    k = raw.get("k")
    if not isinstance(k, dict) or k.get("t") is None:
        return None
    candle = Candle(
        time=int(k.get("t")) // 1000,
        open=to_float(k.get("o")),
        high=to_float(k.get("h")),
        low=to_float(k.get("l")),
        close=to_float(k.get("c")),
        volume=to_float(k.get("v")),
    )
    return candle, bool(k.get("x"))


def norm_rest_kline(row: list) -> Candle | None:
    # [openTime, open, high, low, close, volume, closeTime, ...]
    if not isinstance(row, (list, tuple)) or len(row) < 6:
        return None
    return Candle(
        time=int(row[0]) // 1000,
        open=to_float(row[1]),
        high=to_float(row[2]),
        low=to_float(row[3]),
        close=to_float(row[4]),
        volume=to_float(row[5]),
    )
