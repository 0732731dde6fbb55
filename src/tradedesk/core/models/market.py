# src/tradedesk/core/models/market.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PriceTick:
    """Latest known price for a symbol at arrival time. No ordering guarantee."""

    symbol: str
    price: float
    timestamp: float


@dataclass(frozen=True, slots=True)
class Token:
    id: str                  # pair symbol, e.g. BTCUSDT
    symbol: str              # base asset
    name: str
    current_price: float
    quote_volume: float
    price_change_percent_24h: float
    volume_24h: float
    base_asset: str
    quote_asset: str


@dataclass(frozen=True, slots=True)
class Market:
    id: str
    symbol: str
    name: str
    current_price: float
    quote_volume: float
    volume_24h: float
    price_change_percent_24h: float
    high_24h: float
    low_24h: float


@dataclass(frozen=True, slots=True)
class OrderBookLevel:
    price: float
    quantity: float


@dataclass(frozen=True, slots=True)
class Candle:
    time: int                # open time, seconds
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
