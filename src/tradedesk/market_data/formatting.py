# src/tradedesk/market_data/formatting.py
from __future__ import annotations


def format_price(price: float) -> str:
    p = float(price)
    if p >= 1:
        return f"{p:.2f}"
    if p >= 0.01:
        return f"{p:.4f}"
    return f"{p:.8f}"


def format_percentage(pct: float) -> str:
    v = float(pct)
    sign = "+" if v >= 0 else ""
    return f"{sign}{v:.2f}%"


def format_volume(volume: float) -> str:
    v = float(volume)
    if v >= 1_000_000_000:
        return f"${v / 1_000_000_000:.2f}B"
    if v >= 1_000_000:
        return f"${v / 1_000_000:.2f}M"
    if v >= 1_000:
        return f"${v / 1_000:.2f}K"
    return f"${v:.2f}"
