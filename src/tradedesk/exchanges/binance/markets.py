# src/tradedesk/exchanges/binance/markets.py
from __future__ import annotations

import logging

from tradedesk.core.models.market import Market, Token
from tradedesk.exchanges.binance.normalize import to_float

log = logging.getLogger("tradedesk.exchanges.binance.markets")

QUOTE_ASSET = "USDT"

# listed first regardless of volume
MAJOR_TOKENS: tuple[str, ...] = (
    "BTC", "ETH", "BNB", "XRP", "ADA", "DOGE", "MATIC", "SOL", "DOT", "LTC",
    "AVAX", "LINK", "UNI", "ATOM", "ETC", "XLM", "BCH", "FIL", "ALGO", "ICP",
    "VET", "MANA", "SAND", "AXS", "THETA", "XTZ", "EOS", "AAVE", "CAKE", "MKR",
    "SNX", "COMP", "YFI", "SUSHI", "1INCH", "ENJ", "BAT", "ZIL", "IOTA", "NEO",
    "WAVES", "DASH", "ZEC", "XMR", "QTUM", "ONT", "IOST", "OMG", "ZRX", "KNC",
)
_MAJOR = frozenset(MAJOR_TOKENS)


def is_leveraged_token(base_asset: str) -> bool:
    b = str(base_asset or "").upper()
    return len(b) > 3 and (b.endswith("UP") or b.endswith("DOWN"))


def fetch_top_tokens(rest, limit: int = 300) -> list[Token]:
    """
    TRADING USDT pairs without leveraged UP/DOWN tokens,
    major tokens first, then by 24h base volume.
    """
    info = rest.exchange_info() or {}
    pairs = [
        s for s in info.get("symbols", [])
        if s.get("quoteAsset") == QUOTE_ASSET
        and s.get("status") == "TRADING"
        and not is_leveraged_token(s.get("baseAsset", ""))
    ]

    tickers = {t.get("symbol"): t for t in (rest.ticker_24h() or [])}

    def _key(pair: dict):
        t = tickers.get(pair.get("symbol")) or {}
        major = 1 if pair.get("baseAsset") in _MAJOR else 0
        return (-major, -to_float(t.get("volume")))

    pairs.sort(key=_key)
    pairs = pairs[: max(0, int(limit))]

    out: list[Token] = []
    for p in pairs:
        t = tickers.get(p["symbol"]) or {}
        base = p.get("baseAsset", "")
        out.append(
            Token(
                id=p["symbol"],
                symbol=base,
                name=base,
                current_price=to_float(t.get("lastPrice")),
                quote_volume=to_float(t.get("quoteVolume")),
                price_change_percent_24h=to_float(t.get("priceChangePercent")),
                volume_24h=to_float(t.get("volume")),
                base_asset=base,
                quote_asset=p.get("quoteAsset", QUOTE_ASSET),
            )
        )

    log.info("[MARKETS] top tokens: %d of %d USDT pairs", len(out), len(info.get("symbols", [])))
    return out


def fetch_market(rest, symbol: str) -> Market:
    sym = symbol.upper()
    data = rest.ticker_24h(sym) or {}
    base = sym[: -len(QUOTE_ASSET)] if sym.endswith(QUOTE_ASSET) else sym
    return Market(
        id=sym,
        symbol=base,
        name=base,
        current_price=to_float(data.get("lastPrice")),
        quote_volume=to_float(data.get("quoteVolume")),
        volume_24h=to_float(data.get("volume")),
        price_change_percent_24h=to_float(data.get("priceChangePercent")),
        high_24h=to_float(data.get("highPrice")),
        low_24h=to_float(data.get("lowPrice")),
    )


def fetch_current_price(rest, symbol: str) -> float:
    data = rest.ticker_price(symbol) or {}
    price = to_float(data.get("price"))
    if price <= 0:
        raise RuntimeError(f"no price for {symbol.upper()}: {data!r}")
    return price
