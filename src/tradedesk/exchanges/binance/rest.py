# src/tradedesk/exchanges/binance/rest.py
from __future__ import annotations

import logging
import time
from typing import Any, Callable

import requests

BASE_URL = "https://api.binance.com"

log = logging.getLogger("tradedesk.exchanges.binance.rest")


class BinanceSpotREST:
    """
    Binance spot public REST client (read-only, unauthenticated),
    with retry/backoff for 429/5xx and network errors.
    """

    def __init__(
        self,
        *,
        base_url: str = BASE_URL,
        timeout: float = 10.0,
        max_retries: int = 3,
        backoff_base: float = 1.5,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)
        self.max_retries = max(1, int(max_retries))
        self.backoff_base = float(backoff_base)

        self.sess = session or requests.Session()
        self._sleep = sleep

    @classmethod
    def from_config(cls, cfg) -> "BinanceSpotREST":
        return cls(
            base_url=cfg.rest_base_url,
            timeout=cfg.request_timeout_sec,
            max_retries=cfg.request_max_retries,
            backoff_base=cfg.request_backoff_base,
        )

    # ---------------------------------------------------------------------
    # CORE REQUEST (WITH BACKOFF)
    # ---------------------------------------------------------------------

    def _get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.base_url}{path}"
        req_params = dict(params or {})

        last_err: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            try:
                r = self.sess.request(method="GET", url=url, params=req_params, timeout=self.timeout)
            except requests.RequestException as e:
                last_err = e
                sleep = self.backoff_base * attempt
                log.warning(
                    "Binance request error (GET %s), retry %d/%d, sleep %.1fs | %r",
                    path, attempt, self.max_retries, sleep, e,
                )
                self._sleep(sleep)
                continue

            # --- RATE LIMIT / TEMP SERVER ERRORS ---
            if r.status_code == 429 or r.status_code >= 500:
                sleep = self.backoff_base * attempt
                last_err = RuntimeError(f"HTTP {r.status_code}")
                log.warning(
                    "Binance %d (GET %s), retry %d/%d, sleep %.1fs",
                    r.status_code, path, attempt, self.max_retries, sleep,
                )
                self._sleep(sleep)
                continue

            # --- OTHER ERRORS (not retried) ---
            if r.status_code >= 400:
                # Binance returns {"code":..., "msg":...}
                try:
                    payload = r.json()
                except ValueError:
                    raise RuntimeError(f"Binance HTTP {r.status_code} GET {path}: {r.text[:500]}")
                raise RuntimeError(
                    f"Binance HTTP {r.status_code} GET {path}: code={payload.get('code')} msg={payload.get('msg')}"
                )

            # --- OK ---
            if r.text:
                return r.json()
            return {}

        raise RuntimeError(
            f"Binance request failed after {self.max_retries} retries: GET {path} | last_err={last_err!r}"
        )

    # ---------------------------------------------------------------------
    # API METHODS
    # ---------------------------------------------------------------------

    def exchange_info(self) -> dict:
        return self._get("/api/v3/exchangeInfo")

    def ticker_24h(self, symbol: str | None = None):
        # no symbol -> list for every pair
        params: dict[str, Any] = {}
        if symbol:
            params["symbol"] = symbol.upper()
        return self._get("/api/v3/ticker/24hr", params=params)

    def ticker_price(self, symbol: str) -> dict:
        return self._get("/api/v3/ticker/price", params={"symbol": symbol.upper()})

    def depth(self, symbol: str, *, limit: int = 20) -> dict:
        return self._get("/api/v3/depth", params={"symbol": symbol.upper(), "limit": int(limit)})

    def klines(self, symbol: str, *, interval: str, limit: int = 500) -> list:
        params = {"symbol": symbol.upper(), "interval": interval, "limit": int(limit)}
        return self._get("/api/v3/klines", params=params)
