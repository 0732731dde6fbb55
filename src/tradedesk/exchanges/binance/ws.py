# src/tradedesk/exchanges/binance/ws.py
from __future__ import annotations

import json
import threading
import logging
import websocket
from typing import Callable, Optional

from tradedesk.core.errors import FeedUnavailable
from tradedesk.exchanges.binance.normalize import unwrap_combined
from tradedesk.market_data.backoff import ReconnectPolicy

log = logging.getLogger("tradedesk.binance.ws")

WS_BASE = "wss://stream.binance.com:9443"

NORMAL_CLOSURE = 1000


def combined_stream_url(streams: list[str], *, base: str = WS_BASE) -> str:
    return f"{base.rstrip('/')}/stream?streams=" + "/".join(streams)


class BinanceWS(threading.Thread):
    """
    One WebSocket connection with bounded exponential reconnect.

    Clean close (code 1000 or stop()) ends the thread. Unclean close
    reconnects after policy.next_delay(); when the policy is exhausted the
    thread ends and on_unavailable receives FeedUnavailable exactly once.
    A successful open resets the policy.
    """

    def __init__(
        self,
        *,
        url: str,
        on_message: Callable[[dict], None],
        name: str = "BinanceWS",
        on_open: Optional[Callable[[], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
        on_unavailable: Optional[Callable[[FeedUnavailable], None]] = None,
        policy: Optional[ReconnectPolicy] = None,
        app_factory=websocket.WebSocketApp,
    ):
        super().__init__(daemon=True, name=name)
        self.url = url
        self.on_message_cb = on_message
        self.policy = policy or ReconnectPolicy()
        self._app_factory = app_factory
        self._ws = None
        self._stop_event = threading.Event()
        self._gave_up = False
        self._close_code: Optional[int] = None

        self.connected = threading.Event()
        self.connect_count = 0
        self._on_open_hook = on_open
        self._on_close_hook = on_close
        self._on_unavailable_hook = on_unavailable

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    @property
    def gave_up(self) -> bool:
        return self._gave_up

    def run(self):
        while not self._stop_event.is_set():
            clean = self._connect_once()
            if self._stop_event.is_set() or clean:
                break

            delay = self.policy.next_delay()
            if delay is None:
                self._give_up()
                break

            log.warning(
                "[%s] reconnect in %.1fs (unclean close %d/%d)",
                self.name, delay, self.policy.failures, self.policy.max_attempts,
            )
            if self._stop_event.wait(delay):
                break

        self.connected.clear()

    def _connect_once(self) -> bool:
        """Runs one connection to completion. True if it ended cleanly."""
        self._close_code = None
        self.connect_count += 1
        log.info("[%s] connecting → %s", self.name, self.url)

        def _on_open(_ws):
            self.connected.set()
            self.policy.reset()
            log.info("[%s] WS CONNECTED", self.name)
            try:
                if self._on_open_hook:
                    self._on_open_hook()
            except Exception:
                log.exception("[%s] on_open hook failed", self.name)

        def _on_close(_ws, code=None, msg=None):
            self.connected.clear()
            self._close_code = code
            log.warning("[%s] WS CLOSED code=%s reason=%s", self.name, code, msg)
            try:
                if self._on_close_hook:
                    self._on_close_hook()
            except Exception:
                log.exception("[%s] on_close hook failed", self.name)

        def _on_error(_ws, err):
            # error does not always mean close; on_close decides about reconnect
            log.error("[%s] WS ERROR: %s", self.name, err)

        try:
            self._ws = self._app_factory(
                self.url,
                on_open=_on_open,
                on_message=lambda ws, msg: self._handle(msg),
                on_error=_on_error,
                on_close=_on_close,
            )
            self._ws.run_forever(ping_interval=20, ping_timeout=10)
        except Exception as e:
            self.connected.clear()
            log.exception("[%s] WS exception: %s", self.name, e)
            return False

        return self._close_code == NORMAL_CLOSURE

    def _give_up(self) -> None:
        if self._gave_up:
            return
        self._gave_up = True
        err = FeedUnavailable(self.name, self.policy.max_attempts)
        log.error("[%s] %s", self.name, err)
        if self._on_unavailable_hook:
            try:
                self._on_unavailable_hook(err)
            except Exception:
                log.exception("[%s] on_unavailable hook failed", self.name)

    def stop(self):
        self._stop_event.set()
        self.connected.clear()
        ws = self._ws
        if ws is None:
            return
        try:
            ws.close(status=NORMAL_CLOSURE)
        except Exception:
            log.debug("[%s] close on stop failed", self.name, exc_info=True)

    def _handle(self, msg: str):
        try:
            data = json.loads(msg)
        except ValueError:
            log.debug("[%s] non-JSON message dropped", self.name)
            return

        payload = unwrap_combined(data)
        if payload is None:
            return

        try:
            self.on_message_cb(payload)
        except Exception:
            log.exception("[%s] message handler failed", self.name)
