"""
BinanceWS reconnect behaviour with a scripted fake WebSocketApp (no network).
"""

import json

import pytest

from tradedesk.core.errors import FeedUnavailable
from tradedesk.exchanges.binance.ws import BinanceWS, combined_stream_url
from tradedesk.market_data.backoff import ReconnectPolicy


class FakeApp:
    """
    Stand-in for websocket.WebSocketApp; run_forever() plays one scripted step:
      fail      -> error + close without a status code
      clean     -> open + close 1000
      drop      -> open + close 1006
      raise     -> run_forever raises
      ("msg", payload) -> open + message + close 1000
    """

    def __init__(self, script, url, on_open, on_message, on_error, on_close):
        self.script = script
        self.url = url
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self.closed_with = None

    def run_forever(self, **kwargs):
        step = self.script.pop(0) if self.script else "fail"
        if step == "raise":
            raise OSError("network is unreachable")
        if step == "fail":
            self.on_error(self, ConnectionRefusedError("refused"))
            self.on_close(self, None, None)
            return
        self.on_open(self)
        if isinstance(step, tuple) and step[0] == "msg":
            self.on_message(self, json.dumps(step[1]))
            self.on_close(self, 1000, "bye")
        elif step == "clean":
            self.on_close(self, 1000, "bye")
        elif step == "drop":
            self.on_close(self, 1006, "abnormal")

    def close(self, status=None):
        self.closed_with = status


def _ws(script, *, max_attempts=3, on_message=None, unavailable=None):
    apps = []

    def factory(url, **callbacks):
        app = FakeApp(script, url, **callbacks)
        apps.append(app)
        return app

    ws = BinanceWS(
        url="wss://example.test/stream?streams=btcusdt@ticker",
        on_message=on_message or (lambda payload: None),
        on_unavailable=unavailable,
        policy=ReconnectPolicy(base_delay=0, max_delay=0, max_attempts=max_attempts),
        app_factory=factory,
    )
    return ws, apps


class TestReconnect:
    def test_gives_up_after_max_consecutive_unclean_closes(self):
        """N unclean closes in a row: N connections, then one terminal signal."""
        signals = []
        ws, apps = _ws(["fail"] * 10, max_attempts=3, unavailable=signals.append)
        ws.run()

        assert ws.connect_count == 3
        assert len(apps) == 3
        assert ws.gave_up
        assert len(signals) == 1
        assert isinstance(signals[0], FeedUnavailable)
        assert signals[0].attempts == 3

    def test_terminal_signal_only_once(self):
        signals = []
        ws, _ = _ws(["fail"] * 5, max_attempts=2, unavailable=signals.append)
        ws.run()
        ws._give_up()
        assert len(signals) == 1

    def test_clean_close_does_not_reconnect(self):
        ws, apps = _ws(["clean"])
        ws.run()
        assert ws.connect_count == 1
        assert not ws.gave_up

    def test_successful_open_resets_counter(self):
        ws, _ = _ws(["fail", "fail", "drop", "fail", "fail", "fail"], max_attempts=3)
        ws.run()
        # fail, fail, (open resets) drop, fail, fail -> gave up on the 5th connection
        assert ws.connect_count == 5
        assert ws.gave_up

    def test_run_forever_exception_counts_as_unclean(self):
        ws, _ = _ws(["raise", "clean"], max_attempts=3)
        ws.run()
        assert ws.connect_count == 2
        assert not ws.gave_up

    def test_stop_prevents_reconnect(self):
        ws, apps = _ws(["drop"] * 5, max_attempts=5)
        ws.stop()
        ws.run()
        assert ws.connect_count == 0
        assert apps == []

    def test_unavailable_hook_failure_is_contained(self):
        def bad_hook(err):
            raise RuntimeError("ui gone")

        ws, _ = _ws(["fail"] * 3, max_attempts=1, unavailable=bad_hook)
        ws.run()
        assert ws.gave_up


class TestMessages:
    def test_combined_payload_is_unwrapped(self):
        received = []
        payload = {"stream": "btcusdt@ticker", "data": {"s": "BTCUSDT", "c": "1"}}
        ws, _ = _ws([("msg", payload)], on_message=received.append)
        ws.run()
        assert received == [{"s": "BTCUSDT", "c": "1"}]

    def test_non_json_dropped(self):
        received = []
        ws, _ = _ws([], on_message=received.append)
        ws._handle("not json")
        assert received == []

    def test_handler_failure_is_contained(self):
        def boom(payload):
            raise ValueError("bad")

        ws, _ = _ws([], on_message=boom)
        ws._handle(json.dumps({"s": "BTCUSDT"}))


class TestPolicy:
    def test_exponential_capped(self):
        p = ReconnectPolicy(base_delay=5, max_delay=30, max_attempts=10)
        assert [p.next_delay() for _ in range(5)] == [5, 10, 20, 30, 30]

    def test_none_on_last_attempt(self):
        p = ReconnectPolicy(base_delay=1, max_delay=10, max_attempts=2)
        assert p.next_delay() == 1
        assert p.next_delay() is None
        assert p.exhausted

    def test_reset(self):
        p = ReconnectPolicy(base_delay=1, max_delay=10, max_attempts=2)
        p.next_delay()
        p.reset()
        assert p.failures == 0
        assert p.next_delay() == 1


def test_combined_stream_url():
    url = combined_stream_url(["btcusdt@ticker", "ethusdt@ticker"], base="wss://stream.binance.com:9443/")
    assert url == "wss://stream.binance.com:9443/stream?streams=btcusdt@ticker/ethusdt@ticker"
