import pytest

from tradedesk.core.errors import ValidationError
from tradedesk.core.models.market import Candle
from tradedesk.exchanges.binance.normalize import norm_kline_event
from tradedesk.market_data.candles import TIMEFRAMES, CandleSeries, timeframe_limit


def _c(t, close=1.0):
    return Candle(time=t, open=1.0, high=2.0, low=0.5, close=close, volume=10.0)


class FakeRest:
    def __init__(self, rows):
        self.rows = rows
        self.calls = []

    def klines(self, symbol, *, interval, limit=500):
        self.calls.append((symbol, interval, limit))
        return self.rows


class TestTimeframes:
    def test_limits(self):
        assert TIMEFRAMES["1m"] == 1000
        assert TIMEFRAMES["1h"] == 1000
        assert TIMEFRAMES["6h"] == 500
        assert TIMEFRAMES["1d"] == 500
        assert TIMEFRAMES["1M"] == 200

    def test_unknown(self):
        with pytest.raises(ValidationError):
            timeframe_limit("2h")


class TestSeries:
    def test_load_uses_timeframe_limit(self):
        rest = FakeRest([[60_000, "1", "2", "0.5", "1.5", "3", 119_999], ["bad"]])
        series = CandleSeries.load(rest, "btcusdt", "1d")
        assert rest.calls == [("BTCUSDT", "1d", 500)]
        assert len(series) == 1
        assert series.last().time == 60
        assert series.last().close == 1.5

    def test_closed_candle_replaces_same_time(self):
        s = CandleSeries("BTCUSDT", "1m")
        s.extend([_c(60), _c(120)])
        s.apply(_c(120, close=9.0), True)
        assert len(s) == 2
        assert s.last().close == 9.0

    def test_closed_candle_appended(self):
        s = CandleSeries("BTCUSDT", "1m")
        s.extend([_c(60)])
        s.apply(_c(120), True)
        assert [c.time for c in s.candles] == [60, 120]

    def test_forming_candle_only_sets_current(self):
        s = CandleSeries("BTCUSDT", "1m")
        s.extend([_c(60)])
        s.apply(_c(120, close=3.0), False)
        assert len(s) == 1
        assert s.current.close == 3.0

    def test_closing_clears_current(self):
        s = CandleSeries("BTCUSDT", "1m")
        s.apply(_c(120), False)
        s.apply(_c(120), True)
        assert s.current is None

    def test_trimmed_to_limit(self):
        s = CandleSeries("BTCUSDT", "1m", limit=3)
        for t in (60, 120, 180, 240):
            s.apply(_c(t), True)
        assert [c.time for c in s.candles] == [120, 180, 240]

    def test_out_of_order_insert(self):
        s = CandleSeries("BTCUSDT", "1m")
        s.extend([_c(180), _c(60), _c(120)])
        assert [c.time for c in s.candles] == [60, 120, 180]


class TestKlineEvent:
    def test_closed_flag(self):
        raw = {"e": "kline", "k": {"t": 120_000, "o": "1", "h": "2", "l": "0.5", "c": "1.5", "v": "7", "x": True}}
        candle, closed = norm_kline_event(raw)
        assert closed is True
        assert candle.time == 120
        assert candle.volume == 7.0

    def test_missing_kline(self):
        assert norm_kline_event({"e": "kline"}) is None
