import pytest

from tradedesk.core.errors import PersistenceError
from tradedesk.data.storage.base import split_filter
from tradedesk.data.storage.memory import MemoryStorage


@pytest.fixture
def store():
    s = MemoryStorage()
    for i, (market, pnl) in enumerate([("BTCUSDT", 5.0), ("ETHUSDT", -2.0), ("BTCUSDT", None)]):
        s.insert("positions", {"id": f"p{i}", "account_id": "a", "market": market, "pnl": pnl})
    return s


class TestFilters:
    def test_split_filter(self):
        assert split_filter(3) == ("=", 3)
        assert split_filter((">=", 3)) == (">=", 3)
        assert split_filter(("~", 3)) == ("=", ("~", 3))

    def test_equality(self, store):
        assert {r["id"] for r in store.select("positions", {"market": "BTCUSDT"})} == {"p0", "p2"}

    def test_operator_skips_nulls(self, store):
        assert [r["id"] for r in store.select("positions", {"pnl": (">", 0)})] == ["p0"]

    def test_order_and_limit(self, store):
        rows = store.select("positions", order_by="pnl", descending=False)
        assert [r["id"] for r in rows] == ["p1", "p0", "p2"]
        assert len(store.select("positions", limit=2)) == 2

    def test_incomparable_values(self, store):
        with pytest.raises(PersistenceError):
            store.select("positions", {"market": ("<", 5)})


class TestWrites:
    def test_rows_are_copies(self, store):
        row = store.select_one("positions", {"id": "p0"})
        row["market"] = "XRPUSDT"
        assert store.select_one("positions", {"id": "p0"})["market"] == "BTCUSDT"

    def test_duplicate_id(self, store):
        with pytest.raises(PersistenceError):
            store.insert("positions", {"id": "p0"})

    def test_missing_id(self, store):
        with pytest.raises(PersistenceError):
            store.insert("positions", {"market": "BTCUSDT"})

    def test_unique_wallet(self):
        s = MemoryStorage()
        s.insert("accounts", {"id": "a1", "wallet_address": "0xabc"})
        with pytest.raises(PersistenceError):
            s.insert("accounts", {"id": "a2", "wallet_address": "0xabc"})

    def test_update_returns_rows(self, store):
        rows = store.update("positions", {"market": "BTCUSDT"}, {"pnl": 1.0})
        assert {r["id"] for r in rows} == {"p0", "p2"}
        assert all(r["pnl"] == 1.0 for r in rows)

    def test_delete_count(self, store):
        assert store.delete("positions", {"market": "BTCUSDT"}) == 2
        assert store.delete("positions", {"market": "BTCUSDT"}) == 0

    def test_unknown_table(self, store):
        with pytest.raises(ValueError):
            store.select("trades")
