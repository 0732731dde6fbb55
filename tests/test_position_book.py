import pytest

from tradedesk.core.events import Topic
from tradedesk.core.models.market import PriceTick
from tradedesk.core.position import PositionBook
from tradedesk.market_state.poller import PositionsRefresher


@pytest.fixture
def book(ledger, bus, account):
    return PositionBook(account_id=account.id, ledger=ledger, bus=bus)


def _open(placement, positions_repo, account, market, amount=1.0, price=100.0):
    placement.place_order(account.id, market, "Buy", amount, price, leverage=5)
    return next(p for p in positions_repo.open_for_account(account.id) if p.market == market)


class TestPositionBook:
    def test_replace_all_keeps_own_open_positions(self, book, ledger, account):
        mine = ledger.open(account.id, "BTCUSDT", 1, 100, 20, 5)
        other = ledger.open("someone-else", "BTCUSDT", 1, 100, 20, 5)
        closed = ledger.reduce(ledger.open(account.id, "ETHUSDT", 1, 100, 20, 5), 1)
        book.replace_all([mine, other, closed])
        assert [p.id for p in book.snapshot()] == [mine.id]
        assert book.symbols() == {"BTCUSDT"}

    def test_tick_marks_matching_symbol_only(self, book, ledger, account, bus, recorder):
        btc = ledger.open(account.id, "BTCUSDT", 2, 100, 40, 5)
        eth = ledger.open(account.id, "ETHUSDT", 1, 100, 20, 5)
        book.replace_all([btc, eth])
        bus.subscribe(Topic.POSITION_UPDATE, recorder)

        updated = book.apply_tick(PriceTick("btcusdt", 110.0, 0.0))

        assert [p.id for p in updated] == [btc.id]
        assert book.get(btc.id).pnl == pytest.approx(20)
        assert book.get(eth.id).pnl == 0
        assert len(recorder.events) == 1

    def test_repeated_ticks_do_not_accumulate(self, book, ledger, account):
        pos = ledger.open(account.id, "BTCUSDT", 1, 100, 20, 5)
        book.replace_all([pos])
        for _ in range(3):
            book.apply_tick(PriceTick("BTCUSDT", 105.0, 0.0))
        assert book.get(pos.id).pnl == pytest.approx(5)

    def test_upsert_closed_removes(self, book, ledger, account):
        pos = ledger.open(account.id, "BTCUSDT", 1, 100, 20, 5)
        book.upsert(pos)
        book.upsert(ledger.reduce(pos, 1))
        assert book.snapshot() == []

    def test_summary(self, book, ledger, account):
        book.replace_all([ledger.mark_to_market(ledger.open(account.id, "BTCUSDT", 1, 100, 20, 5), 120)])
        s = book.summary(1000)
        assert s.unrealized_pnl == pytest.approx(20)
        assert s.used_margin == pytest.approx(20)


class TestPositionsRefresher:
    def test_refresh_marks_and_persists(self, placement, positions_repo, accounts_repo, ledger, book, account):
        pos = _open(placement, positions_repo, account, "BTCUSDT")
        calls = []

        def price(symbol):
            calls.append(symbol)
            return 150.0

        refresher = PositionsRefresher(
            account_id=account.id, positions=positions_repo, accounts=accounts_repo,
            ledger=ledger, book=book, price_source=price,
        )
        out = refresher.refresh_once()

        assert calls == ["BTCUSDT"]
        assert out[0].pnl == pytest.approx(50)
        assert positions_repo.get(pos.id).current_price == 150.0
        assert book.get(pos.id).pnl == pytest.approx(50)

    def test_one_price_lookup_per_symbol(self, placement, positions_repo, ledger, book, account):
        _open(placement, positions_repo, account, "BTCUSDT")
        _open(placement, positions_repo, account, "BTCUSDT", amount=2.0)
        calls = []
        refresher = PositionsRefresher(
            account_id=account.id, positions=positions_repo, ledger=ledger, book=book,
            price_source=lambda s: calls.append(s) or 120.0,
        )
        refresher.refresh_once()
        assert calls == ["BTCUSDT"]

    def test_failure_keeps_previous_position(self, placement, positions_repo, ledger, book, account):
        btc = _open(placement, positions_repo, account, "BTCUSDT")
        eth = _open(placement, positions_repo, account, "ETHUSDT")

        def price(symbol):
            if symbol == "ETHUSDT":
                raise RuntimeError("Binance HTTP 500")
            return 110.0

        refresher = PositionsRefresher(
            account_id=account.id, positions=positions_repo, ledger=ledger, book=book, price_source=price,
        )
        refresher.refresh_once()

        assert book.get(btc.id).pnl == pytest.approx(10)
        assert book.get(eth.id).current_price == eth.current_price
        assert positions_repo.get(eth.id).pnl == 0

    def test_close_during_refresh_is_not_reopened(self, placement, positions_repo, accounts_repo, ledger, book, account):
        """A close landing between the read and the write wins; the row stays closed."""
        pos = _open(placement, positions_repo, account, "BTCUSDT", price=1000.0)

        def price(symbol):
            placement.close_position(pos.id, 1100)
            return 1050.0

        refresher = PositionsRefresher(
            account_id=account.id, positions=positions_repo, ledger=ledger, book=book, price_source=price,
        )
        out = refresher.refresh_once()

        stored = positions_repo.get(pos.id)
        assert stored.is_open is False
        assert stored.current_price == 1100
        assert out == []
        assert book.get(pos.id) is None
        assert positions_repo.open_for_account(account.id) == []
        assert accounts_repo.get(account.id).balance == pytest.approx(10_000 + 100)

    def test_save_if_open_skips_closed_rows(self, positions_repo, ledger, account):
        pos = positions_repo.insert(ledger.open(account.id, "BTCUSDT", 1, 100, 20, 5))
        positions_repo.save(ledger.reduce(pos, 1))
        assert positions_repo.save_if_open(ledger.mark_to_market(pos, 120)) is None
        assert positions_repo.get(pos.id).is_open is False

    def test_balance_refresh_publishes(self, positions_repo, accounts_repo, ledger, book, account, bus, recorder):
        bus.subscribe(Topic.BALANCE_UPDATE, recorder)
        refresher = PositionsRefresher(
            account_id=account.id, positions=positions_repo, accounts=accounts_repo,
            ledger=ledger, book=book, price_source=lambda s: 1.0, bus=bus,
        )
        acc = refresher.refresh_balance()
        assert acc.id == account.id
        assert refresher.account == acc
        assert recorder.events[0].balance == account.balance

    def test_thread_stops(self, positions_repo, ledger, book, account):
        refresher = PositionsRefresher(
            account_id=account.id, positions=positions_repo, ledger=ledger, book=book,
            price_source=lambda s: 1.0, poll_sec=0.01,
        )
        refresher.start()
        refresher.stop()
        refresher.join(timeout=2)
        assert not refresher.is_alive()
