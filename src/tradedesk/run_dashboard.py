# src/tradedesk/run_dashboard.py
from __future__ import annotations

import argparse
import logging
import signal
import threading
from typing import Optional

from tradedesk.bootstrap import build_services
from tradedesk.config import load_config, setup_logging
from tradedesk.core.errors import TradeDeskError
from tradedesk.core.models.account import Account
from tradedesk.core.position import PositionBook
from tradedesk.exchanges.binance.markets import fetch_current_price, fetch_top_tokens
from tradedesk.exchanges.binance.rest import BinanceSpotREST
from tradedesk.market_data.feed import MarketDataFeed
from tradedesk.market_data.formatting import format_price
from tradedesk.market_state.poller import PositionsRefresher
from tradedesk.session.local_state import LocalState, mock_wallet_login

log = logging.getLogger("tradedesk.run_dashboard")


def _log_summary(book: PositionBook, account: Optional[Account]) -> None:
    if account is None:
        return
    s = book.summary(account.balance)
    log.info(
        "[SUMMARY] balance=%s equity=%s used=%s available=%s upnl=%.2f positions=%d",
        format_price(account.balance), format_price(s.equity), format_price(s.used_margin),
        format_price(s.available_margin), s.unrealized_pnl, len(book.snapshot()),
    )
    for p in book.liquidatable():
        log.warning("[SUMMARY] %s %s below maintenance margin, liq=%s mark=%s",
                    p.market, p.side.value, format_price(p.liquidation_price), format_price(p.current_price))


def main(argv: Optional[list[str]] = None) -> None:
    ap = argparse.ArgumentParser(prog="tradedesk-dashboard")
    ap.add_argument("--config", default=None)
    ap.add_argument("--symbols", default=None, help="comma separated, default: top tokens")
    args = ap.parse_args(argv)

    cfg = load_config(args.config)
    setup_logging(cfg.log_level)

    log.info("=== RUN DASHBOARD START ===")
    log.info("Config: %s", cfg.source_path or "<defaults>")

    svc = build_services(cfg)
    rest = BinanceSpotREST.from_config(cfg.market_data)

    stop_event = threading.Event()

    def _sig_handler(signum, _frame):
        log.warning("Signal %s -> stopping...", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _sig_handler)
    signal.signal(signal.SIGTERM, _sig_handler)

    # --------------------------------------------------------
    # session / account
    # --------------------------------------------------------
    state = LocalState(cfg.session_path)
    wallet = state.wallet_address() if state.is_authenticated() else mock_wallet_login(state)
    account = svc.accounts.get_or_create(wallet)
    account = svc.accounts.apply_pending_balance(state) or account
    log.info("[BOOT] account %s balance=%s", account.username, format_price(account.balance))

    # --------------------------------------------------------
    # markets
    # --------------------------------------------------------
    if args.symbols:
        symbols = [s.strip().upper() for s in args.symbols.split(",") if s.strip()]
    else:
        try:
            symbols = [t.id for t in fetch_top_tokens(rest, cfg.market_data.top_tokens_limit)]
        except RuntimeError as e:
            log.error("[BOOT] token list unavailable: %s", e)
            symbols = []

    # --------------------------------------------------------
    # positions
    # --------------------------------------------------------
    book = PositionBook(account_id=account.id, ledger=svc.ledger, bus=svc.bus)
    book.replace_all(svc.positions_repo.open_for_account(account.id))
    symbols = list(dict.fromkeys(symbols + sorted(book.symbols())))

    feed = MarketDataFeed(svc.bus, cfg.market_data, rest=rest)
    if symbols:
        feed.subscribe(symbols, on_tick=book.apply_tick)
    else:
        log.warning("[BOOT] no symbols to stream")

    refresher = PositionsRefresher(
        account_id=account.id,
        positions=svc.positions_repo,
        accounts=svc.accounts_repo,
        ledger=svc.ledger,
        book=book,
        price_source=lambda sym: fetch_current_price(rest, sym),
        bus=svc.bus,
        poll_sec=cfg.polling.positions_refresh_sec,
        balance_sec=cfg.polling.balance_refresh_sec,
    )
    refresher.start()

    # --------------------------------------------------------
    # main loop
    # --------------------------------------------------------
    try:
        while not stop_event.wait(cfg.polling.summary_log_sec):
            try:
                _log_summary(book, refresher.account or account)
            except TradeDeskError as e:
                log.error("[SUMMARY] %s", e)
    except KeyboardInterrupt:
        log.warning("KeyboardInterrupt -> stopping...")
    finally:
        refresher.stop()
        feed.close()
        log.info("=== RUN DASHBOARD STOP ===")


if __name__ == "__main__":
    main()
