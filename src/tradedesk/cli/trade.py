# src/tradedesk/cli/trade.py
from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from tradedesk.bootstrap import Services, build_services
from tradedesk.config import AppConfig, load_config, setup_logging
from tradedesk.core.accounts.service import PLANS, select_plan
from tradedesk.core.errors import PositionNotFound, TradeDeskError
from tradedesk.core.models.account import Account
from tradedesk.core.models.enums import OrderSide, OrderStatus, parse_enum
from tradedesk.data.positions_repository import PositionFilters
from tradedesk.exchanges.binance.markets import fetch_current_price
from tradedesk.exchanges.binance.rest import BinanceSpotREST
from tradedesk.market_data.formatting import format_percentage, format_price
from tradedesk.session.local_state import LocalState, mock_wallet_login

log = logging.getLogger("tradedesk.cli.trade")


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="tradedesk-trade", description="Demo trading from the command line")
    ap.add_argument("--config", default=None, help="path to tradedesk.yaml")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("login", help="mock wallet login (creates the demo account)")
    p.add_argument("--new", action="store_true", help="forget the current wallet first")
    p.add_argument("--email", default="")

    p = sub.add_parser("plan", help="select a pricing plan balance")
    p.add_argument("name", choices=[pl.name for pl in PLANS], type=str.capitalize)

    for side in ("buy", "sell"):
        p = sub.add_parser(side, help=f"{side} at market")
        p.add_argument("market")
        p.add_argument("amount", type=float)
        p.add_argument("--price", type=float, default=None, help="default: latest Binance price")
        p.add_argument("--leverage", type=float, default=None)
        p.add_argument("--margin-mode", choices=["isolated", "cross"], default=None)

    p = sub.add_parser("close", help="close or reduce a position")
    p.add_argument("position_id")
    p.add_argument("--price", type=float, default=None, help="default: latest Binance price")
    p.add_argument("--amount", type=float, default=None, help="default: whole position")

    p = sub.add_parser("positions", help="list positions")
    p.add_argument("--all", action="store_true", help="include closed positions")
    p.add_argument("--market", default=None)

    p = sub.add_parser("orders", help="list orders")
    p.add_argument("--status", choices=[s.value for s in OrderStatus], default=None)

    sub.add_parser("summary", help="balance and margin snapshot")
    return ap


# ------------------------------------------------------------
# helpers
# ------------------------------------------------------------

def _current_account(svc: Services, state: LocalState) -> Account:
    if not state.is_authenticated():
        raise SystemExit("not logged in, run: tradedesk-trade login")
    return svc.accounts.require(state.wallet_address())


def _price(cfg: AppConfig, market: str, explicit: Optional[float]) -> float:
    if explicit is not None:
        return explicit
    return fetch_current_price(BinanceSpotREST.from_config(cfg.market_data), market)


# ------------------------------------------------------------
# commands
# ------------------------------------------------------------

def cmd_login(args, cfg: AppConfig, svc: Services, state: LocalState) -> None:
    if args.new:
        state.logout()
    wallet = state.wallet_address() if state.is_authenticated() else mock_wallet_login(state)
    acc = svc.accounts.get_or_create(wallet, email=args.email)
    acc = svc.accounts.apply_pending_balance(state) or acc
    print(f"wallet={wallet} user={acc.username} balance={format_price(acc.balance)}")


def cmd_plan(args, cfg: AppConfig, svc: Services, state: LocalState) -> None:
    plan = select_plan(state, args.name)
    if state.is_authenticated():
        acc = svc.accounts.apply_pending_balance(state)
        print(f"plan {plan.name}: balance set to {format_price(acc.balance)}")
    else:
        print(f"plan {plan.name} ({format_price(plan.balance)}) applies on next login")


def cmd_trade(args, cfg: AppConfig, svc: Services, state: LocalState) -> None:
    acc = _current_account(svc, state)
    side = parse_enum(OrderSide, args.cmd, field="side")
    market = args.market.upper()
    order = svc.placement.place_order(
        acc.id,
        market,
        side,
        args.amount,
        _price(cfg, market, args.price),
        leverage=args.leverage,
        margin_mode=args.margin_mode,
    )
    print(f"{order!r}")


def cmd_close(args, cfg: AppConfig, svc: Services, state: LocalState) -> None:
    acc = _current_account(svc, state)
    pos = svc.positions_repo.get(args.position_id)
    if pos is None or pos.account_id != acc.id:
        raise PositionNotFound(args.position_id)
    closed = svc.placement.close_position(pos.id, _price(cfg, pos.market, args.price), args.amount)
    state_txt = "closed" if not closed.is_open else f"reduced to {closed.amount:g}"
    print(f"{closed.id} {closed.market} {state_txt} pnl={closed.pnl:.2f}")


def cmd_positions(args, cfg: AppConfig, svc: Services, state: LocalState) -> None:
    acc = _current_account(svc, state)
    filters = PositionFilters(market=args.market.upper() if args.market else None,
                              is_open=None if args.all else True)
    rows = svc.placement.positions_for(acc.id, filters)
    if not rows:
        print("no positions")
        return
    for p in rows:
        print(
            f"{p.id}  {p.market:<12} {p.side.value:<5} size={p.size:g} "
            f"entry={format_price(p.entry_price)} mark={format_price(p.current_price)} "
            f"lev={p.leverage:g}x liq={format_price(p.liquidation_price)} "
            f"pnl={p.pnl:.2f} ({format_percentage(p.pnl_percent)})"
            + ("" if p.is_open else "  [closed]")
        )


def cmd_orders(args, cfg: AppConfig, svc: Services, state: LocalState) -> None:
    acc = _current_account(svc, state)
    status = OrderStatus(args.status) if args.status else None
    rows = svc.placement.orders_for(acc.id, status=status)
    if not rows:
        print("no orders")
        return
    for o in rows:
        print(
            f"{o.created_at:%Y-%m-%d %H:%M:%S}  {o.market:<12} {o.side.value:<4} "
            f"{o.amount:g} @ {format_price(o.entry_price)}  {o.status.value}"
        )


def cmd_summary(args, cfg: AppConfig, svc: Services, state: LocalState) -> None:
    acc = _current_account(svc, state)
    s = svc.placement.summary(acc.id)
    print(f"balance          {format_price(acc.balance)}")
    print(f"realized pnl     {acc.pnl:.2f}")
    print(f"unrealized pnl   {s.unrealized_pnl:.2f}")
    print(f"equity           {format_price(s.equity)}")
    print(f"used margin      {format_price(s.used_margin)}")
    print(f"available margin {format_price(s.available_margin)}")
    print(f"buying power     {format_price(s.buying_power)}")


COMMANDS = {
    "login": cmd_login,
    "plan": cmd_plan,
    "buy": cmd_trade,
    "sell": cmd_trade,
    "close": cmd_close,
    "positions": cmd_positions,
    "orders": cmd_orders,
    "summary": cmd_summary,
}


def main(argv: Optional[list[str]] = None, *, services: Optional[Services] = None) -> int:
    args = _build_parser().parse_args(argv)
    cfg = load_config(args.config)
    setup_logging(cfg.log_level)

    svc = services or build_services(cfg)
    state = LocalState(cfg.session_path)

    try:
        COMMANDS[args.cmd](args, cfg, svc, state)
    except TradeDeskError as e:
        log.error("[TRADE] %s: %s", type(e).__name__, e)
        print(f"error: {e}", file=sys.stderr)
        return 1
    except RuntimeError as e:
        # Binance REST failures
        log.error("[TRADE] %s", e)
        print(f"error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
