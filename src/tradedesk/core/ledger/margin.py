# src/tradedesk/core/ledger/margin.py
from __future__ import annotations

from typing import Iterable

from tradedesk.core.models.position import MarginSnapshot, Position

MAX_LEVERAGE = 50.0
MAINTENANCE_MARGIN_RATE = 0.005   # 0.5%
INITIAL_MARGIN_RATE = 0.01        # 1%


# ---------------------------------------------------------------------
# PnL
# ---------------------------------------------------------------------

def calc_pnl(amount: float, entry_price: float, current_price: float) -> float:
    """
    long  (amount >= 0): (current - entry) * amount
    short (amount <  0): (entry - current) * |amount|
    """
    if amount >= 0:
        return (current_price - entry_price) * amount
    return (entry_price - current_price) * abs(amount)


def calc_pnl_percent(amount: float, entry_price: float, current_price: float) -> float:
    if entry_price <= 0:
        return 0.0
    if amount >= 0:
        return (current_price - entry_price) / entry_price * 100.0
    return (entry_price - current_price) / entry_price * 100.0


# ---------------------------------------------------------------------
# Liquidation
# ---------------------------------------------------------------------

def calc_liquidation_price(
    amount: float,
    entry_price: float,
    collateral: float,
    *,
    maintenance_margin_rate: float = MAINTENANCE_MARGIN_RATE,
) -> float:
    """
    Price at which losses consume collateral down to maintenance margin.

      position_value = |amount| * entry
      mm             = position_value * maintenance_margin_rate
      long:  entry * (1 - (collateral - mm) / position_value)
      short: entry * (1 + (collateral - mm) / position_value)

    Returns 0.0 for an empty position (no exposure, nothing to liquidate).
    """
    position_value = abs(amount) * entry_price
    if position_value <= 0:
        return 0.0
    maintenance_margin = position_value * maintenance_margin_rate
    cushion = (collateral - maintenance_margin) / position_value
    if amount > 0:
        return entry_price * (1.0 - cushion)
    return entry_price * (1.0 + cushion)


def is_liquidatable(position: Position, *, maintenance_margin_rate: float = MAINTENANCE_MARGIN_RATE) -> bool:
    maintenance_margin = abs(position.amount) * position.current_price * maintenance_margin_rate
    return position.collateral <= maintenance_margin


# ---------------------------------------------------------------------
# Account aggregation
# ---------------------------------------------------------------------

def account_summary(balance: float, positions: Iterable[Position], max_leverage: float) -> MarginSnapshot:
    unrealized = 0.0
    used = 0.0
    for p in positions:
        if not p.is_open:
            continue
        unrealized += float(p.pnl)
        used += float(p.collateral)

    equity = float(balance) + unrealized
    available = equity - used
    return MarginSnapshot(
        equity=equity,
        used_margin=used,
        available_margin=available,
        buying_power=available * float(max_leverage),
        unrealized_pnl=unrealized,
    )
