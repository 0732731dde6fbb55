# src/tradedesk/core/ledger/ledger.py
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Iterable, Optional

from tradedesk.core.errors import InsufficientMargin, LeverageExceeded, ValidationError
from tradedesk.core.ledger import margin
from tradedesk.core.models.account import utc_now
from tradedesk.core.models.enums import MarginMode, parse_enum
from tradedesk.core.models.position import MarginSnapshot, Position


class PositionLedger:
    """
    Position & Margin Ledger.

    Every operation is a pure function of its arguments: it returns a new
    Position (or MarginSnapshot) and never touches storage. Derived fields are
    fully overwritten on each call, so redundant calls from several tick
    sources (WS, REST poll, manual refresh) never double-count.

    State machine per position:
      OPEN -> (partial reduce) -> OPEN -> (full close) -> CLOSED
    A closed position is never re-opened.
    """

    def __init__(
        self,
        *,
        max_leverage: float = margin.MAX_LEVERAGE,
        maintenance_margin_rate: float = margin.MAINTENANCE_MARGIN_RATE,
        initial_margin_rate: float = margin.INITIAL_MARGIN_RATE,
        logger: logging.Logger | None = None,
    ) -> None:
        self.max_leverage = float(max_leverage)
        self.maintenance_margin_rate = float(maintenance_margin_rate)
        self.initial_margin_rate = float(initial_margin_rate)
        self.logger = logger or logging.getLogger("tradedesk.ledger")

    @classmethod
    def from_config(cls, cfg) -> "PositionLedger":
        return cls(
            max_leverage=float(cfg.max_leverage),
            maintenance_margin_rate=float(cfg.maintenance_margin_rate),
            initial_margin_rate=float(cfg.initial_margin_rate),
        )

    # ------------------------------------------------------------
    # liquidation price (margin-mode dispatch)
    # ------------------------------------------------------------
    def liquidation_price(
        self,
        *,
        amount: float,
        entry_price: float,
        collateral: float,
        margin_mode: MarginMode,
    ) -> float:
        if margin_mode == MarginMode.CROSS:
            return self.cross_liquidation_price(
                amount=amount, entry_price=entry_price, collateral=collateral
            )
        return margin.calc_liquidation_price(
            amount, entry_price, collateral, maintenance_margin_rate=self.maintenance_margin_rate
        )

    def cross_liquidation_price(self, *, amount: float, entry_price: float, collateral: float) -> float:
        """
        Extension point for a cross-margin formula.

        Cross margin should draw on total account equity rather than this
        position's collateral alone. Until that formula is agreed on, cross
        positions use the isolated expression unchanged.
        """
        return margin.calc_liquidation_price(
            amount, entry_price, collateral, maintenance_margin_rate=self.maintenance_margin_rate
        )

    def check_initial_margin(self, *, amount: float, entry_price: float, collateral: float) -> None:
        """Collateral must cover at least initial_margin_rate of the notional."""
        required = abs(float(amount)) * float(entry_price) * self.initial_margin_rate
        if float(collateral) < required:
            raise InsufficientMargin(required, float(collateral))

    # ------------------------------------------------------------
    # operations
    # ------------------------------------------------------------
    def open(
        self,
        account_id: str,
        market: str,
        amount: float,
        entry_price: float,
        collateral: float,
        leverage: float,
        margin_mode: MarginMode | str = MarginMode.CROSS,
    ) -> Position:
        amount = float(amount)
        entry_price = float(entry_price)
        collateral = float(collateral)
        leverage = float(leverage)
        mode = parse_enum(MarginMode, margin_mode, field="margin_mode")

        if leverage > self.max_leverage:
            raise LeverageExceeded(leverage, self.max_leverage)
        if leverage <= 0:
            raise ValidationError(f"leverage must be positive (got {leverage})")
        if amount == 0:
            raise ValidationError("amount must be non-zero")
        if entry_price <= 0:
            raise ValidationError(f"entry_price must be positive (got {entry_price})")
        if collateral < 0:
            raise ValidationError(f"collateral must be >= 0 (got {collateral})")
        if not market:
            raise ValidationError("market is required")
        self.check_initial_margin(amount=amount, entry_price=entry_price, collateral=collateral)

        liq = self.liquidation_price(
            amount=amount, entry_price=entry_price, collateral=collateral, margin_mode=mode
        )
        pos = Position(
            account_id=str(account_id),
            market=str(market).upper(),
            amount=amount,
            entry_price=entry_price,
            current_price=entry_price,
            collateral=collateral,
            leverage=leverage,
            margin_mode=mode,
            liquidation_price=liq,
            pnl=0.0,
            pnl_percent=0.0,
            is_open=True,
        )
        self.logger.info(
            "[LEDGER] open %s amount=%s entry=%s collateral=%.4f lev=%sx mode=%s liq=%.8f",
            pos.market, amount, entry_price, collateral, leverage, mode.value, liq,
        )
        return pos

    def mark_to_market(self, position: Position, current_price: float) -> Position:
        """
        Recomputes pnl, pnl_percent and liquidation_price at current_price.
        amount / entry_price / collateral / leverage stay unchanged.
        """
        px = float(current_price)
        pnl = margin.calc_pnl(position.amount, position.entry_price, px)
        pnl_pct = margin.calc_pnl_percent(position.amount, position.entry_price, px)
        liq = self.liquidation_price(
            amount=position.amount,
            entry_price=position.entry_price,
            collateral=position.collateral,
            margin_mode=position.margin_mode,
        )
        return replace(
            position,
            current_price=px,
            pnl=pnl,
            pnl_percent=pnl_pct,
            liquidation_price=liq,
            updated_at=utc_now(),
        )

    def reduce(self, position: Position, close_amount: float) -> Position:
        close_amount = float(close_amount)
        if not position.is_open:
            raise ValidationError(f"position {position.id} is already closed")
        if close_amount <= 0:
            raise ValidationError(f"close_amount must be positive (got {close_amount})")

        if close_amount >= abs(position.amount):
            # freeze current price / pnl at close-time values
            closed = self.mark_to_market(position, position.current_price)
            self.logger.info(
                "[LEDGER] close %s id=%s pnl=%.4f @ %s",
                position.market, position.id, closed.pnl, closed.current_price,
            )
            return replace(closed, is_open=False)

        new_amount = position.amount - close_amount if position.amount > 0 else position.amount + close_amount
        reduced = self.mark_to_market(replace(position, amount=new_amount), position.current_price)
        self.logger.info(
            "[LEDGER] reduce %s id=%s amount %s -> %s",
            position.market, position.id, position.amount, new_amount,
        )
        return reduced

    def account_summary(
        self,
        balance: float,
        open_positions: Iterable[Position],
        max_leverage: Optional[float] = None,
    ) -> MarginSnapshot:
        lev = self.max_leverage if max_leverage is None else float(max_leverage)
        return margin.account_summary(balance, open_positions, lev)

    def is_liquidatable(self, position: Position) -> bool:
        return margin.is_liquidatable(position, maintenance_margin_rate=self.maintenance_margin_rate)
