# src/tradedesk/core/orders/placement.py
from __future__ import annotations

import logging
from typing import Optional

from tradedesk.core.errors import (
    AccountNotFound,
    InsufficientBalance,
    InsufficientMargin,
    LeverageExceeded,
    PositionNotFound,
    ValidationError,
)
from tradedesk.core.events import BalanceUpdated, EventBus, OrderUpdated, PositionUpdated, Topic
from tradedesk.core.ledger import PositionLedger
from tradedesk.core.models.account import Account
from tradedesk.core.models.enums import MarginMode, OrderSide, OrderStatus, OrderType, parse_enum
from tradedesk.core.models.order import Order
from tradedesk.core.models.position import Position
from tradedesk.data.accounts_repository import AccountsRepository
from tradedesk.data.orders_repository import OrdersRepository
from tradedesk.data.positions_repository import PositionFilters, PositionsRepository


class OrderPlacementService:
    """
    Order Placement Flow.

      validate -> resolve account -> balance/margin check (ledger snapshot)
      -> persist order (filled) -> debit/credit balance
      -> (Buy) ledger.open + persist position -> publish updates

    Not transactional: when a step after the order write fails, the order is
    deleted and the prior balance restored on a best-effort basis, and the
    original error is re-raised. A crash in between can leave balance and
    orders inconsistent.
    """

    def __init__(
        self,
        *,
        accounts: AccountsRepository,
        orders: OrdersRepository,
        positions: PositionsRepository,
        ledger: PositionLedger,
        bus: Optional[EventBus] = None,
        default_leverage: float = 5.0,
        default_margin_mode: MarginMode | str = MarginMode.CROSS,
        logger: logging.Logger | None = None,
    ) -> None:
        self.accounts = accounts
        self.orders = orders
        self.positions = positions
        self.ledger = ledger
        self.bus = bus
        self.default_leverage = float(default_leverage)
        self.default_margin_mode = parse_enum(MarginMode, default_margin_mode, field="margin_mode")
        self.logger = logger or logging.getLogger("tradedesk.orders")

    # ------------------------------------------------------------
    # queries
    # ------------------------------------------------------------
    def get_account(self, account_id: str) -> Account:
        acc = self.accounts.get(account_id)
        if acc is None:
            raise AccountNotFound(account_id)
        return acc

    def orders_for(self, account_id: str, status: Optional[OrderStatus] = None) -> list[Order]:
        return self.orders.for_account(account_id, status=status)

    def positions_for(self, account_id: str, filters: Optional[PositionFilters] = None) -> list[Position]:
        return self.positions.for_account(account_id, filters)

    def summary(self, account_id: str):
        acc = self.get_account(account_id)
        return self.ledger.account_summary(acc.balance, self.positions.open_for_account(account_id))

    # ------------------------------------------------------------
    # place
    # ------------------------------------------------------------
    def place_order(
        self,
        account_id: str,
        market: str,
        side: OrderSide | str,
        amount: float,
        price: float,
        order_type: OrderType | str = OrderType.MARKET,
        *,
        leverage: Optional[float] = None,
        margin_mode: MarginMode | str | None = None,
    ) -> Order:
        side = parse_enum(OrderSide, side, field="side")
        order_type = parse_enum(OrderType, order_type, field="order_type")
        mode = parse_enum(MarginMode, margin_mode, field="margin_mode") if margin_mode else self.default_margin_mode
        lev = self.default_leverage if leverage is None else float(leverage)
        amount = float(amount)
        price = float(price)
        market = str(market or "").upper()

        if not market:
            raise ValidationError("market is required")
        if amount <= 0:
            raise ValidationError(f"amount must be positive (got {amount})")
        if price <= 0:
            raise ValidationError(f"price must be positive (got {price})")
        if lev <= 0:
            raise ValidationError(f"leverage must be positive (got {lev})")
        if side == OrderSide.BUY and lev > self.ledger.max_leverage:
            # must fail before the order write, ledger.open would refuse it later
            raise LeverageExceeded(lev, self.ledger.max_leverage)

        acc = self.get_account(account_id)
        total_cost = amount * price

        if side == OrderSide.BUY:
            if total_cost > acc.balance:
                raise InsufficientBalance(total_cost, acc.balance)
            snap = self.ledger.account_summary(acc.balance, self.positions.open_for_account(acc.id))
            if total_cost > snap.available_margin:
                raise InsufficientMargin(total_cost, snap.available_margin)
            self.ledger.check_initial_margin(amount=amount, entry_price=price, collateral=total_cost / lev)

        order = self.orders.insert(
            Order(
                account_id=acc.id,
                market=market,
                side=side,
                amount=amount,
                entry_price=price,
                order_type=order_type,
                status=OrderStatus.FILLED,
            )
        )
        self.logger.info("[ORDER] placed %r", order)

        new_balance = acc.balance - total_cost if side == OrderSide.BUY else acc.balance + total_cost
        position: Optional[Position] = None
        try:
            self.accounts.update_balance(acc.id, new_balance)
            if side == OrderSide.BUY:
                position = self.ledger.open(acc.id, market, amount, price, total_cost / lev, lev, mode)
                position = self.positions.insert(position)
        except Exception:
            self.logger.exception("[ORDER] post-fill step failed, compensating order=%s", order.id)
            self._compensate(order=order, account=acc)
            raise

        self._publish_order(acc.id, order.id, new_balance, acc.pnl, position)
        return order

    # ------------------------------------------------------------
    # close
    # ------------------------------------------------------------
    def close_position(
        self,
        position_id: str,
        close_price: float,
        close_amount: Optional[float] = None,
    ) -> Position:
        """
        Closes (or reduces) a position at close_price.

        Records the opposite-side filled order, returns qty * entry + realized
        PnL to the balance and adds the realized PnL to account.pnl.
        """
        close_price = float(close_price)
        if close_price <= 0:
            raise ValidationError(f"close_price must be positive (got {close_price})")

        pos = self.positions.get(position_id)
        if pos is None:
            raise PositionNotFound(position_id)
        if not pos.is_open:
            raise ValidationError(f"position {position_id} is already closed")

        qty = abs(pos.amount) if close_amount is None else min(float(close_amount), abs(pos.amount))
        if qty <= 0:
            raise ValidationError(f"close_amount must be positive (got {close_amount})")

        acc = self.get_account(pos.account_id)
        marked = self.ledger.mark_to_market(pos, close_price)
        realized = marked.pnl * (qty / abs(pos.amount))
        after = self.ledger.reduce(marked, qty)

        order = self.orders.insert(
            Order(
                account_id=acc.id,
                market=pos.market,
                side=OrderSide.SELL if pos.amount > 0 else OrderSide.BUY,
                amount=qty,
                entry_price=close_price,
                order_type=OrderType.MARKET,
                status=OrderStatus.FILLED,
            )
        )

        new_balance = acc.balance + qty * pos.entry_price + realized
        new_pnl = acc.pnl + realized
        try:
            self.accounts.update_balance(acc.id, new_balance, new_pnl)
            after = self.positions.save(after)
        except Exception:
            self.logger.exception("[ORDER] close failed, compensating position=%s", pos.id)
            self._compensate(order=order, account=acc)
            raise

        self.logger.info(
            "[ORDER] close %s id=%s qty=%s @ %s realized=%.4f open=%s",
            pos.market, pos.id, qty, close_price, realized, after.is_open,
        )
        self._publish_order(acc.id, order.id, new_balance, new_pnl, after)
        return after

    # ------------------------------------------------------------
    # internals
    # ------------------------------------------------------------
    def _compensate(self, *, order: Order, account: Account) -> None:
        try:
            self.orders.delete(order.id)
        except Exception:
            self.logger.exception("[ORDER] compensation: delete order %s failed", order.id)
        try:
            self.accounts.update_balance(account.id, account.balance, account.pnl)
        except Exception:
            self.logger.exception("[ORDER] compensation: restore balance %s failed", account.id)

    def _publish_order(
        self,
        account_id: str,
        order_id: str,
        balance: float,
        pnl: float,
        position: Optional[Position],
    ) -> None:
        if self.bus is None:
            return
        self.bus.publish(Topic.ORDER_UPDATE, OrderUpdated(account_id, order_id))
        self.bus.publish(Topic.BALANCE_UPDATE, BalanceUpdated(account_id, balance, pnl))
        if position is not None:
            self.bus.publish(Topic.POSITION_UPDATE, PositionUpdated(account_id, position.id))
