# src/tradedesk/core/models/order.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any
from uuid import uuid4

from tradedesk.core.models.account import _f, utc_now
from tradedesk.core.models.enums import OrderSide, OrderStatus, OrderType


@dataclass(frozen=True, slots=True)
class Order:
    """
    Simulated order.

    Orders are filled immediately at entry_price; after that only status
    transitions are allowed (filled -> cancelled is never produced here).
    Orders do not reference the position they open.
    """

    # --- identity ---
    account_id: str
    market: str
    side: OrderSide

    # --- execution ---
    amount: float
    entry_price: float
    order_type: OrderType = OrderType.MARKET
    status: OrderStatus = OrderStatus.FILLED

    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utc_now)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @property
    def total_cost(self) -> float:
        return float(self.amount) * float(self.entry_price)

    def is_buy(self) -> bool:
        return self.side == OrderSide.BUY

    def with_status(self, status: OrderStatus) -> "Order":
        return replace(self, status=status)

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "market": self.market,
            "side": self.side.value,
            "amount": float(self.amount),
            "entry_price": float(self.entry_price),
            "order_type": self.order_type.value,
            "status": self.status.value,
            "created_at": self.created_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Order":
        return cls(
            id=str(row["id"]),
            account_id=str(row["account_id"]),
            market=str(row.get("market") or ""),
            side=OrderSide(str(row.get("side"))),
            amount=_f(row.get("amount")),
            entry_price=_f(row.get("entry_price")),
            order_type=OrderType(str(row.get("order_type") or "market")),
            status=OrderStatus(str(row.get("status") or "filled")),
            created_at=row.get("created_at") or utc_now(),
        )

    def __repr__(self) -> str:
        return (
            f"Order({self.market} {self.side.value} "
            f"amount={self.amount} price={self.entry_price} "
            f"type={self.order_type.value} status={self.status.value} id={self.id})"
        )
