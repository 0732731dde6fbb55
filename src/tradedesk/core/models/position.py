from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from tradedesk.core.models.account import _f, utc_now
from tradedesk.core.models.enums import MarginMode, PositionSide


@dataclass(frozen=True, slots=True)
class Position:
    account_id: str
    market: str

    # signed: +LONG / -SHORT
    amount: float
    entry_price: float
    current_price: float

    collateral: float
    leverage: float
    margin_mode: MarginMode = MarginMode.CROSS

    # derived (overwritten on every mark-to-market)
    liquidation_price: float = 0.0
    pnl: float = 0.0
    pnl_percent: float = 0.0

    is_open: bool = True

    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @property
    def side(self) -> PositionSide:
        if self.amount > 0:
            return PositionSide.LONG
        if self.amount < 0:
            return PositionSide.SHORT
        return PositionSide.FLAT

    @property
    def is_long(self) -> bool:
        return self.amount >= 0

    @property
    def size(self) -> float:
        return abs(self.amount)

    @property
    def notional(self) -> float:
        return abs(self.amount) * self.current_price

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "market": self.market,
            "amount": float(self.amount),
            "entry_price": float(self.entry_price),
            "current_price": float(self.current_price),
            "collateral": float(self.collateral),
            "leverage": float(self.leverage),
            "margin_mode": self.margin_mode.value,
            "liquidation_price": float(self.liquidation_price),
            "pnl": float(self.pnl),
            "pnl_percent": float(self.pnl_percent),
            "is_open": bool(self.is_open),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Position":
        entry = _f(row.get("entry_price"))
        return cls(
            id=str(row["id"]),
            account_id=str(row["account_id"]),
            market=str(row.get("market") or ""),
            amount=_f(row.get("amount")),
            entry_price=entry,
            current_price=_f(row.get("current_price"), entry),
            collateral=_f(row.get("collateral")),
            leverage=_f(row.get("leverage"), 1.0) or 1.0,
            margin_mode=MarginMode(str(row.get("margin_mode") or "cross")),
            liquidation_price=_f(row.get("liquidation_price")),
            pnl=_f(row.get("pnl")),
            pnl_percent=_f(row.get("pnl_percent")),
            is_open=bool(row.get("is_open", True)),
            created_at=row.get("created_at") or utc_now(),
            updated_at=row.get("updated_at") or utc_now(),
        )


@dataclass(frozen=True, slots=True)
class MarginSnapshot:
    """Account metrics derived from balance + open positions. Never persisted."""

    equity: float
    used_margin: float
    available_margin: float
    buying_power: float
    unrealized_pnl: float
