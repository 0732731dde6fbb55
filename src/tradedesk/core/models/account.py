# src/tradedesk/core/models/account.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _f(x: Any, default: float = 0.0) -> float:
    # NUMERIC columns come back as Decimal or str depending on the backend
    try:
        return float(x)
    except (TypeError, ValueError):
        return float(default)


@dataclass(frozen=True, slots=True)
class Account:
    """
    Demo trading account, owned by the persistence backend.

    balance is cash available for new orders, pnl is cumulative realized PnL.
    """

    wallet_address: str
    balance: float = 0.0
    pnl: float = 0.0
    tier: str = "basic"
    stage: str = "demo"
    username: str = ""
    email: str = ""
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def with_balance(self, balance: float, pnl: Optional[float] = None) -> "Account":
        return replace(
            self,
            balance=float(balance),
            pnl=float(self.pnl if pnl is None else pnl),
            updated_at=utc_now(),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "wallet_address": self.wallet_address,
            "email": self.email,
            "username": self.username,
            "tier": self.tier,
            "stage": self.stage,
            "balance": float(self.balance),
            "pnl": float(self.pnl),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Account":
        return cls(
            id=str(row["id"]),
            wallet_address=str(row.get("wallet_address") or ""),
            email=str(row.get("email") or ""),
            username=str(row.get("username") or ""),
            tier=str(row.get("tier") or "basic"),
            stage=str(row.get("stage") or "demo"),
            balance=_f(row.get("balance")),
            pnl=_f(row.get("pnl")),
            created_at=row.get("created_at") or utc_now(),
            updated_at=row.get("updated_at") or utc_now(),
        )
