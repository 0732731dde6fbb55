from .ledger import PositionLedger
from .margin import (
    MAINTENANCE_MARGIN_RATE,
    MAX_LEVERAGE,
    account_summary,
    calc_liquidation_price,
    calc_pnl,
    calc_pnl_percent,
    is_liquidatable,
)

__all__ = [
    "PositionLedger",
    "MAX_LEVERAGE",
    "MAINTENANCE_MARGIN_RATE",
    "account_summary",
    "calc_pnl",
    "calc_pnl_percent",
    "calc_liquidation_price",
    "is_liquidatable",
]
