from __future__ import annotations
from enum import Enum

from tradedesk.core.errors import ValidationError


class OrderSide(str, Enum):
    BUY = "Buy"
    SELL = "Sell"


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"


class OrderStatus(str, Enum):
    PENDING = "pending"
    FILLED = "filled"
    CANCELLED = "cancelled"


class MarginMode(str, Enum):
    ISOLATED = "isolated"
    CROSS = "cross"


class PositionSide(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"
    FLAT = "FLAT"


def parse_enum(enum_cls, value, *, field: str):
    """
    Accepts an enum member or its value (case-insensitive).
    Raises ValidationError with the field name otherwise.
    """
    if isinstance(value, enum_cls):
        return value
    s = str(value or "").strip()
    for member in enum_cls:
        if member.value.lower() == s.lower() or member.name.lower() == s.lower():
            return member
    allowed = ", ".join(m.value for m in enum_cls)
    raise ValidationError(f"invalid {field}={value!r} (allowed: {allowed})")
