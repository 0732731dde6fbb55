# src/tradedesk/core/errors.py
from __future__ import annotations


class TradeDeskError(Exception):
    """Base class for every error raised by tradedesk."""


class ValidationError(TradeDeskError):
    """Bad input (amount, price, leverage, side...). Raised before any mutation."""


class LeverageExceeded(ValidationError):
    def __init__(self, leverage: float, max_leverage: float):
        super().__init__(f"Leverage cannot exceed {max_leverage:g}x (got {leverage:g}x)")
        self.leverage = float(leverage)
        self.max_leverage = float(max_leverage)


class InsufficientBalance(TradeDeskError):
    def __init__(self, required: float, available: float):
        super().__init__(f"Insufficient balance: need {required:.2f}, have {available:.2f}")
        self.required = float(required)
        self.available = float(available)


class InsufficientMargin(TradeDeskError):
    def __init__(self, required: float, available: float):
        super().__init__(f"Insufficient margin: need {required:.2f}, have {available:.2f} available")
        self.required = float(required)
        self.available = float(available)


class AccountNotFound(TradeDeskError):
    def __init__(self, key: str):
        super().__init__(f"Account not found: {key}")
        self.key = key


class PositionNotFound(TradeDeskError):
    def __init__(self, position_id: str):
        super().__init__(f"Position not found: {position_id}")
        self.position_id = position_id


class FeedUnavailable(TradeDeskError):
    """Market data feed gave up after exhausting reconnect attempts."""

    def __init__(self, name: str, attempts: int):
        super().__init__(f"Connection lost ({name}) after {attempts} failed connection attempts. Please refresh.")
        self.name = name
        self.attempts = int(attempts)


class PersistenceError(TradeDeskError):
    """Opaque passthrough of a backend failure; the cause is chained."""
