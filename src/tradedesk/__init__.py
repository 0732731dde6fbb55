"""
tradedesk: demo trading dashboard back-end.

Market data mirrored from the Binance public API, simulated orders persisted
in a hosted PostgreSQL backend, and a client-side Position & Margin Ledger.
"""

__version__ = "0.1.0"
