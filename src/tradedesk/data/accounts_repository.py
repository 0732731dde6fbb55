# src/tradedesk/data/accounts_repository.py
from typing import Optional

from tradedesk.core.models.account import Account, utc_now
from tradedesk.data.storage.base import Storage

TABLE = "accounts"


class AccountsRepository:
    def __init__(self, storage: Storage):
        self._storage = storage

    def insert(self, account: Account) -> Account:
        return Account.from_row(self._storage.insert(TABLE, account.to_row()))

    def get(self, account_id: str) -> Optional[Account]:
        row = self._storage.select_one(TABLE, {"id": str(account_id)})
        return Account.from_row(row) if row else None

    def get_by_wallet(self, wallet_address: str) -> Optional[Account]:
        row = self._storage.select_one(TABLE, {"wallet_address": str(wallet_address)})
        return Account.from_row(row) if row else None

    def update_balance(self, account_id: str, balance: float, pnl: Optional[float] = None) -> Optional[Account]:
        values = {"balance": float(balance), "updated_at": utc_now()}
        if pnl is not None:
            values["pnl"] = float(pnl)
        rows = self._storage.update(TABLE, {"id": str(account_id)}, values)
        return Account.from_row(rows[0]) if rows else None

    def update_fields(self, account_id: str, **values) -> Optional[Account]:
        values["updated_at"] = utc_now()
        rows = self._storage.update(TABLE, {"id": str(account_id)}, values)
        return Account.from_row(rows[0]) if rows else None
