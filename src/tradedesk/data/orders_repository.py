# src/tradedesk/data/orders_repository.py
from typing import Optional

from tradedesk.core.models.enums import OrderStatus
from tradedesk.core.models.order import Order
from tradedesk.data.storage.base import Storage

TABLE = "orders"


class OrdersRepository:
    def __init__(self, storage: Storage):
        self._storage = storage

    def insert(self, order: Order) -> Order:
        return Order.from_row(self._storage.insert(TABLE, order.to_row()))

    def get(self, order_id: str) -> Optional[Order]:
        row = self._storage.select_one(TABLE, {"id": str(order_id)})
        return Order.from_row(row) if row else None

    def delete(self, order_id: str) -> int:
        return self._storage.delete(TABLE, {"id": str(order_id)})

    def for_account(self, account_id: str, *, status: Optional[OrderStatus] = None) -> list[Order]:
        filters = {"account_id": str(account_id)}
        if status is not None:
            filters["status"] = OrderStatus(status).value
        rows = self._storage.select(TABLE, filters, order_by="created_at", descending=True)
        return [Order.from_row(r) for r in rows]
