# src/tradedesk/bootstrap.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from tradedesk.config import AppConfig
from tradedesk.core.accounts.service import AccountService
from tradedesk.core.events import EventBus
from tradedesk.core.ledger import PositionLedger
from tradedesk.core.orders.placement import OrderPlacementService
from tradedesk.data.accounts_repository import AccountsRepository
from tradedesk.data.orders_repository import OrdersRepository
from tradedesk.data.positions_repository import PositionsRepository
from tradedesk.data.storage.base import Storage
from tradedesk.data.storage.memory import MemoryStorage

log = logging.getLogger("tradedesk.bootstrap")


def build_storage(cfg: AppConfig) -> Storage:
    dsn = cfg.storage.pg_dsn
    if not dsn:
        log.warning("[BOOT] PG_DSN not set -> in-memory storage, nothing is persisted")
        return MemoryStorage()

    from tradedesk.data.storage.postgres.pool import create_pool
    from tradedesk.data.storage.postgres.storage import PostgreSQLStorage

    storage = PostgreSQLStorage(create_pool(dsn))
    log.info("[BOOT] PostgreSQL storage initialized")
    return storage


@dataclass
class Services:
    storage: Storage
    bus: EventBus
    ledger: PositionLedger
    accounts_repo: AccountsRepository
    orders_repo: OrdersRepository
    positions_repo: PositionsRepository
    accounts: AccountService
    placement: OrderPlacementService


def build_services(
    cfg: AppConfig,
    *,
    storage: Optional[Storage] = None,
    bus: Optional[EventBus] = None,
) -> Services:
    storage = storage if storage is not None else build_storage(cfg)
    bus = bus or EventBus()
    ledger = PositionLedger.from_config(cfg.ledger)

    accounts_repo = AccountsRepository(storage)
    orders_repo = OrdersRepository(storage)
    positions_repo = PositionsRepository(storage)

    return Services(
        storage=storage,
        bus=bus,
        ledger=ledger,
        accounts_repo=accounts_repo,
        orders_repo=orders_repo,
        positions_repo=positions_repo,
        accounts=AccountService(accounts_repo, demo_balance=cfg.accounts.demo_balance, bus=bus),
        placement=OrderPlacementService(
            accounts=accounts_repo,
            orders=orders_repo,
            positions=positions_repo,
            ledger=ledger,
            bus=bus,
            default_leverage=cfg.ledger.default_leverage,
            default_margin_mode=cfg.ledger.default_margin_mode,
        ),
    )
