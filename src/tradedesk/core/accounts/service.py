# src/tradedesk/core/accounts/service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from tradedesk.core.errors import AccountNotFound, PersistenceError, ValidationError
from tradedesk.core.events import BalanceUpdated, EventBus, Topic
from tradedesk.core.models.account import Account
from tradedesk.data.accounts_repository import AccountsRepository
from tradedesk.session.local_state import SELECTED_BALANCE_KEY, LocalState

DEMO_BALANCE = 10_000.0


@dataclass(frozen=True)
class Plan:
    name: str
    balance: float


PLANS: tuple[Plan, ...] = (
    Plan("Base", 5_000.0),
    Plan("Starter", 10_000.0),
    Plan("Skilled", 15_000.0),
    Plan("Intermediate", 25_000.0),
    Plan("Advanced", 50_000.0),
    Plan("Expert", 100_000.0),
)


def find_plan(name: str) -> Plan:
    for p in PLANS:
        if p.name.lower() == str(name).strip().lower():
            return p
    raise ValidationError(f"unknown plan {name!r} (allowed: {', '.join(p.name for p in PLANS)})")


def select_plan(state: LocalState, name: str) -> Plan:
    """Stores the plan balance; it is applied on the next dashboard start."""
    plan = find_plan(name)
    state.set(SELECTED_BALANCE_KEY, f"{plan.balance:g}")
    return plan


class AccountService:
    def __init__(
        self,
        accounts: AccountsRepository,
        *,
        demo_balance: float = DEMO_BALANCE,
        bus: Optional[EventBus] = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.accounts = accounts
        self.demo_balance = float(demo_balance)
        self.bus = bus
        self.logger = logger or logging.getLogger("tradedesk.accounts")

    def require(self, wallet_address: str) -> Account:
        acc = self.accounts.get_by_wallet(wallet_address)
        if acc is None:
            raise AccountNotFound(wallet_address)
        return acc

    def get_or_create(self, wallet_address: str, email: str = "") -> Account:
        if not wallet_address:
            raise ValidationError("wallet address is required")

        acc = self.accounts.get_by_wallet(wallet_address)
        if acc is not None:
            return acc

        acc = Account(
            wallet_address=wallet_address,
            email=email or "",
            username=f"trader_{wallet_address[:8]}",
            tier="basic",
            stage="demo",
            balance=self.demo_balance,
            pnl=0.0,
        )
        try:
            acc = self.accounts.insert(acc)
        except PersistenceError:
            # lost a race with another writer for the same wallet
            existing = self.accounts.get_by_wallet(wallet_address)
            if existing is None:
                raise
            return existing
        self.logger.info("[ACCOUNTS] created %s balance=%.2f", acc.username, acc.balance)
        return acc

    def update_balance(self, wallet_address: str, balance: float, pnl: float) -> Account:
        acc = self.require(wallet_address)
        updated = self.accounts.update_balance(acc.id, balance, pnl) or acc.with_balance(balance, pnl)
        if self.bus is not None:
            self.bus.publish(Topic.BALANCE_UPDATE, BalanceUpdated(updated.id, updated.balance, updated.pnl))
        return updated

    def set_demo_balance(self, wallet_address: str) -> Account:
        acc = self.require(wallet_address)
        self.accounts.update_fields(acc.id, stage="demo", tier="basic")
        return self.update_balance(wallet_address, self.demo_balance, 0.0)

    def apply_pending_balance(self, state: LocalState) -> Optional[Account]:
        """
        Consumes a plan balance chosen before login: sets balance, resets pnl,
        removes the key. No-op when nothing is pending or nobody is logged in.
        """
        raw = state.get(SELECTED_BALANCE_KEY)
        wallet = state.wallet_address()
        if not raw or not wallet:
            return None
        try:
            balance = float(raw)
        except ValueError:
            self.logger.warning("[ACCOUNTS] ignoring malformed %s=%r", SELECTED_BALANCE_KEY, raw)
            state.remove(SELECTED_BALANCE_KEY)
            return None

        self.get_or_create(wallet)
        acc = self.update_balance(wallet, balance, 0.0)
        state.remove(SELECTED_BALANCE_KEY)
        self.logger.info("[ACCOUNTS] applied plan balance %.2f to %s", balance, wallet)
        return acc
