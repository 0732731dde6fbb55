import pytest

from tradedesk.core.accounts.service import AccountService
from tradedesk.core.events import EventBus
from tradedesk.core.ledger import PositionLedger
from tradedesk.core.orders.placement import OrderPlacementService
from tradedesk.data.accounts_repository import AccountsRepository
from tradedesk.data.orders_repository import OrdersRepository
from tradedesk.data.positions_repository import PositionsRepository
from tradedesk.data.storage.memory import MemoryStorage


class Recorder:
    """Collects every event published on a topic."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def ledger():
    return PositionLedger()


@pytest.fixture
def accounts_repo(storage):
    return AccountsRepository(storage)


@pytest.fixture
def orders_repo(storage):
    return OrdersRepository(storage)


@pytest.fixture
def positions_repo(storage):
    return PositionsRepository(storage)


@pytest.fixture
def account_service(accounts_repo, bus):
    return AccountService(accounts_repo, bus=bus)


@pytest.fixture
def account(account_service):
    return account_service.get_or_create("0x" + "ab" * 20)


@pytest.fixture
def placement(accounts_repo, orders_repo, positions_repo, ledger, bus):
    return OrderPlacementService(
        accounts=accounts_repo,
        orders=orders_repo,
        positions=positions_repo,
        ledger=ledger,
        bus=bus,
    )


@pytest.fixture
def recorder():
    return Recorder()
