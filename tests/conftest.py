"""
Pytest configuration and shared fixtures.

This file adds the parent directory to the Python path so that tests
can import from the domain, repositories, services and api packages, and
provides in-memory stores, a deterministic clock and a recording notifier.
"""

import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import List, Optional

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.identity import ROLE_ADMIN, ROLE_SUPER_ADMIN, CallerIdentity  # noqa: E402
from domain.ticket import UNLIMITED_QUOTA, TicketType  # noqa: E402
from repositories.interfaces import NewTicketType  # noqa: E402
from repositories.memory import InMemoryDatabase, InMemoryOrderStore, InMemoryTicketStore  # noqa: E402
from services.order_details import OrderDetails  # noqa: E402
from services.order_query_service import OrderQueryService  # noqa: E402
from services.order_service import OrderService  # noqa: E402
from services.ticket_service import TicketService  # noqa: E402

START = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


class TickingClock:
    """Returns START, START+1s, START+2s, ... so every event gets a distinct timestamp."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(seconds=1)) -> None:
        self._now = start
        self._step = step

    def __call__(self) -> datetime:
        now = self._now
        self._now = now + self._step
        return now


class RecordingNotifier:
    """Collects enqueued confirmations instead of delivering them."""

    def __init__(self, fail_with: Optional[Exception] = None) -> None:
        self.sent: List[OrderDetails] = []
        self.fail_with = fail_with

    def enqueue(self, details: OrderDetails) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(details)

    def shutdown(self, wait: bool = True) -> None:
        pass


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def ticket_store(db: InMemoryDatabase) -> InMemoryTicketStore:
    return InMemoryTicketStore(db)


@pytest.fixture
def order_store(db: InMemoryDatabase) -> InMemoryOrderStore:
    return InMemoryOrderStore(db)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def order_service(ticket_store, order_store, notifier, clock) -> OrderService:
    return OrderService(ticket_store, order_store, notifier, clock=clock)


@pytest.fixture
def ticket_service(ticket_store, order_store, clock) -> TicketService:
    return TicketService(ticket_store, order_store, clock=clock)


@pytest.fixture
def query_service(order_store, ticket_store) -> OrderQueryService:
    return OrderQueryService(order_store, ticket_store)


@pytest.fixture
def admin() -> CallerIdentity:
    return CallerIdentity(id="admin-1", role=ROLE_ADMIN, username="alice")


@pytest.fixture
def super_admin() -> CallerIdentity:
    return CallerIdentity(id="root-1", role=ROLE_SUPER_ADMIN, username="root")


@pytest.fixture
def outsider() -> CallerIdentity:
    return CallerIdentity(id="user-9", role="attendee", username="mallory")


def add_ticket_type(
    store: InMemoryTicketStore,
    name: str = "General",
    price: str = "100.00",
    quota: int = UNLIMITED_QUOTA,
    is_active: bool = True,
) -> TicketType:
    """Insert a ticket type straight into a store."""

    return store.create(
        NewTicketType(name=name, price=Decimal(price), quota=quota, is_active=is_active),
        created_at=START,
    )


@pytest.fixture
def make_ticket(ticket_store):
    """Factory fixture: make_ticket(name=..., price=..., quota=..., is_active=...)."""

    def _make(**kwargs) -> TicketType:
        return add_ticket_type(ticket_store, **kwargs)

    return _make
