"""
Shared fixtures for the TailorBook tests.

Everything runs against in-memory storage and auth; there are no network
calls. Record factories are exposed as fixtures returning callables.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from tenacity import wait_none

from tailorbook.models import (
    Account,
    Assignments,
    Customer,
    Expense,
    Order,
    OrderStatus,
    Payment,
    PaymentSource,
    StateSnapshot,
    User,
    Worker,
)
from tailorbook.orchestrator import ShopSession
from tailorbook.services.storage import InMemoryStateStorage
from tailorbook.store import AppState, SessionPhase


def _user(name="Admin", role="Admin", permissions=None, username=None, password="secret1", **extra):
    return User(
        name=name,
        username=username or name.lower(),
        password_hash=password,
        role=role,
        permissions=list(permissions or []),
        **extra,
    )


def _order(
    customer_id="C-1",
    total=1000,
    paid=(),
    cutter=None,
    stitcher=None,
    cutter_rate=0,
    stitcher_rate=0,
    when=None,
    status=OrderStatus.BOOKED,
    **extra,
):
    when = when or datetime(2024, 3, 10, 12, 0)
    return Order(
        customer_id=customer_id,
        customer_name=extra.pop("customer_name", "Customer"),
        status=status,
        total_price=Decimal(str(total)),
        date=when,
        payments=[
            Payment(
                date=when,
                amount=Decimal(str(amount)),
                source=PaymentSource.PARTIAL,
                account_id=account_id,
            )
            for amount, account_id in paid
        ],
        assignments=Assignments(
            cutter=cutter,
            stitcher=stitcher,
            cutter_rate=Decimal(str(cutter_rate)),
            stitcher_rate=Decimal(str(stitcher_rate)),
        ),
        **extra,
    )


@pytest.fixture
def make_user():
    return _user


@pytest.fixture
def make_order():
    return _order


@pytest.fixture
def admin():
    return _user(name="Admin", role="Admin")


@pytest.fixture
def shop_payload():
    """A small shop as stored documents (camelCase wire format)."""
    users = [
        _user(id="U-admin", name="Admin", role="Admin", username="admin", password="admin123"),
        _user(id="U-manager", name="Maria", role="Manager", username="maria", password="maria123"),
        _user(
            id="U-sara",
            name="Sara",
            role="Staff",
            username="sara",
            password="sara123",
            permissions=["view_dashboard", "view_own_orders", "view_workers"],
        ),
    ]
    customers = [
        Customer(id="C-1", name="Imran", phone="03001234567"),
        Customer(id="C-2", name="Bilal", phone="3217654321"),
    ]
    workers = [
        Worker(id="W-ali", name="Ali", roles=["cutter"], rate_per_suit=Decimal("300")),
        Worker(id="W-sara", name="Sara", roles=["stitcher"], rate_per_suit=Decimal("500")),
    ]
    accounts = [
        Account(id="acc-cash", name="Cash", type="Cash"),
        Account(id="acc-bank", name="Bank", type="Bank"),
    ]
    orders = [
        _order(
            id="O-1", customer_id="C-1", customer_name="Imran", total=5000,
            paid=[(1000, "acc-cash")], cutter="Ali", cutter_rate=300,
        ),
        _order(
            id="O-2", customer_id="C-2", customer_name="Bilal", total=3000,
            paid=[(500, "acc-bank")], stitcher="Sara", stitcher_rate=500,
        ),
    ]
    expenses = [
        Expense(id="E-1", category="Rent", amount=Decimal("700"), account_id="acc-cash",
                date=datetime(2024, 3, 11), created_by="U-admin"),
    ]
    return {
        "users": [u.to_document() for u in users],
        "customers": [c.to_document() for c in customers],
        "orders": [o.to_document() for o in orders],
        "expenses": [e.to_document() for e in expenses],
        "workers": [w.to_document() for w in workers],
        "workerPayments": [],
        "accounts": [a.to_document() for a in accounts],
    }


@pytest.fixture
def storage(shop_payload):
    return InMemoryStateStorage(initial=shop_payload)


@pytest.fixture
def make_session(storage):
    """Build a ShopSession over the seeded storage with a short debounce."""
    def _build(debounce_seconds=0.05, **kwargs):
        return ShopSession(
            storage,
            debounce_seconds=debounce_seconds,
            load_wait=wait_none(),
            **kwargs,
        )
    return _build


@pytest.fixture
def ready_state(shop_payload):
    """An AppState hydrated from the seeded shop, logged in as the admin."""
    state = AppState()
    state.hydrate(StateSnapshot.from_payload(shop_payload))
    state.current_user = next(u for u in state.users if u.id == "U-admin")
    state.phase = SessionPhase.READY
    return state
