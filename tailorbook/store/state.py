"""
Application State

The single in-memory working replica of the backend store, plus the
session facts that go with it. Exactly one ShopController owns it and is
the only code that mutates it.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from tailorbook.models.entities import (
    Account,
    BusinessSettings,
    Customer,
    Expense,
    Order,
    StateSnapshot,
    User,
    Worker,
    WorkerPayment,
)


class SessionPhase(str, Enum):
    """
    Session lifecycle.

    UNAUTHENTICATED -> AUTHENTICATING -> HYDRATING -> READY <-> SAVING
    -> LOGGED_OUT. LOAD_FAILED is the blocking error state when the
    initial load cannot be completed.
    """
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    HYDRATING = "hydrating"
    READY = "ready"
    SAVING = "saving"
    LOGGED_OUT = "logged_out"
    LOAD_FAILED = "load_failed"


class AppState:
    """
    Collections and session facts for one client session.

    `hydrated` only becomes True once a full load has completed; until
    then nothing may be persisted.
    """

    def __init__(self):
        self.phase: SessionPhase = SessionPhase.UNAUTHENTICATED
        self.current_user: Optional[User] = None
        self.collections: StateSnapshot = StateSnapshot()
        self.business_settings: BusinessSettings = BusinessSettings()
        self.hydrated: bool = False
        self.last_saved: Optional[datetime] = None
        self.last_error: Optional[str] = None

    # Collection shortcuts

    @property
    def users(self) -> list[User]:
        return self.collections.users

    @property
    def customers(self) -> list[Customer]:
        return self.collections.customers

    @property
    def orders(self) -> list[Order]:
        return self.collections.orders

    @property
    def expenses(self) -> list[Expense]:
        return self.collections.expenses

    @property
    def workers(self) -> list[Worker]:
        return self.collections.workers

    @property
    def worker_payments(self) -> list[WorkerPayment]:
        return self.collections.worker_payments

    @property
    def accounts(self) -> list[Account]:
        return self.collections.accounts

    @property
    def is_ready(self) -> bool:
        return self.hydrated and self.phase in (SessionPhase.READY, SessionPhase.SAVING)

    def snapshot(self) -> StateSnapshot:
        """Deep copy of all seven collections."""
        return self.collections.model_copy(deep=True)

    def hydrate(self, snapshot: StateSnapshot) -> None:
        self.collections = snapshot
        self.hydrated = True
        self.last_error = None

    def reset(self) -> None:
        """Drop everything the session loaded."""
        self.current_user = None
        self.collections = StateSnapshot()
        self.hydrated = False
        self.last_saved = None
