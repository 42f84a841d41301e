"""Store package: application state, sync engine and the shop controller."""

from tailorbook.store.controller import (
    ConfirmationRequiredError,
    RecordNotFoundError,
    ShopController,
    WorkerCredentials,
    worker_username,
)
from tailorbook.store.state import AppState, SessionPhase
from tailorbook.store.sync import SyncEngine

__all__ = [
    # State
    "AppState",
    "SessionPhase",
    # Sync
    "SyncEngine",
    # Controller
    "ConfirmationRequiredError",
    "RecordNotFoundError",
    "ShopController",
    "WorkerCredentials",
    "worker_username",
]
