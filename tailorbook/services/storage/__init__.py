"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the backend
store. Google Sheets is the shared store; the in-memory backend serves
tests and local use.
"""

from tailorbook.services.storage.interface import (
    BusinessSettingsStorageInterface,
    NotFoundError,
    StateStorageInterface,
    StorageConnectionError,
    StorageError,
    preserve_password_hashes,
    snapshot_from_documents,
)
from tailorbook.services.storage.google_sheets import (
    GoogleSheetsBusinessSettingsStorage,
    GoogleSheetsClient,
    GoogleSheetsStateStorage,
)
from tailorbook.services.storage.memory import (
    InMemoryBusinessSettingsStorage,
    InMemoryStateStorage,
)

__all__ = [
    # Interfaces
    "BusinessSettingsStorageInterface",
    "StateStorageInterface",
    # Exceptions
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    # Helpers
    "preserve_password_hashes",
    "snapshot_from_documents",
    # Google Sheets implementation
    "GoogleSheetsBusinessSettingsStorage",
    "GoogleSheetsClient",
    "GoogleSheetsStateStorage",
    # In-memory implementation
    "InMemoryBusinessSettingsStorage",
    "InMemoryStateStorage",
]
