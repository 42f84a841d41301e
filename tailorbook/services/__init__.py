"""Services package."""

from tailorbook.services.auth import (
    AccountDeactivatedError,
    AuthenticationError,
    AuthServiceInterface,
    InMemoryAuthService,
    PasswordHasher,
    PlaintextPasswordHasher,
)
from tailorbook.services.storage import (
    BusinessSettingsStorageInterface,
    GoogleSheetsBusinessSettingsStorage,
    GoogleSheetsClient,
    GoogleSheetsStateStorage,
    InMemoryBusinessSettingsStorage,
    InMemoryStateStorage,
    NotFoundError,
    StateStorageInterface,
    StorageConnectionError,
    StorageError,
)

__all__ = [
    # Auth services
    "AccountDeactivatedError",
    "AuthenticationError",
    "AuthServiceInterface",
    "InMemoryAuthService",
    "PasswordHasher",
    "PlaintextPasswordHasher",
    # Storage services
    "BusinessSettingsStorageInterface",
    "GoogleSheetsBusinessSettingsStorage",
    "GoogleSheetsClient",
    "GoogleSheetsStateStorage",
    "InMemoryBusinessSettingsStorage",
    "InMemoryStateStorage",
    "NotFoundError",
    "StateStorageInterface",
    "StorageConnectionError",
    "StorageError",
]
