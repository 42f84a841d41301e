"""Auth/session services package."""

from tailorbook.services.auth.interface import (
    AccountDeactivatedError,
    AuthenticationError,
    AuthServiceInterface,
    PasswordHasher,
    PlaintextPasswordHasher,
)
from tailorbook.services.auth.memory import InMemoryAuthService

__all__ = [
    "AccountDeactivatedError",
    "AuthenticationError",
    "AuthServiceInterface",
    "InMemoryAuthService",
    "PasswordHasher",
    "PlaintextPasswordHasher",
]
