"""
Abstract Auth/Session Interface

The core only ever consumes the resolved User (id, name, role,
permissions, active). How credentials are checked and where sessions
live is up to the implementation.
"""

import hmac
from abc import ABC, abstractmethod
from typing import Optional

from tailorbook.models.entities import User


class PasswordHasher(ABC):
    """Turns passwords into stored hashes and checks them."""

    @abstractmethod
    def hash(self, password: str) -> str:
        pass

    @abstractmethod
    def verify(self, password: str, stored: str) -> bool:
        pass


class PlaintextPasswordHasher(PasswordHasher):
    """
    Stores passwords as given. For tests and local use only; plug a real
    hasher in anywhere credentials matter.
    """

    def hash(self, password: str) -> str:
        return password

    def verify(self, password: str, stored: str) -> bool:
        return hmac.compare_digest(password.encode(), stored.encode())


class AuthServiceInterface(ABC):
    """Abstract interface for login sessions."""

    @abstractmethod
    async def login(self, username: str, password: str) -> User:
        """
        Authenticate and open a session.

        Raises:
            AuthenticationError: Unknown user or wrong password
            AccountDeactivatedError: The account is switched off
        """
        pass

    @abstractmethod
    async def logout(self) -> None:
        """Close the current session (no-op when there is none)."""
        pass

    @abstractmethod
    async def current_session(self) -> Optional[User]:
        """The logged-in user, or None."""
        pass

    @abstractmethod
    async def change_password(
        self,
        new_password: str,
        confirm_password: str,
        current_password: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> bool:
        """
        Change a password.

        Changing your own password needs the current one. Changing someone
        else's needs the Admin role.
        """
        pass

    @abstractmethod
    def hash_password(self, password: str) -> str:
        """Hash a password for a newly created user record."""
        pass


class AuthenticationError(Exception):
    """Credentials were missing or wrong."""
    pass


class AccountDeactivatedError(AuthenticationError):
    """The account exists but is deactivated."""
    pass
