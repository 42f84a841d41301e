"""
In-Memory Auth Service

Authenticates against the live users collection, so users created during
the session can log in straight away.
"""

from datetime import datetime
from typing import Callable, Optional, Sequence

import structlog

from tailorbook.models.entities import User
from tailorbook.permissions.model import PermissionDeniedError, PermissionTag, Role
from tailorbook.services.auth.interface import (
    AccountDeactivatedError,
    AuthenticationError,
    AuthServiceInterface,
    PasswordHasher,
    PlaintextPasswordHasher,
)
from tailorbook.services.storage.interface import NotFoundError
from tailorbook.validation.validator import InputValidator


logger = structlog.get_logger(__name__)


class InMemoryAuthService(AuthServiceInterface):
    """
    Session handling over a users collection.

    Args:
        user_source: Returns the current users collection. Password
            changes are written onto those records.
        hasher: Password hasher; plaintext by default.
        validator: Input validator for password rules.
    """

    def __init__(
        self,
        user_source: Callable[[], Sequence[User]],
        hasher: Optional[PasswordHasher] = None,
        validator: Optional[InputValidator] = None,
    ):
        self._user_source = user_source
        self._hasher = hasher or PlaintextPasswordHasher()
        self._validator = validator or InputValidator()
        self._session_user_id: Optional[str] = None

    def _find(self, user_id: str) -> Optional[User]:
        return next((u for u in self._user_source() if u.id == user_id), None)

    def hash_password(self, password: str) -> str:
        return self._hasher.hash(password)

    async def login(self, username: str, password: str) -> User:
        user = next(
            (u for u in self._user_source() if u.username == username.strip()),
            None,
        )
        if user is None or not user.password_hash:
            raise AuthenticationError("Invalid credentials")
        if not self._hasher.verify(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        if not user.active:
            raise AccountDeactivatedError("Account is deactivated")

        user.last_login = datetime.now()
        self._session_user_id = user.id
        logger.info("session_opened", user_id=user.id)
        return user

    async def logout(self) -> None:
        if self._session_user_id:
            logger.info("session_closed", user_id=self._session_user_id)
        self._session_user_id = None

    async def current_session(self) -> Optional[User]:
        if self._session_user_id is None:
            return None
        user = self._find(self._session_user_id)
        if user is None or not user.active:
            # Deleted or deactivated since login
            self._session_user_id = None
            return None
        return user

    async def change_password(
        self,
        new_password: str,
        confirm_password: str,
        current_password: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> bool:
        session_user = await self.current_session()
        if session_user is None:
            raise AuthenticationError("Not logged in")

        target_id = user_id or session_user.id
        is_self = target_id == session_user.id

        result = self._validator.validate_password_change(
            new_password,
            confirm_password,
            current_password=current_password,
            require_current=is_self,
        )
        self._validator.ensure_valid(result)

        if not is_self:
            if session_user.role != Role.ADMIN.value:
                raise PermissionDeniedError(
                    tag=PermissionTag.MANAGE_USERS,
                    user_id=session_user.id,
                    operation="change another user's password",
                )
        elif not session_user.password_hash or not self._hasher.verify(
            current_password or "", session_user.password_hash
        ):
            raise AuthenticationError("Current password is incorrect")

        target = self._find(target_id)
        if target is None:
            raise NotFoundError(f"User not found: {target_id}")

        target.password_hash = self._hasher.hash(new_password)
        return True
