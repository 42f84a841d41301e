"""
Main Orchestrator for TailorBook

This module ties together all the components and defines the
end-to-end session flows:
1. Login (credentials -> load -> hydrate -> ready)
2. Resume (restore a session that is still valid)
3. Logout (flush pending changes -> clear state)

DESIGN DECISION: The session enforces the persistence boundaries:
- Nothing is saved before the initial load has completed
- A failed initial load blocks the session (LOAD_FAILED), it never
  continues on empty collections that autosave would then write back
- Logout never drops unsaved edits silently; it flushes first
"""

from typing import Callable, Optional

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tailorbook.activity.logger import ActivityLogger, create_correlation_id
from tailorbook.config import get_settings
from tailorbook.models.activity import ActivityEventBuilder
from tailorbook.models.entities import COLLECTION_KEYS, BusinessSettings, StateSnapshot, User
from tailorbook.permissions.model import PermissionTag
from tailorbook.services.auth import (
    AuthenticationError,
    AuthServiceInterface,
    InMemoryAuthService,
    PasswordHasher,
)
from tailorbook.services.storage import (
    BusinessSettingsStorageInterface,
    GoogleSheetsBusinessSettingsStorage,
    GoogleSheetsClient,
    GoogleSheetsStateStorage,
    InMemoryBusinessSettingsStorage,
    InMemoryStateStorage,
    StateStorageInterface,
    StorageError,
)
from tailorbook.store.controller import ShopController
from tailorbook.store.state import AppState, SessionPhase
from tailorbook.store.sync import SyncEngine
from tailorbook.validation import InputValidator


logger = structlog.get_logger(__name__)


class SessionLoadError(Exception):
    """The initial state load failed; the session cannot continue."""
    pass


class UserDirectory:
    """
    The users the auth service checks credentials against.

    Once the session is hydrated this is the live users collection, so
    accounts created during the session can log in. Before that it is the
    users from the most recent load.
    """

    def __init__(self, state: AppState):
        self._state = state
        self._loaded: list[User] = []

    def __call__(self) -> list[User]:
        if self._state.hydrated:
            return self._state.users
        return self._loaded

    def update(self, users: list[User]) -> None:
        self._loaded = users


class ShopSession:
    """
    One client session: login, hydration, autosave and logout.

    Args:
        storage: Whole-state backend
        business_storage: Business settings backend
        auth: Auth service; an InMemoryAuthService over the loaded users by default
        hasher: Password hasher for the default auth service
        debounce_seconds: Autosave quiet period; defaults to SyncSettings
        load_wait: tenacity wait strategy between load attempts
        on_save_error: Called with the exception when an autosave fails
    """

    def __init__(
        self,
        storage: StateStorageInterface,
        business_storage: Optional[BusinessSettingsStorageInterface] = None,
        auth: Optional[AuthServiceInterface] = None,
        hasher: Optional[PasswordHasher] = None,
        debounce_seconds: Optional[float] = None,
        load_wait=None,
        on_save_error: Optional[Callable[[Exception], None]] = None,
        activity: Optional[ActivityLogger] = None,
    ):
        settings = get_settings()
        self._storage = storage
        self._business_storage = business_storage or InMemoryBusinessSettingsStorage()
        self._activity = activity or ActivityLogger()
        self._load_attempts = settings.sync.load_retry_attempts
        self._load_wait = load_wait or wait_exponential(multiplier=1, min=1, max=8)
        self._on_save_error = on_save_error

        self.state = AppState()
        self.notifications: list[str] = []
        self.users = UserDirectory(self.state)

        validator = InputValidator()
        self.auth = auth or InMemoryAuthService(self.users, hasher=hasher, validator=validator)
        self.sync = SyncEngine(
            self.state,
            storage,
            debounce_seconds=debounce_seconds,
            on_error=self._save_failed,
            activity=self._activity,
        )
        self.controller = ShopController(
            self.state,
            self.sync,
            auth=self.auth,
            validator=validator,
            activity=self._activity,
        )

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    def _save_failed(self, error: Exception) -> None:
        self.notifications.append(f"Failed to save changes: {error}")
        if self._on_save_error:
            self._on_save_error(error)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def _load(self) -> StateSnapshot:
        """Load the whole state, retrying storage errors."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._load_attempts),
            wait=self._load_wait,
            retry=retry_if_exception_type(StorageError),
            reraise=True,
        ):
            with attempt:
                return await self._storage.load_all()

    async def _load_or_fail(self) -> StateSnapshot:
        try:
            return await self._load()
        except StorageError as e:
            self.state.phase = SessionPhase.LOAD_FAILED
            self.state.last_error = str(e)
            self._activity.log(
                ActivityEventBuilder.state_load_failed(str(e), self._activity.correlation_id)
            )
            raise SessionLoadError(f"Could not load shop data: {e}") from e

    async def _load_business_settings(self) -> None:
        try:
            self.state.business_settings = await self._business_storage.get()
        except StorageError as e:
            logger.warning("business_settings_unavailable", error=str(e))

    def _hydrate(
        self,
        snapshot: StateSnapshot,
        user: User,
        baseline: Optional[StateSnapshot] = None,
    ) -> None:
        self.state.phase = SessionPhase.HYDRATING
        self.state.hydrate(snapshot)
        self.state.current_user = next(
            (u for u in self.state.users if u.id == user.id),
            user,
        )
        self.sync.take_baseline(baseline)
        self.state.phase = SessionPhase.READY

        counts = {name: len(snapshot.collection(name)) for name in COLLECTION_KEYS}
        self._activity.log(
            ActivityEventBuilder.state_loaded(counts, self._activity.correlation_id)
        )

    # -------------------------------------------------------------------------
    # Session flows
    # -------------------------------------------------------------------------

    async def login(self, username: str, password: str) -> User:
        """
        Authenticate and hydrate the state.

        Raises:
            SessionLoadError: The store could not be read (phase LOAD_FAILED)
            AuthenticationError: Wrong credentials or deactivated account
        """
        self._activity.correlation_id = create_correlation_id()
        self.state.phase = SessionPhase.AUTHENTICATING

        snapshot = await self._load_or_fail()
        loaded = snapshot.model_copy(deep=True)
        self.users.update(snapshot.users)

        try:
            user = await self.auth.login(username, password)
        except AuthenticationError as e:
            self.state.phase = SessionPhase.UNAUTHENTICATED
            self._activity.log(ActivityEventBuilder.login_failed(username, str(e)))
            raise

        # The login stamp is the only difference from the stored state
        self._hydrate(snapshot, user, baseline=loaded)
        self.sync.notify_mutation()
        await self._load_business_settings()
        self._activity.log(ActivityEventBuilder.user_logged_in(user.id, user.username))
        return self.state.current_user

    async def resume(self) -> Optional[User]:
        """
        Continue an existing session.

        Returns None (and clears local state) when there is no session or
        the user has since been deleted or deactivated.
        """
        user = await self.auth.current_session()
        if user is None:
            if self.state.current_user is not None:
                await self.logout()
            return None

        if not self.state.hydrated:
            self.state.phase = SessionPhase.HYDRATING
            snapshot = await self._load_or_fail()
            self._hydrate(snapshot, user)
            await self._load_business_settings()
        return self.state.current_user

    async def logout(self) -> bool:
        """
        Flush pending changes, then clear everything the session loaded.

        Returns whether the final flush succeeded.
        """
        user_id = self.state.current_user.id if self.state.current_user else None
        flushed = await self.sync.flush()
        await self.sync.drain()

        await self.auth.logout()
        self.sync.reset()
        self.state.reset()
        self.state.phase = SessionPhase.LOGGED_OUT

        if user_id:
            self._activity.log(ActivityEventBuilder.user_logged_out(user_id, flushed))
        return flushed

    async def delete_user(self, user_id: str, confirm: bool = False) -> bool:
        """Delete a user; deleting yourself ends the session."""
        forced_logout = self.controller.delete_user(user_id, confirm=confirm)
        if forced_logout:
            await self.logout()
        return forced_logout

    # -------------------------------------------------------------------------
    # Business settings
    # -------------------------------------------------------------------------

    async def save_business_settings(self, settings: BusinessSettings) -> BusinessSettings:
        """Store the shop identity. Admin-level (manage users) only."""
        self.controller.require(PermissionTag.MANAGE_USERS, "update business settings")
        await self._business_storage.set(settings)
        self.state.business_settings = settings
        return settings


def create_app_components(
    use_storage: bool = True,
) -> tuple[ShopSession, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (session, sheets_client)
    """
    sheets_client = None
    storage: StateStorageInterface
    business_storage: BusinessSettingsStorageInterface

    if use_storage:
        sheets_client = GoogleSheetsClient()
        storage = GoogleSheetsStateStorage(sheets_client)
        business_storage = GoogleSheetsBusinessSettingsStorage(sheets_client)
    else:
        storage = InMemoryStateStorage()
        business_storage = InMemoryBusinessSettingsStorage()

    session = ShopSession(storage, business_storage=business_storage)
    return session, sheets_client
