"""
Sync Engine

Debounced bulk autosave of the application state.

DESIGN DECISION: The whole state is saved every time.
After each mutation the seven collections are compared with the baseline
(the last values loaded or sent). If anything differs, a quiet-period
timer is (re)started; when it expires all seven collections go to the
store in one request and become the new baseline.

CONCURRENCY:
- Single event loop, no locks
- A timer that has not fired yet is simply cancelled by the next mutation
- Saves already in flight are never cancelled; overlapping saves race and
  whichever finishes last sets `last_saved`
- A failed save is reported and NOT retried. Edits stay in memory and go
  out with the next save
"""

import asyncio
import time
from datetime import datetime
from typing import Callable, Optional

import structlog

from tailorbook.activity.logger import ActivityLogger
from tailorbook.config import get_settings
from tailorbook.models.activity import ActivityEventBuilder
from tailorbook.models.entities import COLLECTION_KEYS, StateSnapshot
from tailorbook.services.storage.interface import StateStorageInterface
from tailorbook.store.state import AppState, SessionPhase


logger = structlog.get_logger(__name__)

ErrorNotifier = Callable[[Exception], None]


class SyncEngine:
    """
    Watches the application state and persists it after a quiet period.

    Args:
        state: The state to persist
        storage: Whole-state backend
        debounce_seconds: Quiet period; defaults to SyncSettings
        on_error: Called with the exception when a save fails
        activity: Activity logger for save events
    """

    def __init__(
        self,
        state: AppState,
        storage: StateStorageInterface,
        debounce_seconds: Optional[float] = None,
        on_error: Optional[ErrorNotifier] = None,
        activity: Optional[ActivityLogger] = None,
    ):
        self._state = state
        self._storage = storage
        self._debounce = (
            debounce_seconds
            if debounce_seconds is not None
            else get_settings().sync.debounce_seconds
        )
        self._on_error = on_error
        self._activity = activity or ActivityLogger()
        self._baseline: dict[str, list[dict]] = {}
        self._timer: Optional[asyncio.TimerHandle] = None
        self._in_flight: set[asyncio.Task] = set()

    @property
    def debounce_seconds(self) -> float:
        return self._debounce

    @property
    def has_pending_save(self) -> bool:
        return self._timer is not None

    @property
    def saves_in_flight(self) -> int:
        return len(self._in_flight)

    # -------------------------------------------------------------------------
    # Change detection
    # -------------------------------------------------------------------------

    @staticmethod
    def _documents(snapshot: StateSnapshot) -> dict[str, list[dict]]:
        return {name: snapshot.collection_documents(name) for name in COLLECTION_KEYS}

    def take_baseline(self, snapshot: Optional[StateSnapshot] = None) -> None:
        """Record the current (or given) collections as persisted."""
        self._baseline = self._documents(snapshot or self._state.collections)

    def changed_collections(self) -> list[str]:
        """Collections whose content differs from the baseline."""
        current = self._documents(self._state.collections)
        return [
            name for name in COLLECTION_KEYS
            if current[name] != self._baseline.get(name, [])
        ]

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def notify_mutation(self) -> bool:
        """
        Call after every committed mutation.

        Returns True if a save was (re)scheduled. Nothing is scheduled
        before hydration, without a user, or when nothing changed.
        """
        if not self._state.hydrated or self._state.current_user is None:
            logger.debug("autosave_suppressed", phase=self._state.phase.value)
            return False

        if not self.changed_collections():
            return False

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("autosave_not_scheduled", reason="no running event loop")
            return False

        self.cancel_pending()
        self._timer = loop.call_later(self._debounce, self._fire)
        return True

    def cancel_pending(self) -> bool:
        """Cancel a scheduled save that has not fired yet."""
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        return True

    def _fire(self) -> None:
        self._timer = None
        task = asyncio.get_running_loop().create_task(self._save())
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    # -------------------------------------------------------------------------
    # Saving
    # -------------------------------------------------------------------------

    async def _save(self) -> bool:
        snapshot = self._state.snapshot()
        changed = self.changed_collections()

        if self._state.phase == SessionPhase.READY:
            self._state.phase = SessionPhase.SAVING

        started = time.perf_counter()
        try:
            await self._storage.save_all(snapshot)
        except Exception as e:
            self._state.last_error = str(e)
            self._activity.log(ActivityEventBuilder.save_failed(str(e), None))
            if self._on_error:
                self._on_error(e)
            return False
        finally:
            # Other saves may still be running; the last one out restores READY
            if self._state.phase == SessionPhase.SAVING and self.saves_in_flight <= 1:
                self._state.phase = SessionPhase.READY

        elapsed_ms = (time.perf_counter() - started) * 1000
        self.take_baseline(snapshot)
        self._state.last_saved = datetime.now()
        self._activity.log(ActivityEventBuilder.state_saved(changed, elapsed_ms, None))
        return True

    async def flush(self) -> bool:
        """
        Save now if anything changed, instead of waiting for the timer.

        Returns True if there was nothing to save or the save succeeded.
        """
        self.cancel_pending()
        if not self._state.hydrated or not self.changed_collections():
            return True
        task = asyncio.get_running_loop().create_task(self._save())
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return await task

    async def drain(self) -> None:
        """Wait for every save already in flight to finish."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight))

    def reset(self) -> None:
        """Forget the baseline and any scheduled save (on logout)."""
        self.cancel_pending()
        self._baseline = {}
