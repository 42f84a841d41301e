"""
In-Memory Storage

Backs the storage interfaces with plain dicts. Used by the tests and for
running without a Google Sheets configuration.

Documents are copied on the way in and out, so callers can never alias
the stored state.
"""

import asyncio
import copy
from typing import Optional

from tailorbook.models.entities import BusinessSettings, StateSnapshot
from tailorbook.services.storage.interface import (
    BusinessSettingsStorageInterface,
    StateStorageInterface,
    StorageConnectionError,
    StorageError,
    preserve_password_hashes,
    snapshot_from_documents,
)


class InMemoryStateStorage(StateStorageInterface):
    """
    Whole-state storage held in memory.

    `fail_loads` / `fail_saves` make the next N calls raise, and
    `save_delay` makes saves take a while so overlapping saves can be
    observed.
    """

    def __init__(
        self,
        initial: Optional[dict] = None,
        save_delay: float = 0.0,
    ):
        self._payload: dict = copy.deepcopy(initial) if initial else {}
        self.save_delay = save_delay
        self.load_calls = 0
        self.save_calls = 0
        self.saved_payloads: list[dict] = []
        self.fail_loads = 0
        self.fail_saves = 0

    @property
    def payload(self) -> dict:
        return copy.deepcopy(self._payload)

    async def load_all(self) -> StateSnapshot:
        self.load_calls += 1
        if self.fail_loads > 0:
            self.fail_loads -= 1
            raise StorageConnectionError("In-memory store unavailable")
        return snapshot_from_documents(copy.deepcopy(self._payload))

    async def save_all(self, snapshot: StateSnapshot) -> bool:
        self.save_calls += 1
        payload = snapshot.to_payload()
        if self.save_delay:
            await asyncio.sleep(self.save_delay)
        if self.fail_saves > 0:
            self.fail_saves -= 1
            raise StorageError("In-memory save rejected")

        existing = {
            str(u.get("id")): u["passwordHash"]
            for u in self._payload.get("users", [])
            if isinstance(u, dict) and u.get("passwordHash")
        }
        payload["users"] = preserve_password_hashes(payload["users"], existing)

        self._payload = payload
        self.saved_payloads.append(copy.deepcopy(payload))
        return True


class InMemoryBusinessSettingsStorage(BusinessSettingsStorageInterface):
    """Business settings held in memory."""

    def __init__(self, settings: Optional[BusinessSettings] = None):
        self._settings = settings

    async def get(self) -> BusinessSettings:
        if self._settings is None:
            return BusinessSettings()
        return self._settings.model_copy(deep=True)

    async def set(self, settings: BusinessSettings) -> bool:
        self._settings = settings.model_copy(deep=True)
        return True
