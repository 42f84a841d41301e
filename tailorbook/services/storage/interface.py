"""
Abstract Storage Interface

DESIGN DECISION: The backend store is reached through an abstract
interface. This allows us to:
1. Keep Google Sheets as the shared store today
2. Use in-memory storage for testing
3. Swap the backend without touching business logic

The state interface is deliberately coarse: the whole snapshot is loaded
in one call and saved in one call. There are no per-record operations,
so there is nothing to merge and the last save wins.
"""

from abc import ABC, abstractmethod
from typing import Optional

import structlog

from tailorbook.models.entities import BusinessSettings, StateSnapshot


logger = structlog.get_logger(__name__)


class StateStorageInterface(ABC):
    """
    Abstract interface for whole-state persistence.

    Any storage implementation (Google Sheets, SQL, memory)
    must implement these methods.
    """

    @abstractmethod
    async def load_all(self) -> StateSnapshot:
        """
        Load all seven collections.

        Returns:
            The stored snapshot. Missing collections are empty.

        Raises:
            StorageError: If the store cannot be read
        """
        pass

    @abstractmethod
    async def save_all(self, snapshot: StateSnapshot) -> bool:
        """
        Replace all seven collections with the given snapshot.

        Args:
            snapshot: The complete state to persist

        Returns:
            True if saved successfully

        Raises:
            StorageError: If the save fails
        """
        pass


class BusinessSettingsStorageInterface(ABC):
    """Abstract interface for the business settings singleton."""

    @abstractmethod
    async def get(self) -> BusinessSettings:
        """Return stored settings, or defaults when nothing is stored."""
        pass

    @abstractmethod
    async def set(self, settings: BusinessSettings) -> bool:
        """Replace the stored settings."""
        pass


# =============================================================================
# SHARED HELPERS
# =============================================================================

def snapshot_from_documents(payload: Optional[dict]) -> StateSnapshot:
    """
    Build a snapshot from raw stored documents, logging anything skipped.
    """
    def _skipped(collection: str, document, reason: str) -> None:
        record_id = document.get("id") if isinstance(document, dict) else None
        logger.warning(
            "stored_record_skipped",
            collection=collection,
            record_id=record_id,
            reason=reason,
        )

    return StateSnapshot.from_payload(payload, on_skip=_skipped)


def preserve_password_hashes(
    user_documents: list[dict],
    existing_hashes: dict[str, str],
) -> list[dict]:
    """
    Fill in the stored password hash for users sent without one.

    Clients may send user records without hashes; a save must not wipe
    the credentials already on file.
    """
    merged = []
    for document in user_documents:
        if not document.get("passwordHash"):
            stored = existing_hashes.get(str(document.get("id")))
            if stored:
                document = {**document, "passwordHash": stored}
        merged.append(document)
    return merged


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
