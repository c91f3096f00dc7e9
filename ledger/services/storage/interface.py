"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap Google Sheets for a document store or database later
2. Use in-memory storage for testing and local runs
3. Keep the ledger logic decoupled from storage implementation

The ledger never reads storage directly for its views. Storage pushes a
complete snapshot to its subscribers after every change, and the ledger
recomputes from that snapshot.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable
from uuid import UUID

import structlog

from ledger.models.audit import AuditEvent
from ledger.models.transaction import (
    LedgerSnapshot,
    TransactionDraft,
    TransactionRecord,
)


logger = structlog.get_logger(__name__)

SnapshotListener = Callable[[LedgerSnapshot], Any]

# Fields a partial update may touch. id and timestamp are immutable.
UPDATABLE_FIELDS = frozenset({"item", "category", "amount", "payer", "note", "unit", "is_paid"})


class SnapshotPublisher:
    """
    Fan-out of complete snapshots to subscribers.

    Versions increase by one per publish, so subscribers can tell a newer
    snapshot from a stale one.
    """

    def __init__(self):
        self._listeners: list[SnapshotListener] = []
        self._version = 0

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Register listener for future snapshots.

        Returns:
            A callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self, records: list[TransactionRecord]) -> LedgerSnapshot:
        """Build the next snapshot from records and deliver it to every listener."""
        self._version += 1
        snapshot = LedgerSnapshot(records=tuple(records), version=self._version)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                # One broken subscriber must not starve the others
                logger.exception("snapshot_listener_failed", version=snapshot.version)
        return snapshot


class TransactionStorageInterface(SnapshotPublisher, ABC):
    """
    Abstract interface for ledger entry storage.

    Any storage implementation (Google Sheets, in-memory, etc.)
    must implement these methods and publish a snapshot after each write.
    """

    @abstractmethod
    async def create_transaction(self, draft: TransactionDraft) -> TransactionRecord:
        """
        Store a new entry.

        Storage assigns the id and timestamp; the entry starts unpaid.

        Args:
            draft: The validated entry

        Returns:
            The stored record

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_transaction(self, record_id: str, changes: dict[str, Any]) -> bool:
        """
        Apply a partial update to an entry.

        Used both for full edits and for the single-field settlement write.

        Args:
            record_id: The entry's id
            changes: Field name to new value; only UPDATABLE_FIELDS

        Returns:
            True if updated successfully

        Raises:
            StorageError: If the write fails
            NotFoundError: If the entry doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transaction(self, record_id: str) -> bool:
        """
        Delete an entry by id.

        Returns:
            True if deleted, False if it did not exist
        """
        pass

    @abstractmethod
    async def list_transactions(self) -> list[TransactionRecord]:
        """Return every stored entry, in storage order."""
        pass

    async def refresh(self) -> LedgerSnapshot:
        """Reload all entries and publish them as a new snapshot."""
        records = await self.list_transactions()
        return self.publish(records)


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get all events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


def check_update_fields(changes: dict[str, Any]) -> None:
    """Reject updates to unknown or immutable fields."""
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise StorageError(f"Cannot update fields: {sorted(unknown)}")


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
