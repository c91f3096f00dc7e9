"""
In-Memory Storage Implementation

Keeps entries in a process-local dict. Used when no spreadsheet is
configured, and as the storage double in tests.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import UUID, uuid4

from pydantic import ValidationError

from ledger.models.audit import AuditEvent
from ledger.models.transaction import TransactionDraft, TransactionRecord
from ledger.services.storage.interface import (
    AuditStorageInterface,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    check_update_fields,
)


class InMemoryTransactionStorage(TransactionStorageInterface):
    """Entries live in insertion order in a dict keyed by id."""

    def __init__(
        self,
        records: Optional[list[TransactionRecord]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        super().__init__()
        self._records: dict[str, TransactionRecord] = {}
        for record in records or []:
            self._records[record.id] = record
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def create_transaction(self, draft: TransactionDraft) -> TransactionRecord:
        record = TransactionRecord(
            id=uuid4().hex,
            timestamp=self._clock(),
            is_paid=False,
            **draft.model_dump(),
        )
        self._records[record.id] = record
        self.publish(list(self._records.values()))
        return record

    async def update_transaction(self, record_id: str, changes: dict[str, Any]) -> bool:
        check_update_fields(changes)
        current = self._records.get(record_id)
        if current is None:
            raise NotFoundError(f"Transaction not found: {record_id}")

        # Re-validate so a bad partial update cannot break record invariants
        try:
            updated = TransactionRecord.model_validate({**current.model_dump(), **changes})
        except ValidationError as e:
            raise StorageError(f"Invalid update for {record_id}: {e}")
        self._records[record_id] = updated
        self.publish(list(self._records.values()))
        return True

    async def delete_transaction(self, record_id: str) -> bool:
        if self._records.pop(record_id, None) is None:
            return False
        self.publish(list(self._records.values()))
        return True

    async def list_transactions(self) -> list[TransactionRecord]:
        return list(self._records.values())


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(self, entity_type: str, entity_id: str) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
