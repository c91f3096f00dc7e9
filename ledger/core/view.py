"""
Snapshot State

Holds the latest snapshot delivered by storage and the view derived from it.

DESIGN DECISION: Nothing is updated incrementally. Each snapshot replaces
the working set, and vocabulary, ordering and summary are recomputed from
scratch. A snapshot older than the one already applied is dropped, so a
slow delivery can never roll the view back.
"""

from typing import Optional

import structlog

from ledger.config.settings import LedgerSettings
from ledger.core.aggregator import summarize
from ledger.core.ordering import order_transactions
from ledger.core.vocabulary import build_vocabulary
from ledger.models.transaction import LedgerSnapshot, LedgerView, TransactionRecord


logger = structlog.get_logger(__name__)


def build_view(snapshot: LedgerSnapshot, settings: LedgerSettings) -> LedgerView:
    """Derive the full presentation view from one snapshot."""
    records = snapshot.records
    return LedgerView(
        snapshot_version=snapshot.version,
        records=order_transactions(records, settings.canonical_categories),
        vocabulary=build_vocabulary(records, settings.canonical_categories),
        summary=summarize(records, settings.income_category),
    )


class LedgerState:
    """
    The most recent snapshot and its derived view.

    apply_snapshot is meant to be registered as a storage subscriber.
    """

    def __init__(self, settings: LedgerSettings):
        self._settings = settings
        self._snapshot = LedgerSnapshot()
        self._view = build_view(self._snapshot, settings)

    @property
    def snapshot(self) -> LedgerSnapshot:
        return self._snapshot

    @property
    def view(self) -> LedgerView:
        return self._view

    def apply_snapshot(self, snapshot: LedgerSnapshot) -> bool:
        """
        Replace the working set with snapshot.

        Returns False (and keeps the current view) when snapshot is older
        than the one already applied.
        """
        if snapshot.version < self._snapshot.version:
            logger.info(
                "stale_snapshot_ignored",
                received_version=snapshot.version,
                current_version=self._snapshot.version,
            )
            return False

        self._view = build_view(snapshot, self._settings)
        self._snapshot = snapshot
        logger.debug(
            "snapshot_applied",
            version=snapshot.version,
            record_count=len(snapshot.records),
        )
        return True

    def find(self, record_id: str) -> Optional[TransactionRecord]:
        """Look up a record in the current snapshot."""
        for record in self._snapshot.records:
            if record.id == record_id:
                return record
        return None
