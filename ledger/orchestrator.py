"""
Main Orchestrator for the Shared Ledger

This module ties together all the components and defines the flows for:
1. Adding an entry (form -> validate -> write)
2. Editing an entry (lock check -> validate -> partial write)
3. Settling an entry (state machine -> single-field write)
4. Deleting an entry
5. Exporting the ledger

DESIGN DECISION: The orchestrator never mutates its view after a write.
Storage publishes a new snapshot, the LedgerState picks it up, and the
view is recomputed. A failed write therefore leaves the view exactly as
it was.
"""

from typing import Optional
from uuid import UUID

import structlog

from ledger.audit import AuditLogger, configure_logging, create_correlation_id
from ledger.config import LedgerSettings, get_settings, load_ledger_settings
from ledger.core.export import project_export, rows_to_csv
from ledger.core.settlement import TransactionLockedError, ensure_editable, settlement_mutation
from ledger.core.view import LedgerState
from ledger.models.transaction import (
    ExportRow,
    LedgerView,
    TransactionForm,
    TransactionRecord,
    ValidationResult,
)
from ledger.services.storage import (
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsExporter,
    GoogleSheetsTransactionStorage,
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
)
from ledger.validation import TransactionValidator


logger = structlog.get_logger(__name__)


class LedgerFlow:
    """
    Orchestrates every user action against the ledger.

    The flow subscribes to storage on construction; views always reflect
    the most recent snapshot storage has published.
    """

    def __init__(
        self,
        storage: TransactionStorageInterface,
        validator: Optional[TransactionValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        exporter: Optional[GoogleSheetsExporter] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._settings = load_ledger_settings(settings)
        self._storage = storage
        self._validator = validator or TransactionValidator(self._settings)
        self._audit_logger = audit_logger
        self._exporter = exporter
        self._state = LedgerState(self._settings)
        self._unsubscribe = storage.subscribe(self._state.apply_snapshot)
        # Ids with a mark-paid write still in flight
        self._settling: set[str] = set()

    @property
    def view(self) -> LedgerView:
        return self._state.view

    @property
    def settings(self) -> LedgerSettings:
        return self._settings

    def close(self) -> None:
        """Stop receiving snapshots."""
        self._unsubscribe()

    def _require(self, record_id: str) -> TransactionRecord:
        record = self._state.find(record_id)
        if record is None:
            raise NotFoundError(f"Transaction not found: {record_id}")
        return record

    async def _log_save_failed(
        self,
        operation: str,
        error: StorageError,
        correlation_id: UUID,
        record_id: Optional[str] = None,
    ) -> None:
        if self._audit_logger:
            await self._audit_logger.log_save_failed(
                operation=operation,
                error_message=str(error),
                correlation_id=correlation_id,
                record_id=record_id,
            )

    async def refresh(self, correlation_id: Optional[UUID] = None) -> LedgerView:
        """Pull a fresh snapshot from storage and return the new view."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            await self._storage.refresh()
        except ConnectionError as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="storage",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="refresh_failed",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise
        return self.view

    def validate(self, form: TransactionForm) -> ValidationResult:
        """Validate a form against the current vocabulary without writing."""
        return self._validator.validate(form, self.view.vocabulary)

    def describe_validation(self, result: ValidationResult) -> str:
        return self._validator.get_user_friendly_summary(result)

    async def add_transaction(
        self,
        form: TransactionForm,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[TransactionRecord], ValidationResult]:
        """
        Validate and store a new entry.

        Returns:
            (record, validation_result); record is None when validation
            failed, in which case storage was not called.

        Raises:
            StorageError: If storage rejected the write
        """
        correlation_id = correlation_id or create_correlation_id()

        result = self.validate(form)
        if not result.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    issues=[
                        {"field": i.field, "type": i.issue_type, "message": i.message}
                        for i in result.issues
                        if i.severity == "error"
                    ],
                    correlation_id=correlation_id,
                )
            return None, result

        try:
            record = await self._storage.create_transaction(result.draft)
        except StorageError as e:
            await self._log_save_failed("create", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_created(
                record_id=record.id,
                item=record.item,
                amount=str(record.amount),
                payer=record.payer,
                correlation_id=correlation_id,
            )

        return record, result

    async def edit_transaction(
        self,
        record_id: str,
        form: TransactionForm,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[bool, ValidationResult]:
        """
        Replace the user-editable fields of an unpaid entry.

        Only fields that actually changed are sent to storage.

        Returns:
            (accepted, validation_result). accepted is False only when
            validation failed; an edit with no changes is accepted without
            a write.

        Raises:
            NotFoundError: If the entry is not in the current snapshot
            TransactionLockedError: If the entry is already paid
            StorageError: If storage rejected the write
        """
        correlation_id = correlation_id or create_correlation_id()
        record = self._require(record_id)

        try:
            ensure_editable(record)
        except TransactionLockedError as e:
            if self._audit_logger:
                await self._audit_logger.log_edit_rejected(
                    record_id=record_id,
                    reason=str(e),
                    correlation_id=correlation_id,
                )
            raise

        result = self.validate(form)
        if not result.is_valid:
            if self._audit_logger:
                await self._audit_logger.log_validation_failed(
                    issues=[
                        {"field": i.field, "type": i.issue_type, "message": i.message}
                        for i in result.issues
                        if i.severity == "error"
                    ],
                    correlation_id=correlation_id,
                    record_id=record_id,
                )
            return False, result

        changes = {
            field: value
            for field, value in result.draft.to_fields().items()
            if getattr(record, field) != value
        }
        if not changes:
            return True, result

        try:
            await self._storage.update_transaction(record_id, changes)
        except StorageError as e:
            await self._log_save_failed("update", e, correlation_id, record_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_transaction_updated(
                record_id=record_id,
                changed_fields=sorted(changes),
                correlation_id=correlation_id,
            )

        return True, result

    async def mark_paid(
        self,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Settle an entry.

        Returns:
            True if the settlement write was dispatched. False when the
            entry is already paid or another mark-paid for it is still in
            flight; both are no-ops, not errors.

        Raises:
            NotFoundError: If the entry is not in the current snapshot
            StorageError: If storage rejected the write
        """
        correlation_id = correlation_id or create_correlation_id()
        record = self._require(record_id)

        mutation = settlement_mutation(record)
        reason = None
        if mutation is None:
            reason = "already paid"
        elif record_id in self._settling:
            reason = "settlement already in progress"

        if reason is not None:
            if self._audit_logger:
                await self._audit_logger.log_payment_mark_skipped(
                    record_id=record_id,
                    reason=reason,
                    correlation_id=correlation_id,
                )
            return False

        self._settling.add(record_id)
        try:
            await self._storage.update_transaction(record_id, mutation)
        except StorageError as e:
            await self._log_save_failed("mark_paid", e, correlation_id, record_id)
            raise
        finally:
            self._settling.discard(record_id)

        if self._audit_logger:
            await self._audit_logger.log_payment_marked(
                record_id=record_id,
                correlation_id=correlation_id,
            )
        return True

    async def delete_transaction(
        self,
        record_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete an entry. Paid entries may be deleted too.

        Returns:
            True if storage deleted it, False if it was already gone
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            deleted = await self._storage.delete_transaction(record_id)
        except StorageError as e:
            await self._log_save_failed("delete", e, correlation_id, record_id)
            raise

        if deleted and self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                record_id=record_id,
                correlation_id=correlation_id,
            )
        return deleted

    def export_rows(self) -> list[ExportRow]:
        """Export rows for the current view, in display order."""
        return project_export(
            self.view.records,
            income_label=self._settings.income_category,
            paid_label=self._settings.paid_label,
            unpaid_label=self._settings.unpaid_label,
            date_format=self._settings.export_date_format,
        )

    def export_csv(self) -> str:
        return rows_to_csv(self.export_rows())

    async def export_to_sheet(self, correlation_id: Optional[UUID] = None) -> int:
        """
        Write the export rows to the configured spreadsheet.

        Returns:
            Number of rows written

        Raises:
            StorageError: If no exporter is configured or the write fails
        """
        correlation_id = correlation_id or create_correlation_id()
        if self._exporter is None:
            raise StorageError("No export spreadsheet is configured")

        rows = self.export_rows()
        try:
            written = await self._exporter.write_rows(rows)
        except StorageError as e:
            await self._log_save_failed("export", e, correlation_id)
            raise

        if self._audit_logger:
            await self._audit_logger.log_export_generated(
                row_count=written,
                destination="google_sheets",
                correlation_id=correlation_id,
            )
        return written


def create_app_components(
    use_storage: bool = True,
) -> tuple[LedgerFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use Google Sheets storage.
                    Falls back to in-memory storage when False or when the
                    sheet is not configured.

    Returns:
        (ledger_flow, sheets_client)
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            # Fail here, not on first use, so the in-memory fallback applies
            sheets_client.get_spreadsheet()
            flow = LedgerFlow(
                storage=GoogleSheetsTransactionStorage(sheets_client),
                audit_logger=AuditLogger(GoogleSheetsAuditStorage(sheets_client)),
                exporter=GoogleSheetsExporter(sheets_client),
                settings=settings.ledger,
            )
            return flow, sheets_client
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))

    flow = LedgerFlow(
        storage=InMemoryTransactionStorage(),
        audit_logger=AuditLogger(InMemoryAuditStorage()),
        settings=settings.ledger,
    )
    return flow, None
