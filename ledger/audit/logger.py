"""
Audit Logger

DESIGN DECISION: Every write against the ledger is logged.
This provides:
1. Complete traceability of who changed which entry
2. Debugging capability when storage rejects a write
3. A history the group can read back in the AuditLog sheet

The audit logger:
- Is async so it can sit in the same flows as storage calls
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger.models.audit import AuditEvent, AuditEventBuilder
from ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """
    Route structured logs to stderr at the given level.

    Entry points call this once; library code only calls structlog.get_logger.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        elif event.severity.value == "debug":
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_transaction_created(
        self,
        record_id: str,
        item: str,
        amount: str,
        payer: str,
        correlation_id: UUID,
    ) -> None:
        """Log a new entry."""
        await self.log(AuditEventBuilder.transaction_created(
            record_id=record_id,
            item=item,
            amount=amount,
            payer=payer,
            correlation_id=correlation_id,
        ))

    async def log_transaction_updated(
        self,
        record_id: str,
        changed_fields: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_updated(
            record_id=record_id,
            changed_fields=changed_fields,
            correlation_id=correlation_id,
        ))

    async def log_transaction_deleted(
        self,
        record_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_deleted(
            record_id=record_id,
            correlation_id=correlation_id,
        ))

    async def log_edit_rejected(
        self,
        record_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log an edit refused by policy (e.g. the entry is already paid)."""
        await self.log(AuditEventBuilder.edit_rejected(
            record_id=record_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_validation_failed(
        self,
        issues: list[dict],
        correlation_id: UUID,
        record_id: Optional[str] = None,
    ) -> None:
        """Log validation failure."""
        await self.log(AuditEventBuilder.validation_failed(
            issues=issues,
            correlation_id=correlation_id,
            record_id=record_id,
        ))

    async def log_payment_marked(
        self,
        record_id: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.payment_marked(
            record_id=record_id,
            correlation_id=correlation_id,
        ))

    async def log_payment_mark_skipped(
        self,
        record_id: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log a mark-paid request that was ignored."""
        await self.log(AuditEventBuilder.payment_mark_skipped(
            record_id=record_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        operation: str,
        error_message: str,
        correlation_id: UUID,
        record_id: Optional[str] = None,
    ) -> None:
        """Log a write rejected by storage."""
        await self.log(AuditEventBuilder.save_failed(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
            record_id=record_id,
        ))

    async def log_export_generated(
        self,
        row_count: int,
        destination: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.export_generated(
            row_count=row_count,
            destination=destination,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding an entry).
    Pass it through all subsequent operations.
    """
    return uuid4()
