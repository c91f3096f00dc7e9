"""
Data Models Package

This package contains all Pydantic models used by the shared ledger.
All data flowing through the system must conform to these schemas.
"""

from ledger.models.transaction import (
    CategoryLabel,
    ExportRow,
    LedgerSnapshot,
    LedgerSummary,
    LedgerView,
    PayerName,
    PaymentStatus,
    TransactionDraft,
    TransactionForm,
    TransactionRecord,
    ValidationIssue,
    ValidationResult,
    Vocabulary,
)
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CategoryLabel",
    "ExportRow",
    "LedgerSnapshot",
    "LedgerSummary",
    "LedgerView",
    "PayerName",
    "PaymentStatus",
    "TransactionDraft",
    "TransactionForm",
    "TransactionRecord",
    "ValidationIssue",
    "ValidationResult",
    "Vocabulary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
