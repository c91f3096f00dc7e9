"""
Tests for the Shared Ledger models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (with in-memory or mocked storage)
3. No real API calls in tests (use mocks)
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger.config import LedgerSettings
from ledger.models.transaction import (
    ExportRow,
    LedgerSnapshot,
    PaymentStatus,
    TransactionDraft,
    TransactionForm,
    TransactionRecord,
    ValidationIssue,
    ValidationResult,
    escape_formula,
)
from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestTransactionModels:
    """Tests for ledger entry Pydantic models."""

    def test_record_creation(self):
        record = TransactionRecord(
            id="abc",
            item="Tent",
            category="Misc",
            amount=Decimal("100"),
            payer="Ann",
        )
        assert record.item == "Tent"
        assert record.note == ""
        assert record.unit == ""
        assert record.timestamp is None
        assert record.payment_status == PaymentStatus.UNPAID

    def test_record_strips_whitespace(self):
        record = TransactionRecord(id="abc", item="  Tent ", category=" Misc ", amount=1, payer=" Ann ")
        assert record.item == "Tent"
        assert record.category == "Misc"
        assert record.payer == "Ann"

    def test_record_rejects_negative_amount(self):
        with pytest.raises(ValueError):
            TransactionRecord(id="abc", item="Tent", category="Misc", amount=Decimal("-1"), payer="Ann")

    def test_record_rejects_non_finite_amount(self):
        with pytest.raises(ValueError):
            TransactionRecord(id="abc", item="Tent", category="Misc", amount=Decimal("Infinity"), payer="Ann")

    def test_record_rejects_blank_category(self):
        with pytest.raises(ValueError):
            TransactionRecord(id="abc", item="Tent", category="   ", amount=1, payer="Ann")

    def test_record_treats_missing_note_as_empty(self):
        record = TransactionRecord(id="abc", item="Tent", category="Misc", amount=1, payer="Ann", note=None)
        assert record.note == ""

    def test_record_is_immutable(self):
        record = TransactionRecord(id="abc", item="Tent", category="Misc", amount=1, payer="Ann")
        with pytest.raises(ValueError):
            record.is_paid = True

    def test_paid_record_status(self):
        record = TransactionRecord(id="abc", item="Tent", category="Misc", amount=1, payer="Ann", is_paid=True)
        assert record.payment_status == PaymentStatus.PAID

    def test_form_coerces_values_to_text(self):
        form = TransactionForm(item="Tent", amount=12.5, note=None)
        assert form.amount == "12.5"
        assert form.note == ""
        assert form.payer == ""

    def test_draft_to_fields(self):
        draft = TransactionDraft(item="Tent", category="Misc", amount=Decimal("100"), payer="Ann", unit="pcs")
        assert draft.to_fields() == {
            "item": "Tent",
            "category": "Misc",
            "amount": Decimal("100"),
            "payer": "Ann",
            "note": "",
            "unit": "pcs",
        }

    def test_snapshot_rejects_duplicate_ids(self, make_record):
        first = make_record(record_id="same")
        second = make_record(record_id="same", item="Other")
        with pytest.raises(ValueError, match="Duplicate transaction id"):
            LedgerSnapshot(records=(first, second), version=1)

    def test_snapshot_version_cannot_be_negative(self):
        with pytest.raises(ValueError):
            LedgerSnapshot(version=-1)

    def test_export_row_to_sheets_row(self):
        row = ExportRow(
            date="2024/06/01 12:00",
            item="Tent",
            category="Misc",
            signed_amount=Decimal("-100"),
            payer="Ann",
            note="",
            status_label="Unpaid",
        )
        assert row.to_sheets_row() == [
            "2024/06/01 12:00", "Tent", "Misc", "-100", "Ann", "", "Unpaid",
        ]

    def test_escape_formula(self):
        assert escape_formula("=HYPERLINK(\"x\")") == "'=HYPERLINK(\"x\")"
        assert escape_formula("@cmd") == "'@cmd"
        assert escape_formula("Tent, large") == "Tent, large"
        assert escape_formula("") == ""

    def test_export_row_escapes_text_but_not_amount(self):
        row = ExportRow(
            item="+1", category="Misc", signed_amount=Decimal("-3"),
            payer="Ann", note="=1+1", status_label="Unpaid",
        )
        assert row.to_sheets_row() == ["", "'+1", "Misc", "-3", "Ann", "'=1+1", "Unpaid"]


class TestLedgerSettings:
    """Tests for ledger configuration validation."""

    def test_defaults(self):
        settings = LedgerSettings()
        assert settings.canonical_categories == ["Income", "Category A", "Category B", "Misc"]
        assert settings.income_category == "Income"
        assert settings.paid_label == "Paid"
        assert settings.unpaid_label == "Unpaid"

    def test_reads_categories_from_environment(self, monkeypatch):
        monkeypatch.setenv("LEDGER_CANONICAL_CATEGORIES", '["Income", "Food"]')
        settings = LedgerSettings()
        assert settings.canonical_categories == ["Income", "Food"]

    def test_duplicate_categories_rejected(self):
        with pytest.raises(ValueError, match="unique"):
            LedgerSettings(canonical_categories=["Income", "Misc", "Misc"])

    def test_income_must_be_canonical(self):
        with pytest.raises(ValueError, match="Income category"):
            LedgerSettings(canonical_categories=["Food", "Misc"], income_category="Income")


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        event = AuditEvent(
            event_type=AuditEventType.PAYMENT_MARKED,
            entity_type="transaction",
            entity_id="abc",
            description="Settled",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "payment_marked"
        assert log_dict["entity_id"] == "abc"

    def test_audit_event_to_sheets_row(self):
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            description="Updated",
            details={"amount": Decimal("12.50")},
        )
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "transaction_updated"
        assert json.loads(row[8]) == {"amount": "12.50"}

    def test_builder_transaction_created(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.transaction_created(
            record_id="abc",
            item="Tent",
            amount="100",
            payer="Ann",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.TRANSACTION_CREATED
        assert event.entity_type == "transaction"
        assert event.entity_id == "abc"
        assert event.correlation_id == correlation_id

    def test_builder_payment_mark_skipped_is_debug(self):
        event = AuditEventBuilder.payment_mark_skipped(
            record_id="abc",
            reason="already paid",
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.DEBUG

    def test_builder_save_failed_is_error(self):
        event = AuditEventBuilder.save_failed(
            operation="create",
            error_message="quota exceeded",
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.entity_id is None


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        result = ValidationResult(
            schema_valid=False,
            semantic_valid=False,
            is_valid=False,
            issues=[
                ValidationIssue(field="amount", issue_type="missing", message="Amount is required", severity="error"),
                ValidationIssue(field="payer", issue_type="new_value", message="New payer", severity="info"),
            ],
        )
        assert result.has_errors
        assert result.error_count == 1

    def test_validation_result_warnings_only(self):
        result = ValidationResult(
            schema_valid=True,
            semantic_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(field="amount", issue_type="suspicious_value", message="Amount is zero", severity="warning"),
            ],
            warnings=["Amount is zero"],
            validated_at=datetime.now(timezone.utc),
        )
        assert not result.has_errors
        assert result.error_count == 0

    def test_issue_severity_is_restricted(self):
        with pytest.raises(ValueError):
            ValidationIssue(field="amount", issue_type="x", message="x", severity="fatal")
