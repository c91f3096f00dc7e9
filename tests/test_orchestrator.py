"""
Integration tests for LedgerFlow

Flows run against the in-memory store so every snapshot round-trip is real;
audit events are captured in InMemoryAuditStorage and asserted on.
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from ledger.audit import AuditLogger
from ledger.core.settlement import TransactionLockedError
from ledger.models.audit import AuditEventType
from ledger.models.transaction import LedgerSnapshot, TransactionForm
from ledger.orchestrator import LedgerFlow, create_app_components
from ledger.services.storage import (
    ConnectionError,
    InMemoryAuditStorage,
    InMemoryTransactionStorage,
    NotFoundError,
    StorageError,
)


class FlowHarness:
    """A LedgerFlow wired to in-memory storage with its audit trail exposed."""

    def __init__(self, settings, records=None, exporter=None):
        self.storage = InMemoryTransactionStorage(records=records)
        self.audit = InMemoryAuditStorage()
        self.flow = LedgerFlow(
            storage=self.storage,
            audit_logger=AuditLogger(self.audit),
            exporter=exporter,
            settings=settings,
        )
        if records:
            asyncio.run(self.flow.refresh())

    def run(self, coro):
        return asyncio.run(coro)

    def event_types(self):
        # Insertion order; timestamps can tie within one flow
        return [e.event_type for e in self.audit._events]


@pytest.fixture
def harness(settings):
    return FlowHarness(settings)


def _form(**overrides) -> TransactionForm:
    fields = {"item": "Tent", "category": "Misc", "amount": "100", "payer": "Ann"}
    fields.update(overrides)
    return TransactionForm(**fields)


class TestAddTransaction:

    def test_add_updates_view(self, harness):
        record, result = harness.run(harness.flow.add_transaction(_form()))

        assert result.is_valid
        assert record.is_paid is False
        view = harness.flow.view
        assert [r.id for r in view.records] == [record.id]
        assert view.vocabulary.payers == ["Ann"]
        assert view.summary.total_expense == Decimal("100")
        assert harness.event_types() == [AuditEventType.TRANSACTION_CREATED]

    def test_tent_and_grant(self, harness):
        harness.run(harness.flow.add_transaction(_form()))
        harness.run(harness.flow.add_transaction(
            _form(item="Grant", category="Income", amount="500", payer="Bea")
        ))

        view = harness.flow.view
        assert [r.item for r in view.records] == ["Grant", "Tent"]
        assert view.summary.net_balance == Decimal("400")
        assert view.summary.payer_handled == {"Ann": Decimal("100"), "Bea": Decimal("500")}

    def test_empty_amount_never_reaches_storage(self, settings):
        storage = MagicMock(spec=InMemoryTransactionStorage)
        storage.subscribe.return_value = lambda: None
        flow = LedgerFlow(storage=storage, settings=settings)

        record, result = asyncio.run(flow.add_transaction(_form(amount="")))

        assert record is None
        assert not result.is_valid
        storage.create_transaction.assert_not_called()

    def test_validation_failure_audited(self, harness):
        harness.run(harness.flow.add_transaction(_form(amount="abc")))
        assert harness.event_types() == [AuditEventType.VALIDATION_FAILED]
        assert harness.flow.view.is_empty

    def test_storage_failure_leaves_view_unchanged(self, harness):
        harness.storage.create_transaction = AsyncMock(side_effect=StorageError("offline"))

        with pytest.raises(StorageError):
            harness.run(harness.flow.add_transaction(_form()))

        assert harness.flow.view.is_empty
        assert harness.event_types() == [AuditEventType.SAVE_FAILED]


class TestEditTransaction:

    def test_edit_sends_only_changed_fields(self, harness):
        record, _ = harness.run(harness.flow.add_transaction(_form()))
        harness.storage.update_transaction = AsyncMock(wraps=harness.storage.update_transaction)

        accepted, _ = harness.run(harness.flow.edit_transaction(record.id, _form(amount="120", note="two")))

        assert accepted
        harness.storage.update_transaction.assert_awaited_once_with(
            record.id, {"amount": Decimal("120"), "note": "two"}
        )
        assert harness.flow.view.records[0].amount == Decimal("120")

    def test_edit_without_changes_skips_write(self, harness):
        record, _ = harness.run(harness.flow.add_transaction(_form()))
        harness.storage.update_transaction = AsyncMock()

        accepted, _ = harness.run(harness.flow.edit_transaction(record.id, _form()))

        assert accepted
        harness.storage.update_transaction.assert_not_awaited()

    def test_invalid_edit_rejected(self, harness):
        record, _ = harness.run(harness.flow.add_transaction(_form()))

        accepted, result = harness.run(harness.flow.edit_transaction(record.id, _form(payer="")))

        assert not accepted
        assert result.has_errors
        assert harness.flow.view.records[0].payer == "Ann"

    def test_paid_entry_locked(self, harness):
        record, _ = harness.run(harness.flow.add_transaction(_form()))
        harness.run(harness.flow.mark_paid(record.id))

        with pytest.raises(TransactionLockedError):
            harness.run(harness.flow.edit_transaction(record.id, _form(amount="1")))

        assert AuditEventType.EDIT_REJECTED in harness.event_types()
        assert harness.flow.view.records[0].amount == Decimal("100")

    def test_unknown_entry(self, harness):
        with pytest.raises(NotFoundError):
            harness.run(harness.flow.edit_transaction("missing", _form()))


class TestMarkPaid:

    def test_mark_paid(self, harness):
        record, _ = harness.run(harness.flow.add_transaction(_form()))

        assert harness.run(harness.flow.mark_paid(record.id)) is True
        assert harness.flow.view.records[0].is_paid is True
        assert harness.flow.view.summary.paid_total == Decimal("100")

    def test_mark_paid_twice_writes_once(self, harness):
        record, _ = harness.run(harness.flow.add_transaction(_form()))
        harness.storage.update_transaction = AsyncMock(wraps=harness.storage.update_transaction)

        assert harness.run(harness.flow.mark_paid(record.id)) is True
        assert harness.run(harness.flow.mark_paid(record.id)) is False

        harness.storage.update_transaction.assert_awaited_once_with(record.id, {"is_paid": True})
        assert harness.flow.view.records[0].is_paid is True
        assert AuditEventType.PAYMENT_MARK_SKIPPED in harness.event_types()

    def test_already_paid_issues_no_mutation(self, settings, make_record):
        paid = make_record(record_id="paid", is_paid=True)
        h = FlowHarness(settings, records=[paid])
        h.storage.update_transaction = AsyncMock()

        assert h.run(h.flow.mark_paid("paid")) is False
        h.storage.update_transaction.assert_not_awaited()

    def test_concurrent_requests_settle_once(self, harness):
        record, _ = harness.run(harness.flow.add_transaction(_form()))
        real_update = harness.storage.update_transaction
        calls = []

        async def slow_update(record_id, changes):
            calls.append(changes)
            await asyncio.sleep(0)
            return await real_update(record_id, changes)

        harness.storage.update_transaction = slow_update

        async def both():
            return await asyncio.gather(
                harness.flow.mark_paid(record.id),
                harness.flow.mark_paid(record.id),
            )

        results = harness.run(both())

        assert sorted(results) == [False, True]
        assert calls == [{"is_paid": True}]

    def test_failed_write_can_be_retried(self, harness):
        record, _ = harness.run(harness.flow.add_transaction(_form()))
        real_update = harness.storage.update_transaction
        harness.storage.update_transaction = AsyncMock(side_effect=StorageError("offline"))

        with pytest.raises(StorageError):
            harness.run(harness.flow.mark_paid(record.id))
        assert harness.flow.view.records[0].is_paid is False

        harness.storage.update_transaction = real_update
        assert harness.run(harness.flow.mark_paid(record.id)) is True


class TestDeleteAndSnapshots:

    def test_delete_removes_names_from_vocabulary(self, harness):
        record, _ = harness.run(harness.flow.add_transaction(_form(payer="Dan", category="Fuel")))
        assert "Fuel" in harness.flow.view.vocabulary.categories

        assert harness.run(harness.flow.delete_transaction(record.id)) is True

        assert harness.flow.view.is_empty
        assert "Dan" not in harness.flow.view.vocabulary.payers
        assert "Fuel" not in harness.flow.view.vocabulary.categories

    def test_delete_paid_entry_allowed(self, harness):
        record, _ = harness.run(harness.flow.add_transaction(_form()))
        harness.run(harness.flow.mark_paid(record.id))
        assert harness.run(harness.flow.delete_transaction(record.id)) is True

    def test_stale_snapshot_does_not_roll_back(self, harness, make_record):
        harness.run(harness.flow.add_transaction(_form()))
        current = harness.flow.view.snapshot_version

        harness.flow._state.apply_snapshot(
            LedgerSnapshot(records=(make_record(item="ghost"),), version=current - 1)
        )

        assert [r.item for r in harness.flow.view.records] == ["Tent"]

    def test_close_stops_updates(self, harness):
        harness.flow.close()
        harness.run(harness.storage.create_transaction(
            harness.flow.validate(_form()).draft
        ))
        assert harness.flow.view.is_empty

    def test_refresh_connection_error_audited(self, harness):
        harness.storage.list_transactions = AsyncMock(side_effect=ConnectionError("no network"))

        with pytest.raises(ConnectionError):
            harness.run(harness.flow.refresh())

        assert harness.event_types() == [AuditEventType.EXTERNAL_SERVICE_ERROR]


class TestExport:

    def test_export_rows_follow_view_order(self, harness):
        harness.run(harness.flow.add_transaction(_form()))
        harness.run(harness.flow.add_transaction(
            _form(item="Grant", category="Income", amount="500", payer="Bea")
        ))

        rows = harness.flow.export_rows()
        assert [(r.item, r.signed_amount) for r in rows] == [
            ("Grant", Decimal("500")),
            ("Tent", Decimal("-100")),
        ]
        assert harness.flow.export_csv().splitlines()[0] == "Date,Item,Category,Amount,Payer,Note,Status"

    def test_export_to_sheet_without_exporter(self, harness):
        with pytest.raises(StorageError):
            harness.run(harness.flow.export_to_sheet())

    def test_export_to_sheet(self, settings):
        exporter = MagicMock()
        exporter.write_rows = AsyncMock(return_value=1)
        h = FlowHarness(settings, exporter=exporter)
        h.run(h.flow.add_transaction(_form()))

        assert h.run(h.flow.export_to_sheet()) == 1
        assert AuditEventType.EXPORT_GENERATED in h.event_types()


class TestCreateAppComponents:

    def test_falls_back_to_memory(self):
        flow, client = create_app_components(use_storage=False)
        assert client is None
        assert flow.view.is_empty
        assert flow.settings.income_category == "Income"
