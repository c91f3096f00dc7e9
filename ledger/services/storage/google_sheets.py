"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the shared storage backend because:
1. Everyone in the group can open the ledger directly in Sheets
2. No database setup required
3. The export lands in the same spreadsheet people already use

TRADEOFFS:
- No change feed: after every write through this process we re-read the
  sheet and publish a fresh snapshot. Edits made by hand in the sheet show
  up on the next write or refresh().
- No transactions (each write is a single row append or one batch of cells)
- Limited query capabilities (everything is filtered in Python)
"""

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID, uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger.config import GoogleSheetsSettings, get_settings
from ledger.core.export import EXPORT_COLUMNS
from ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from ledger.models.transaction import ExportRow, TransactionDraft, TransactionRecord
from ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    check_update_fields,
)


logger = structlog.get_logger(__name__)

# Column mappings for Transactions sheet
TRANSACTION_COLUMNS = [
    "id",
    "timestamp",
    "item",
    "unit",
    "category",
    "amount",
    "payer",
    "note",
    "is_paid",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create_sheet(
        self,
        title: str,
        header: list[str],
        rows: int,
    ) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(header),
            )
            sheet.append_row(header)
        return sheet

    def get_transactions_sheet(self) -> gspread.Worksheet:
        """Get or create the Transactions worksheet."""
        return self._get_or_create_sheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS, rows=1000
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        """Get or create the Audit worksheet."""
        return self._get_or_create_sheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )

    def get_export_sheet(self) -> gspread.Worksheet:
        """Get or create the Export worksheet."""
        return self._get_or_create_sheet(
            self._settings.export_sheet_name, EXPORT_COLUMNS, rows=1000
        )


def _cell_value(field: str, value: Any) -> str:
    """Serialize one record field to its cell text."""
    if field == "timestamp":
        return value.isoformat() if value else ""
    if field == "is_paid":
        return "TRUE" if value else "FALSE"
    if value is None:
        return ""
    return str(value)


def _parse_timestamp(text: str) -> Optional[datetime]:
    # Rows typed in by hand may carry anything here; ordering copes with None
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Entries are stored as rows in a worksheet with one entry per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        super().__init__()
        self._client = client or GoogleSheetsClient()

    def _record_to_row(self, record: TransactionRecord) -> list[str]:
        """Convert a TransactionRecord to a spreadsheet row."""
        return [_cell_value(field, getattr(record, field)) for field in TRANSACTION_COLUMNS]

    def _row_to_record(self, row: list) -> TransactionRecord:
        """Convert a spreadsheet row to a TransactionRecord."""
        # Handle missing columns gracefully
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return TransactionRecord(
            id=safe_get(0),
            timestamp=_parse_timestamp(safe_get(1)),
            item=safe_get(2),
            unit=safe_get(3),
            category=safe_get(4),
            amount=Decimal(safe_get(5)),
            payer=safe_get(6),
            note=safe_get(7),
            is_paid=safe_get(8).strip().lower() in ("true", "1", "yes"),
        )

    def _find_row(self, all_rows: list[list], record_id: str) -> Optional[int]:
        """1-based sheet row number for record_id (row 1 is the header)."""
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == record_id:
                return idx
        return None

    async def _publish_latest(self) -> None:
        try:
            await self.refresh()
        except StorageError as e:
            # The write itself went through; the next refresh will catch up
            logger.warning("snapshot_refresh_failed", error=str(e))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_record(self, record: TransactionRecord) -> None:
        """Append one row for record, unless an earlier attempt already did."""
        sheet = self._client.get_transactions_sheet()
        if self._find_row(sheet.get_all_values(), record.id) is not None:
            # A timed-out append may still have landed
            logger.info("append_already_applied", id=record.id)
            return
        sheet.append_row(self._record_to_row(record), value_input_option="RAW")

    async def create_transaction(self, draft: TransactionDraft) -> TransactionRecord:
        """
        Append a new entry row.

        Identity is assigned once; only the append itself is retried.
        """
        record = TransactionRecord(
            id=uuid4().hex,
            timestamp=datetime.now(timezone.utc),
            is_paid=False,
            **draft.model_dump(),
        )
        try:
            self._append_record(record)
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

        await self._publish_latest()
        return record

    async def update_transaction(self, record_id: str, changes: dict[str, Any]) -> bool:
        """
        Update the cells of the changed fields.

        All cells go out in a single batch_update, so a failed write leaves
        the row as it was.
        """
        check_update_fields(changes)
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()

            row_number = self._find_row(all_rows, record_id)
            if row_number is None:
                raise NotFoundError(f"Transaction not found: {record_id}")

            # Validate the merged record before touching any cell
            current = self._row_to_record(all_rows[row_number - 1])
            updated = TransactionRecord.model_validate({**current.model_dump(), **changes})

            cells = [
                {
                    "range": rowcol_to_a1(row_number, TRANSACTION_COLUMNS.index(field) + 1),
                    "values": [[_cell_value(field, getattr(updated, field))]],
                }
                for field in changes
            ]
            # RAW, as on create, so user text is never parsed as a formula or date
            sheet.batch_update(cells, value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")

        await self._publish_latest()
        return True

    async def delete_transaction(self, record_id: str) -> bool:
        """Delete an entry row by id."""
        try:
            sheet = self._client.get_transactions_sheet()
            row_number = self._find_row(sheet.get_all_values(), record_id)
            if row_number is None:
                return False
            sheet.delete_rows(row_number)
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

        await self._publish_latest()
        return True

    async def list_transactions(self) -> list[TransactionRecord]:
        """Read every entry row; malformed rows are skipped."""
        try:
            sheet = self._client.get_transactions_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

        records: list[TransactionRecord] = []
        seen: set[str] = set()
        for row_number, row in enumerate(all_rows, start=2):
            if not row or not row[0]:  # Skip empty rows
                continue
            try:
                record = self._row_to_record(row)
            except (ValueError, ArithmeticError) as e:
                logger.warning("malformed_row_skipped", row=row_number, error=str(e))
                continue
            if record.id in seen:
                logger.warning("duplicate_row_skipped", row=row_number, id=record.id)
                continue
            seen.add(record.id)
            records.append(record)

        return records


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            correlation_id=UUID(safe_get(6)) if safe_get(6) else None,
            description=safe_get(7),
            details=json.loads(safe_get(8)) if safe_get(8) else {},
            error_message=safe_get(9) or None,
            is_user_action=safe_get(10).lower() == "true",
        )

    def _read_events(self, predicate) -> list[AuditEvent]:
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in all_rows:
            if not row or not row[0] or not predicate(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError:
                continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            logger.warning("audit_write_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = self._read_events(
            lambda row: len(row) > 6 and row[6] == str(correlation_id)
        )
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        events = self._read_events(
            lambda row: len(row) > 5 and row[4] == entity_type and row[5] == entity_id
        )
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events(lambda row: True)
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]


class GoogleSheetsExporter:
    """Writes the export projection to its own worksheet, replacing its contents."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def write_rows(self, rows: list[ExportRow]) -> int:
        """
        Replace the Export sheet with a header and rows.

        Returns:
            Number of data rows written
        """
        try:
            sheet = self._client.get_export_sheet()
            sheet.clear()
            values = [EXPORT_COLUMNS] + [row.to_sheets_row() for row in rows]
            # USER_ENTERED so Sheets parses the signed amounts as numbers
            sheet.append_rows(values, value_input_option="USER_ENTERED")
        except Exception as e:
            raise StorageError(f"Failed to write export: {e}")
        return len(rows)
