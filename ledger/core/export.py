"""
Export Projection

Flattens the ordered ledger into rows for a spreadsheet.

Columns are fixed: Date, Item, Category, Amount, Payer, Note, Status.
Amount carries the income/expense sign. Rows come out in exactly the order
they went in; the caller passes the display order.
"""

import csv
import io
from datetime import datetime
from typing import Iterable, Optional

import structlog

from ledger.core.classifier import signed_amount
from ledger.models.transaction import ExportRow, TransactionRecord


logger = structlog.get_logger(__name__)

EXPORT_COLUMNS = ["Date", "Item", "Category", "Amount", "Payer", "Note", "Status"]


def format_timestamp(timestamp: Optional[datetime], date_format: str) -> str:
    """
    Render a timestamp in local time.

    Returns "" when the timestamp is missing or cannot be rendered,
    so one bad entry never fails a whole export.
    """
    if timestamp is None:
        return ""
    try:
        if timestamp.tzinfo is not None:
            timestamp = timestamp.astimezone()
        return timestamp.strftime(date_format)
    except (ValueError, OverflowError, OSError) as e:
        logger.warning("timestamp_unrenderable", timestamp=repr(timestamp), error=str(e))
        return ""


def project_export(
    ordered_records: Iterable[TransactionRecord],
    income_label: str,
    paid_label: str = "Paid",
    unpaid_label: str = "Unpaid",
    date_format: str = "%Y/%m/%d %H:%M",
) -> list[ExportRow]:
    """Map ordered records to export rows, one per record, same order."""
    return [
        ExportRow(
            date=format_timestamp(record.timestamp, date_format),
            item=record.item,
            category=record.category,
            signed_amount=signed_amount(record, income_label),
            payer=record.payer,
            note=record.note,
            status_label=paid_label if record.is_paid else unpaid_label,
        )
        for record in ordered_records
    ]


def rows_to_csv(rows: Iterable[ExportRow]) -> str:
    """Render rows as CSV text with the header line first."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(EXPORT_COLUMNS)
    for row in rows:
        writer.writerow(row.to_sheets_row())
    return buffer.getvalue()
