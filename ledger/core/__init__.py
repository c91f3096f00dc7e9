"""
Ledger core: pure transforms over a snapshot of records.

Nothing in this package performs I/O.
"""

from ledger.core.aggregator import exact_context, payer_totals, summarize
from ledger.core.classifier import is_income, signed_amount
from ledger.core.export import EXPORT_COLUMNS, format_timestamp, project_export, rows_to_csv
from ledger.core.ordering import UNRANKED, category_rank, order_transactions
from ledger.core.settlement import (
    TransactionLockedError,
    can_mark_paid,
    ensure_editable,
    settlement_mutation,
)
from ledger.core.view import LedgerState, build_view
from ledger.core.vocabulary import build_vocabulary

__all__ = [
    "EXPORT_COLUMNS",
    "LedgerState",
    "TransactionLockedError",
    "UNRANKED",
    "build_view",
    "build_vocabulary",
    "can_mark_paid",
    "category_rank",
    "ensure_editable",
    "exact_context",
    "format_timestamp",
    "is_income",
    "order_transactions",
    "payer_totals",
    "project_export",
    "rows_to_csv",
    "settlement_mutation",
    "signed_amount",
    "summarize",
]
