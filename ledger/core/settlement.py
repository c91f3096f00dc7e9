"""
Settlement State Machine

Each entry is either UNPAID (initial) or PAID (terminal):

    UNPAID --mark_paid--> PAID

Asking to mark a PAID entry again is not an error. It is a no-op, so a
double click or two people pressing the button at once settle the entry
exactly once. No transition back to UNPAID is exposed.

Paid entries are also locked against edits.
"""

from typing import Any, Optional

from ledger.models.transaction import PaymentStatus, TransactionRecord


class TransactionLockedError(Exception):
    """Attempted to edit an entry that has already been settled."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Transaction {record_id} is paid and can no longer be edited")


def can_mark_paid(record: TransactionRecord) -> bool:
    return record.payment_status == PaymentStatus.UNPAID


def settlement_mutation(record: TransactionRecord) -> Optional[dict[str, Any]]:
    """
    The single-field update that settles this record.

    Returns:
        {"is_paid": True} for an unpaid record, None when the record is
        already paid and nothing should be written.
    """
    if not can_mark_paid(record):
        return None
    return {"is_paid": True}


def ensure_editable(record: TransactionRecord) -> None:
    """Raise TransactionLockedError if the record has been settled."""
    if record.payment_status == PaymentStatus.PAID:
        raise TransactionLockedError(record.id)
