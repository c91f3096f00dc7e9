"""
Income / Expense Classification

A category is income only when it equals the reserved income label.
Every other category, including ones the user invented, is an expense.
There is no third state.
"""

from decimal import Decimal

from ledger.models.transaction import TransactionRecord


def is_income(category: str, income_label: str) -> bool:
    """True iff category is the reserved income label."""
    return category == income_label


def signed_amount(record: TransactionRecord, income_label: str) -> Decimal:
    """Amount with the display sign applied: income positive, expense negative."""
    if is_income(record.category, income_label) or not record.amount:
        return record.amount
    # copy_negate is exact; unary minus rounds to the context precision
    return record.amount.copy_negate()
