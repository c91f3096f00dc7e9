"""
Ledger Aggregation

Folds a record set into the financial summary shown under the entry list.

DESIGN DECISION: All sums use Decimal inside exact_context(), whose precision
is the decimal module's maximum. Addition never rounds there, so the result
does not depend on the order records arrive in or on how many digits an
amount has, and net_balance == total_income - total_expense holds exactly.
"""

from contextlib import contextmanager
from decimal import MAX_EMAX, MAX_PREC, MIN_EMIN, Decimal, localcontext
from typing import Iterable

from ledger.core.classifier import is_income
from ledger.models.transaction import LedgerSummary, TransactionRecord


ZERO = Decimal("0")


@contextmanager
def exact_context():
    """Decimal context in which addition and subtraction never round."""
    with localcontext() as ctx:
        ctx.prec = MAX_PREC
        ctx.Emax = MAX_EMAX
        ctx.Emin = MIN_EMIN
        yield ctx


def payer_totals(records: Iterable[TransactionRecord]) -> dict[str, Decimal]:
    """
    Money handled per payer, in first-seen payer order.

    Income and expense entries both count: this is what each person
    handled, not what they are owed.
    """
    totals: dict[str, Decimal] = {}
    with exact_context():
        for record in records:
            totals[record.payer] = totals.get(record.payer, ZERO) + record.amount
    return totals


def summarize(
    records: Iterable[TransactionRecord],
    income_label: str,
) -> LedgerSummary:
    """
    Compute the summary for a record set.

    An empty record set gives zero totals and an empty payer mapping.
    """
    records = list(records)

    total_income = ZERO
    total_expense = ZERO
    paid_total = ZERO
    unpaid_total = ZERO

    with exact_context():
        for record in records:
            if is_income(record.category, income_label):
                total_income += record.amount
            else:
                total_expense += record.amount

            if record.is_paid:
                paid_total += record.amount
            else:
                unpaid_total += record.amount

        net_balance = total_income - total_expense
        grand_total = paid_total + unpaid_total

    return LedgerSummary(
        total_income=total_income,
        total_expense=total_expense,
        net_balance=net_balance,
        payer_handled=payer_totals(records),
        grand_total=grand_total,
        paid_total=paid_total,
        unpaid_total=unpaid_total,
        record_count=len(records),
    )
