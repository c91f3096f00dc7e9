"""
Vocabulary Builder

Derives the payer and category names offered in the entry form from the
records currently in the ledger.

DESIGN DECISION: The vocabulary is rebuilt from the current snapshot every
time. A name used only by deleted entries disappears from the selection;
nothing is retained across snapshots.
"""

from typing import Iterable, Sequence

from ledger.models.transaction import TransactionRecord, Vocabulary


def _first_seen(values: Iterable[str]) -> list[str]:
    # dict keeps insertion order, so this dedupes without re-sorting
    return list(dict.fromkeys(values))


def build_vocabulary(
    records: Iterable[TransactionRecord],
    canonical_order: Sequence[str],
) -> Vocabulary:
    """
    Build the selectable vocabulary for a record set.

    Args:
        records: The current records, in the order storage delivered them
        canonical_order: Preferred category labels

    Returns:
        Vocabulary where payers are in first-seen order and categories are
        the canonical labels followed by any other category found in the
        records, each exactly once.
    """
    records = list(records)
    canonical = _first_seen(canonical_order)
    known = set(canonical)

    extra_categories = _first_seen(
        record.category for record in records if record.category not in known
    )

    return Vocabulary(
        payers=_first_seen(record.payer for record in records),
        categories=canonical + extra_categories,
    )
