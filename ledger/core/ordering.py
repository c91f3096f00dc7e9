"""
Display Ordering

Entries are listed by category rank (position in the canonical order), and
within a rank newest first. Categories outside the canonical order share a
single rank that sorts after every canonical one.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from ledger.models.transaction import TransactionRecord


# Rank for categories missing from the canonical order
UNRANKED = 999


def category_rank(category: str, canonical_order: Sequence[str]) -> int:
    """Index of category in the canonical order, or the unranked sentinel."""
    try:
        return list(canonical_order).index(category)
    except ValueError:
        # Sentinel must stay above every canonical index, however long the list
        return max(UNRANKED, len(canonical_order))


def _timestamp_key(timestamp: Optional[datetime]) -> tuple[bool, datetime]:
    if timestamp is None:
        return (False, datetime.min.replace(tzinfo=timezone.utc))
    if timestamp.tzinfo is None:
        # Naive timestamps are treated as UTC so they compare with aware ones
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return (True, timestamp)


def order_transactions(
    records: Iterable[TransactionRecord],
    canonical_order: Sequence[str],
) -> list[TransactionRecord]:
    """
    Return a new list of records in display order.

    Primary key: category rank ascending.
    Secondary key: timestamp descending; entries without a timestamp come
    last within their rank.
    Entries with equal rank and timestamp keep their input order.

    The input is never mutated.
    """
    ordered = list(records)
    # Two stable passes: the secondary key first, then the primary key
    ordered.sort(key=lambda r: _timestamp_key(r.timestamp), reverse=True)
    ordered.sort(key=lambda r: category_rank(r.category, canonical_order))
    return ordered
