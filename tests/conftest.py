"""Pytest configuration shared by the ledger tests.

Settings are read from the environment and a local ``.env`` file, and
``get_settings`` caches the result. Each test starts from a clean cache and
without any ``LEDGER_`` overrides so a developer's own configuration cannot
change the expected ordering or classification.
"""

import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from ledger.config import LedgerSettings, get_settings
from ledger.models.transaction import TransactionRecord


T0 = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch):
    for name in list(os.environ):
        if name.startswith(("LEDGER_", "GOOGLE_SHEETS_")):
            monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> LedgerSettings:
    return LedgerSettings(
        canonical_categories=["Income", "Category A", "Category B", "Misc"],
        income_category="Income",
    )


@pytest.fixture
def make_record():
    """Factory for records; minutes is the offset from a fixed base time."""
    counter = iter(range(1, 10_000))

    def _make(
        item: str = "Item",
        category: str = "Misc",
        amount="10",
        payer: str = "Ann",
        minutes=0,
        is_paid: bool = False,
        record_id=None,
        **extra,
    ) -> TransactionRecord:
        return TransactionRecord(
            id=record_id or f"r{next(counter)}",
            item=item,
            category=category,
            amount=Decimal(str(amount)),
            payer=payer,
            timestamp=None if minutes is None else T0 + timedelta(minutes=minutes),
            is_paid=is_paid,
            **extra,
        )

    return _make
