"""
Shared Expense Ledger - Source Package

A small ledger that several people write to at once: every entry records
who handled the money, what it was for and whether it has been settled.

DESIGN PRINCIPLES:
1. Every view is derived from the latest snapshot, never patched in place
2. Fail early, fail visibly (validation before any write)
3. Settlement is one-way: paid entries stay paid
4. Every write is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Shared Ledger Team"
