"""Fetch, normalize and reconcile provider records."""

from budgetsync.sync.fetcher import (
    PAGE_SIZE,
    PageCursor,
    PaginationLimitError,
    fetch_paged_transactions,
)
from budgetsync.sync.normalizer import to_account, to_transaction
from budgetsync.sync.reconciler import attach

__all__ = [
    "PAGE_SIZE",
    "PageCursor",
    "PaginationLimitError",
    "attach",
    "fetch_paged_transactions",
    "to_account",
    "to_transaction",
]
