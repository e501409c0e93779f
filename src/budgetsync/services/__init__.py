from budgetsync.services.fetch_all import (
    TRANSACTION_WARNING_THRESHOLD,
    fetch_all_accounts,
    sorted_transactions,
    to_export_payload,
)

__all__ = [
    "TRANSACTION_WARNING_THRESHOLD",
    "fetch_all_accounts",
    "sorted_transactions",
    "to_export_payload",
]
