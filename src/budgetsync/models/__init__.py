from budgetsync.models.account import (
    Account,
    AccountConfig,
    IntegrationId,
    Transaction,
)

__all__ = [
    "Account",
    "AccountConfig",
    "IntegrationId",
    "Transaction",
]
