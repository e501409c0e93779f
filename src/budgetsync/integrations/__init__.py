from budgetsync.integrations.plaid_integration import (
    ACCOUNT_NAME_PLACEHOLDER,
    AccountName,
    PlaidIntegration,
)

__all__ = [
    "ACCOUNT_NAME_PLACEHOLDER",
    "AccountName",
    "PlaidIntegration",
]
