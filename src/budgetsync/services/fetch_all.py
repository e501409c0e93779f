from __future__ import annotations

import asyncio
from datetime import date, datetime
from typing import Any

from loguru import logger

from budgetsync.infra.credentials import CredentialStore
from budgetsync.integrations.plaid_integration import PlaidIntegration
from budgetsync.models.account import Account, Transaction

# Plaid's /transactions/get page size; a run at or above it is worth a look.
TRANSACTION_WARNING_THRESHOLD = 500


async def fetch_all_accounts(
    integration: PlaidIntegration,
    store: CredentialStore,
    start_date: date | datetime,
    end_date: date | datetime,
) -> list[Account]:
    """Fetch every stored item concurrently and flatten their accounts.

    Each item is isolated by PlaidIntegration.fetch_account, so a failing item
    contributes no accounts instead of failing the run.
    """
    configs = list(store.load().values())
    results = await asyncio.gather(
        *(integration.fetch_account(config, start_date, end_date) for config in configs)
    )
    accounts = [account for item_accounts in results for account in item_accounts]

    total = sum(len(account.transactions) for account in accounts)
    if total >= TRANSACTION_WARNING_THRESHOLD:
        logger.bind(total=total).error(
            "More than {} transactions in this window ({})!",
            TRANSACTION_WARNING_THRESHOLD,
            total,
        )
    return accounts


def sorted_transactions(accounts: list[Account]) -> list[Transaction]:
    """Every embedded transaction across accounts, oldest first."""
    return sorted(
        (txn for account in accounts for txn in account.transactions),
        key=lambda txn: txn.date,
    )


def to_export_payload(accounts: list[Account]) -> dict[str, Any]:
    """JSON-ready payload handed to the external spreadsheet writer."""

    def _txn(txn: Transaction) -> dict[str, Any]:
        return {
            "integration": txn.integration.value,
            "name": txn.name,
            "date": txn.date.isoformat(),
            "amount": txn.amount,
            "currency": txn.currency,
            "type": txn.type,
            "accountId": txn.account_id,
            "transactionId": txn.transaction_id,
            "category": txn.category,
            "address": txn.address,
            "city": txn.city,
            "state": txn.state,
            "postalCode": txn.postal_code,
            "country": txn.country,
            "latitude": txn.latitude,
            "longitude": txn.longitude,
            "pending": txn.pending,
            "institution": txn.institution,
            "account": txn.account,
        }

    return {
        "accounts": [
            {
                "integration": account.integration.value,
                "accountId": account.account_id,
                "mask": account.mask,
                "institution": account.institution,
                "account": account.account,
                "type": account.type,
                "current": account.current,
                "available": account.available,
                "limit": account.limit,
                "currency": account.currency,
                "transactions": [_txn(txn) for txn in account.transactions],
            }
            for account in accounts
        ],
        "transactions": [_txn(txn) for txn in sorted_transactions(accounts)],
    }
