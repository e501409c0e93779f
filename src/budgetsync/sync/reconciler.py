from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import replace

from budgetsync.models.account import Account, Transaction


def attach(
    accounts: Iterable[Account], transactions: Iterable[Transaction]
) -> list[Account]:
    """Embed each transaction in the account whose account_id it references.

    Attached transactions are stamped with the account's institution and
    display name. Transactions referencing no account in the batch are
    dropped; accounts without transactions get an empty tuple.
    """
    by_account: defaultdict[str, list[Transaction]] = defaultdict(list)
    for txn in transactions:
        by_account[txn.account_id].append(txn)

    return [
        replace(
            account,
            transactions=tuple(
                replace(txn, institution=account.institution, account=account.account)
                for txn in by_account.get(account.account_id, ())
            ),
        )
        for account in accounts
    ]
