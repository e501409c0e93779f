from __future__ import annotations

from datetime import date

from budgetsync.models.account import Account, IntegrationId, Transaction
from budgetsync.sync.reconciler import attach


def create_test_account(account_id: str, institution: str = "Checking") -> Account:
    return Account(
        integration=IntegrationId.PLAID,
        account_id=account_id,
        mask="1234",
        institution=institution,
        account=f"{institution} Official",
        type="checking",
        current=10.0,
        available=10.0,
        limit=None,
        currency="USD",
    )


def create_test_transaction(transaction_id: str, account_id: str) -> Transaction:
    return Transaction(
        integration=IntegrationId.PLAID,
        name=f"Transaction {transaction_id}",
        date=date(2024, 1, 1),
        amount=1.0,
        currency="USD",
        type="place",
        account_id=account_id,
        transaction_id=transaction_id,
        category="Shops",
    )


class TestAttach:
    def test_joins_by_account_id_and_denormalizes(self) -> None:
        # input
        accounts = [
            create_test_account("a", "Checking"),
            create_test_account("b", "Savings"),
        ]
        transactions = [
            create_test_transaction("t1", "a"),
            create_test_transaction("t2", "b"),
            create_test_transaction("t3", "a"),
        ]

        # act
        result = attach(accounts, transactions)

        # assert
        assert [a.account_id for a in result] == ["a", "b"]
        assert [t.transaction_id for t in result[0].transactions] == ["t1", "t3"]
        assert [t.transaction_id for t in result[1].transactions] == ["t2"]
        for account in result:
            for txn in account.transactions:
                assert txn.account_id == account.account_id
                assert txn.institution == account.institution
                assert txn.account == account.account

    def test_orphan_transactions_are_dropped(self) -> None:
        result = attach(
            [create_test_account("a")],
            [create_test_transaction("t1", "a"), create_test_transaction("t2", "zzz")],
        )

        attached = [t.transaction_id for a in result for t in a.transactions]
        assert attached == ["t1"]

    def test_account_without_transactions_kept_with_empty_list(self) -> None:
        result = attach([create_test_account("a")], [])

        assert len(result) == 1
        assert result[0].transactions == ()

    def test_inputs_are_not_mutated(self) -> None:
        account = create_test_account("a")
        txn = create_test_transaction("t1", "a")

        attach([account], [txn])

        assert account.transactions == ()
        assert txn.institution is None
