"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from budgetsync.infra.clients.plaid import PlaidAccountModel, PlaidTransactionModel

RawFactory = Callable[..., dict[str, Any]]


@pytest.fixture
def raw_account() -> RawFactory:
    """Build a Plaid /accounts/get account payload with overrides."""

    def build(**overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "account_id": "acc_checking",
            "name": "Plaid Checking",
            "official_name": "Plaid Gold Standard 0% Interest Checking",
            "mask": "0000",
            "type": "depository",
            "subtype": "checking",
            "balances": {
                "current": 110.0,
                "available": 100.0,
                "limit": None,
                "iso_currency_code": "USD",
                "unofficial_currency_code": None,
            },
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def raw_transaction() -> RawFactory:
    """Build a Plaid /transactions/get transaction payload with overrides."""

    def build(**overrides: Any) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "transaction_id": "txn_1",
            "account_id": "acc_checking",
            "amount": 12.5,
            "iso_currency_code": "USD",
            "unofficial_currency_code": None,
            "date": "2024-03-14",
            "name": "Uber 063015 SF**POOL**",
            "pending": False,
            "transaction_type": "special",
            "category": ["Travel", "Taxi"],
            "location": {
                "address": "300 Post St",
                "city": "San Francisco",
                "region": "CA",
                "postal_code": "94108",
                "country": "US",
                "lat": 40.740352,
                "lon": -74.001761,
            },
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def account_model(raw_account: RawFactory) -> Callable[..., PlaidAccountModel]:
    def build(**overrides: Any) -> PlaidAccountModel:
        return PlaidAccountModel.parse(raw_account(**overrides))

    return build


@pytest.fixture
def transaction_model(
    raw_transaction: RawFactory,
) -> Callable[..., PlaidTransactionModel]:
    def build(**overrides: Any) -> PlaidTransactionModel:
        return PlaidTransactionModel.parse(raw_transaction(**overrides))

    return build
