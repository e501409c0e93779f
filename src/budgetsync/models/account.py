from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class IntegrationId(str, Enum):
    """Identifier of the provider a linked account belongs to."""

    PLAID = "plaid"


@dataclass(frozen=True, slots=True)
class AccountConfig:
    """One linked provider item and the durable token used to query it."""

    id: str  # provider item id
    integration: IntegrationId
    token: str


@dataclass(frozen=True, slots=True)
class Transaction:
    """
    Canonical transaction shape handed to downstream exporters.

    Note: `institution` and `account` are only populated once the transaction
    has been attached to its owning account.
    """

    integration: IntegrationId
    name: str
    date: date
    amount: float
    currency: str | None
    type: str | None
    account_id: str
    transaction_id: str | None
    category: str | None  # e.g., "Food and Drink - Groceries"
    address: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    pending: bool = False
    institution: str | None = None
    account: str | None = None


@dataclass(frozen=True, slots=True)
class Account:
    """Canonical sub-account shape, optionally carrying its transactions."""

    integration: IntegrationId
    account_id: str
    mask: str | None
    institution: str | None
    account: str | None
    type: str | None
    current: float | None
    available: float | None
    limit: float | None
    currency: str | None
    transactions: tuple[Transaction, ...] = field(default_factory=tuple)
