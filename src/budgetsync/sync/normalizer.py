"""Map raw Plaid account and transaction records onto canonical shapes."""

from __future__ import annotations

from datetime import date

from budgetsync.infra.clients.plaid import (
    PlaidAccountModel,
    PlaidTransactionModel,
)
from budgetsync.models.account import Account, IntegrationId, Transaction

CATEGORY_SEPARATOR = " - "


def resolve_currency(iso_code: str | None, unofficial_code: str | None) -> str | None:
    """Return the ISO currency code, or the unofficial code when ISO is absent.

    Plaid populates exactly one of the two; if both are present ISO wins.
    """
    if iso_code:
        return iso_code
    if unofficial_code:
        return unofficial_code
    return None


def resolve_account_type(subtype: str | None, account_type: str | None) -> str | None:
    """Return the refined subtype, falling back to the coarse account type."""
    if subtype:
        return subtype
    if account_type:
        return account_type
    return None


def join_category(levels: list[str] | None) -> str | None:
    """Join category levels in provider order, e.g. "Travel - Airlines"."""
    if levels is None:
        return None
    return CATEGORY_SEPARATOR.join(levels)


def to_account(raw: PlaidAccountModel) -> Account:
    balances = raw.balances
    return Account(
        integration=IntegrationId.PLAID,
        account_id=raw.account_id,
        mask=raw.mask,
        institution=raw.name,
        account=raw.official_name,
        type=resolve_account_type(raw.subtype, raw.type),
        current=balances.current,
        available=balances.available,
        limit=balances.limit,
        currency=resolve_currency(
            balances.iso_currency_code, balances.unofficial_currency_code
        ),
    )


def to_transaction(raw: PlaidTransactionModel) -> Transaction:
    location = raw.location
    return Transaction(
        integration=IntegrationId.PLAID,
        name=raw.name,
        date=date.fromisoformat(raw.date),
        amount=raw.amount,
        currency=resolve_currency(raw.iso_currency_code, raw.unofficial_currency_code),
        type=raw.transaction_type,
        account_id=raw.account_id,
        transaction_id=raw.transaction_id,
        category=join_category(raw.category),
        address=location.address,
        city=location.city,
        state=location.region,
        postal_code=location.postal_code,
        country=location.country,
        latitude=location.lat,
        longitude=location.lon,
        pending=raw.pending,
    )
