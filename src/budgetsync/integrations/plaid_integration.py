from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import date, datetime
from typing import TypedDict
import uuid

from dateutil.relativedelta import relativedelta
import loguru
from loguru import logger

from budgetsync.infra.clients.plaid import (
    PlaidClient,
    PublicTokenExchangeResponse,
    TransactionsGetResponse,
)
from budgetsync.infra.credentials import CredentialStore
from budgetsync.link.server import (
    DEFAULT_LINK_HOST,
    DEFAULT_LINK_PORT,
    HandshakeResult,
    LinkServer,
)
from budgetsync.models.account import Account, AccountConfig, IntegrationId
from budgetsync.sync.fetcher import FetcherLogger, fetch_paged_transactions
from budgetsync.sync.normalizer import to_account, to_transaction
from budgetsync.sync.reconciler import attach

ACCOUNT_NAME_PLACEHOLDER = "Error fetching account name"

# Institutions may not serve history older than this.
HISTORY_WARNING_MONTHS = 5


class AccountName(TypedDict):
    name: str
    token: str


class PlaidIntegrationLogger:
    """Handles all logging for PlaidIntegration with business logic separated."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def history_too_old(self, start_date: date) -> None:
        self._logger.bind(start_date=str(start_date)).warning(
            "Transaction history older than 6 months may not be available "
            "for some institutions."
        )

    def account_fetched(
        self, account_id: str, sub_account_count: int, transaction_count: int
    ) -> None:
        self._logger.bind(
            account=account_id,
            sub_accounts=sub_account_count,
            transactions=transaction_count,
        ).info(
            "Fetched {} sub-accounts and {} transactions.",
            sub_account_count,
            transaction_count,
        )

    def account_fetch_failed(self, account_id: str, error: Exception) -> None:
        self._logger.bind(account=account_id).opt(exception=error).error(
            "Error fetching account {}.", account_id
        )

    def token_saved(self, item_id: str) -> None:
        self._logger.bind(item_id=item_id).info("Plaid access token saved.")

    def account_name_failed(self, item_id: str, error: Exception) -> None:
        self._logger.bind(item_id=item_id).warning(
            "Failed to fetch account name for {}: {}", item_id, error
        )


class PlaidIntegration:
    """Plaid-backed account fetching and credential linking.

    Example:
        async with PlaidClient.from_env() as client:
            integration = PlaidIntegration(client=client, store=store)
            accounts = await integration.fetch_account(config, start, end)
    """

    def __init__(
        self,
        *,
        client: PlaidClient,
        store: CredentialStore,
        today: Callable[[], date] = date.today,
        max_pages: int | None = None,
        integration_logger: PlaidIntegrationLogger | None = None,
        fetch_logger: FetcherLogger | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self._today = today
        self._max_pages = max_pages
        self._logger = integration_logger or PlaidIntegrationLogger()
        self._fetch_logger = fetch_logger or FetcherLogger()

    @property
    def store(self) -> CredentialStore:
        return self._store

    # Credential exchange -------------------------------------------------

    async def create_link_token(self, access_token: str | None = None) -> str:
        """Create a Link token for the linking widget page."""
        return await self._client.create_link_token(
            user_id=f"budgetsync-user-{uuid.uuid4()}",
            access_token=access_token,
        )

    async def exchange_access_token(self, access_token: str) -> str:
        """Exchange an expired API access_token for a new Link public_token."""
        return await self._client.create_public_token(access_token)

    def save_public_token(
        self, token_response: PublicTokenExchangeResponse
    ) -> AccountConfig:
        """Persist the durable token keyed by item id, replacing any old one."""
        config = AccountConfig(
            id=token_response.item_id,
            integration=IntegrationId.PLAID,
            token=token_response.access_token,
        )
        self._store.put(config)
        self._logger.token_saved(config.id)
        return config

    async def exchange_public_token(self, public_token: str) -> AccountConfig:
        """Exchange a Link public_token and persist the resulting credential."""
        token_response = await self._client.exchange_public_token(public_token)
        return self.save_public_token(token_response)

    async def list_account_names(self) -> list[AccountName]:
        """Return a display name for every linked item.

        Lookups run concurrently; a failed lookup is reported with a
        placeholder name instead of failing the listing.
        """

        async def lookup(config: AccountConfig) -> AccountName:
            try:
                resp = await self._client.get_accounts(config.token)
                return {"name": resp.accounts[0].name, "token": config.token}
            except Exception as e:
                self._logger.account_name_failed(config.id, e)
                return {"name": ACCOUNT_NAME_PLACEHOLDER, "token": config.token}

        configs = list(self._store.load().values())
        return list(await asyncio.gather(*(lookup(config) for config in configs)))

    async def add_account(
        self,
        *,
        host: str = DEFAULT_LINK_HOST,
        port: int = DEFAULT_LINK_PORT,
        timeout_seconds: float | None = None,
    ) -> HandshakeResult:
        """Run one credential handshake through a local Link server.

        Raises:
            LinkCancelledError: If the user exits the widget
            LinkFailedError: If the widget reports an error
            LinkTimeoutError: If the handshake does not close in time
            PlaidClientError: If the public token exchange fails
        """
        async with LinkServer(self, host=host, port=port) as server:
            return await server.wait_closed(timeout_seconds=timeout_seconds)

    # Transactions ----------------------------------------------------------

    async def fetch_paged_transactions(
        self,
        account_config: AccountConfig,
        start_date: date | datetime,
        end_date: date | datetime,
    ) -> TransactionsGetResponse:
        return await fetch_paged_transactions(
            self._client,
            account_config,
            start_date,
            end_date,
            max_pages=self._max_pages,
            fetch_logger=self._fetch_logger,
        )

    async def fetch_account(
        self,
        account_config: AccountConfig,
        start_date: date | datetime,
        end_date: date | datetime,
    ) -> list[Account]:
        """Fetch, normalize and reconcile every sub-account of one item.

        Never raises: any failure is logged and yields an empty list so one
        broken item cannot take down a multi-account run.
        """
        start = start_date.date() if isinstance(start_date, datetime) else start_date
        if start < self._today() - relativedelta(months=HISTORY_WARNING_MONTHS):
            self._logger.history_too_old(start)

        try:
            data = await self.fetch_paged_transactions(
                account_config, start_date, end_date
            )
            accounts = [to_account(raw) for raw in data.accounts]
            transactions = [to_transaction(raw) for raw in data.transactions]
            reconciled = attach(accounts, transactions)
        except Exception as e:
            self._logger.account_fetch_failed(account_config.id, e)
            return []

        self._logger.account_fetched(
            account_config.id, len(data.accounts), data.total_transactions
        )
        return reconciled
