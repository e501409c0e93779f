from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Protocol

import loguru
from loguru import logger

from budgetsync.infra.clients.plaid import (
    PlaidTransactionModel,
    PlaidTransportError,
    TransactionsGetResponse,
)
from budgetsync.models.account import AccountConfig

PAGE_SIZE = 500


class PaginationLimitError(PlaidTransportError):
    """Raised when pagination exceeds the configured page cap."""


class TransactionsClient(Protocol):
    async def get_transactions(
        self,
        access_token: str,
        *,
        start_date: date,
        end_date: date,
        offset: int = 0,
        count: int = 500,
    ) -> TransactionsGetResponse: ...


@dataclass
class PageCursor:
    """Progress through one paginated /transactions/get retrieval."""

    offset: int = 0
    count: int = PAGE_SIZE
    accumulated_transactions: list[PlaidTransactionModel] = field(
        default_factory=list
    )
    total_transactions: int = 0
    pages_fetched: int = 0

    @property
    def exhausted(self) -> bool:
        return len(self.accumulated_transactions) >= self.total_transactions

    def advance(self) -> None:
        self.offset += self.count


class FetcherLogger:
    """Handles all logging for paged transaction fetches."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def page_fetched(self, account_id: str, cursor: PageCursor) -> None:
        """Log a single page arriving."""
        self._logger.bind(
            account=account_id,
            offset=cursor.offset,
            page=cursor.pages_fetched,
        ).debug(
            "Fetched page {} for {} (offset {}): {}/{} transactions",
            cursor.pages_fetched,
            account_id,
            cursor.offset,
            len(cursor.accumulated_transactions),
            cursor.total_transactions,
        )

    def fetch_complete(self, account_id: str, cursor: PageCursor) -> None:
        """Log summary of all fetched pages."""
        self._logger.bind(
            account=account_id,
            total=cursor.total_transactions,
            pages=cursor.pages_fetched,
        ).info(
            "Fetched {} transactions for {} across {} page(s)",
            len(cursor.accumulated_transactions),
            account_id,
            cursor.pages_fetched,
        )


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


async def fetch_paged_transactions(
    client: TransactionsClient,
    account_config: AccountConfig,
    start_date: date | datetime,
    end_date: date | datetime,
    *,
    page_size: int = PAGE_SIZE,
    max_pages: int | None = None,
    fetch_logger: FetcherLogger | None = None,
) -> TransactionsGetResponse:
    """Retrieve every transaction page for one item in [start_date, end_date].

    Pages are requested sequentially with a fixed page size until the number of
    accumulated transactions reaches the provider-reported total. Transactions
    keep their arrival order. Any failed request aborts the whole fetch.

    Args:
        client: Provider client exposing get_transactions
        account_config: Linked item to query
        start_date: First day of the window (inclusive)
        end_date: Last day of the window (inclusive)
        page_size: Transactions requested per page
        max_pages: Optional cap on requests; None means no cap
        fetch_logger: Logger override

    Returns:
        The first page's response with `transactions` replaced by every page's
        transactions concatenated.

    Raises:
        ValueError: If the token is empty or the window is inverted
        PaginationLimitError: If max_pages is exceeded
        PlaidClientError: If any page request fails
    """
    if not account_config.token:
        raise ValueError(f"Account {account_config.id} has no access token")
    start = _as_date(start_date)
    end = _as_date(end_date)
    if start > end:
        raise ValueError(f"start_date {start} is after end_date {end}")

    log = fetch_logger or FetcherLogger()
    cursor = PageCursor(count=page_size)

    first_page = await client.get_transactions(
        account_config.token,
        start_date=start,
        end_date=end,
        offset=cursor.offset,
        count=cursor.count,
    )
    cursor.accumulated_transactions.extend(first_page.transactions)
    cursor.total_transactions = first_page.total_transactions
    cursor.pages_fetched = 1
    log.page_fetched(account_config.id, cursor)

    while not cursor.exhausted:
        if max_pages is not None and cursor.pages_fetched >= max_pages:
            raise PaginationLimitError(
                f"Stopped after {cursor.pages_fetched} pages for "
                f"{account_config.id}: {len(cursor.accumulated_transactions)} of "
                f"{cursor.total_transactions} transactions fetched"
            )
        cursor.advance()
        next_page = await client.get_transactions(
            account_config.token,
            start_date=start,
            end_date=end,
            offset=cursor.offset,
            count=cursor.count,
        )
        cursor.accumulated_transactions.extend(next_page.transactions)
        cursor.pages_fetched += 1
        log.page_fetched(account_config.id, cursor)

    log.fetch_complete(account_config.id, cursor)
    return first_page.model_copy(
        update={"transactions": cursor.accumulated_transactions}
    )
