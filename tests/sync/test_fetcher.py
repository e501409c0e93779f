from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import date, datetime
from typing import Any

import pytest

from budgetsync.infra.clients.plaid import (
    PlaidTransportError,
    TransactionsGetResponse,
)
from budgetsync.models.account import AccountConfig, IntegrationId
from budgetsync.sync.fetcher import (
    PAGE_SIZE,
    PageCursor,
    PaginationLimitError,
    fetch_paged_transactions,
)

CONFIG = AccountConfig(id="itemX", integration=IntegrationId.PLAID, token="accX")


class MockTransactionsClient:
    """Serves `total` transactions in offset/count pages and records calls."""

    def __init__(
        self,
        *,
        total: int,
        raw_transaction: Callable[..., dict[str, Any]],
        reported_total: int | None = None,
        fail_on_call: int | None = None,
    ) -> None:
        self._rows = [
            raw_transaction(transaction_id=f"txn_{i}", name=f"Transaction {i}")
            for i in range(total)
        ]
        self._reported_total = total if reported_total is None else reported_total
        self._fail_on_call = fail_on_call
        self.calls: list[dict[str, Any]] = []

    async def get_transactions(
        self,
        access_token: str,
        *,
        start_date: date,
        end_date: date,
        offset: int = 0,
        count: int = 500,
    ) -> TransactionsGetResponse:
        self.calls.append(
            {
                "access_token": access_token,
                "start_date": start_date,
                "end_date": end_date,
                "offset": offset,
                "count": count,
            }
        )
        if self._fail_on_call is not None and len(self.calls) == self._fail_on_call:
            raise PlaidTransportError("connection reset")
        return TransactionsGetResponse.parse(
            {
                "accounts": [],
                "transactions": self._rows[offset : offset + count],
                "total_transactions": self._reported_total,
            }
        )


class TestFetchPagedTransactions:
    def test_fetches_all_pages_in_order(
        self, raw_transaction: Callable[..., dict[str, Any]]
    ) -> None:
        """total=1200 → offsets 0, 500, 1000 and a final 200-row page."""
        # setup
        client = MockTransactionsClient(total=1200, raw_transaction=raw_transaction)

        # act
        result = asyncio.run(
            fetch_paged_transactions(
                client, CONFIG, date(2024, 1, 1), date(2024, 1, 31)
            )
        )

        # assert
        assert [call["offset"] for call in client.calls] == [0, 500, 1000]
        assert all(call["count"] == PAGE_SIZE for call in client.calls)
        assert len(result.transactions) == 1200
        assert result.total_transactions == 1200
        assert [txn.transaction_id for txn in result.transactions] == [
            f"txn_{i}" for i in range(1200)
        ]

    def test_single_page_issues_one_request(
        self, raw_transaction: Callable[..., dict[str, Any]]
    ) -> None:
        client = MockTransactionsClient(total=3, raw_transaction=raw_transaction)

        result = asyncio.run(
            fetch_paged_transactions(client, CONFIG, date(2024, 1, 1), date(2024, 1, 2))
        )

        assert len(client.calls) == 1
        assert len(result.transactions) == 3

    def test_empty_window_issues_one_request(
        self, raw_transaction: Callable[..., dict[str, Any]]
    ) -> None:
        client = MockTransactionsClient(total=0, raw_transaction=raw_transaction)

        result = asyncio.run(
            fetch_paged_transactions(client, CONFIG, date(2024, 1, 1), date(2024, 1, 2))
        )

        assert len(client.calls) == 1
        assert result.transactions == []

    def test_datetimes_are_sent_as_dates(
        self, raw_transaction: Callable[..., dict[str, Any]]
    ) -> None:
        client = MockTransactionsClient(total=1, raw_transaction=raw_transaction)

        asyncio.run(
            fetch_paged_transactions(
                client,
                CONFIG,
                datetime(2024, 1, 1, 13, 30),
                datetime(2024, 1, 31, 8, 0),
            )
        )

        assert client.calls[0]["start_date"] == date(2024, 1, 1)
        assert client.calls[0]["end_date"] == date(2024, 1, 31)
        assert client.calls[0]["access_token"] == "accX"

    def test_page_failure_discards_partial_results(
        self, raw_transaction: Callable[..., dict[str, Any]]
    ) -> None:
        client = MockTransactionsClient(
            total=1200, raw_transaction=raw_transaction, fail_on_call=2
        )

        with pytest.raises(PlaidTransportError, match="connection reset"):
            asyncio.run(
                fetch_paged_transactions(
                    client, CONFIG, date(2024, 1, 1), date(2024, 1, 31)
                )
            )

    def test_max_pages_stops_inconsistent_provider(
        self, raw_transaction: Callable[..., dict[str, Any]]
    ) -> None:
        """A total that is never reached trips the optional page cap."""
        client = MockTransactionsClient(
            total=10, reported_total=5000, raw_transaction=raw_transaction
        )

        with pytest.raises(PaginationLimitError):
            asyncio.run(
                fetch_paged_transactions(
                    client,
                    CONFIG,
                    date(2024, 1, 1),
                    date(2024, 1, 31),
                    max_pages=4,
                )
            )

        assert len(client.calls) == 4

    def test_inverted_window_rejected_before_request(
        self, raw_transaction: Callable[..., dict[str, Any]]
    ) -> None:
        client = MockTransactionsClient(total=1, raw_transaction=raw_transaction)

        with pytest.raises(ValueError, match="after"):
            asyncio.run(
                fetch_paged_transactions(
                    client, CONFIG, date(2024, 2, 1), date(2024, 1, 1)
                )
            )

        assert client.calls == []

    def test_empty_token_rejected(
        self, raw_transaction: Callable[..., dict[str, Any]]
    ) -> None:
        client = MockTransactionsClient(total=1, raw_transaction=raw_transaction)
        config = AccountConfig(id="itemY", integration=IntegrationId.PLAID, token="")

        with pytest.raises(ValueError, match="itemY"):
            asyncio.run(
                fetch_paged_transactions(
                    client, config, date(2024, 1, 1), date(2024, 1, 2)
                )
            )


class TestPageCursor:
    def test_advance_moves_by_count(self) -> None:
        cursor = PageCursor(count=250)

        cursor.advance()
        cursor.advance()

        assert cursor.offset == 500

    def test_exhausted_once_total_reached(self) -> None:
        cursor = PageCursor(total_transactions=0)

        assert cursor.exhausted
