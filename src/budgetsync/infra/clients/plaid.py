from __future__ import annotations

from datetime import date
import os
from types import TracebackType
from typing import Any, Literal, Self, cast

import httpx
from pydantic import BaseModel, Field, ValidationError

PlaidEnv = Literal["sandbox", "development", "production"]

PLAID_ENV_MAP: dict[PlaidEnv, str] = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}

# Provider error codes that mean the credential itself is bad, not the network.
AUTH_ERROR_CODES = frozenset(
    {
        "INVALID_ACCESS_TOKEN",
        "INVALID_PUBLIC_TOKEN",
        "INVALID_API_KEYS",
        "INVALID_CREDENTIALS",
        "ITEM_LOGIN_REQUIRED",
        "ITEM_NOT_FOUND",
        "ACCESS_NOT_GRANTED",
    }
)


class PlaidClientError(Exception):
    """Base error for Plaid client failures."""

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code


class PlaidTransportError(PlaidClientError):
    """Raised on network failures or unusable provider responses."""


class PlaidAuthError(PlaidClientError):
    """Raised when Plaid rejects a token or the API keys."""


class PlaidBaseModel(BaseModel):
    """Shared base for Plaid response models with a short parse alias."""

    @classmethod
    def parse(cls, data: Any) -> Self:
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise PlaidTransportError(
                f"Unexpected Plaid response shape for {cls.__name__}: {e}"
            ) from e


class LinkTokenCreateResponse(PlaidBaseModel):
    link_token: str


class PublicTokenCreateResponse(PlaidBaseModel):
    public_token: str


class PublicTokenExchangeResponse(PlaidBaseModel):
    access_token: str
    item_id: str


class BalancesModel(PlaidBaseModel):
    current: float | None = None
    available: float | None = None
    limit: float | None = None
    iso_currency_code: str | None = None
    unofficial_currency_code: str | None = None


class PlaidAccountModel(PlaidBaseModel):
    account_id: str
    name: str
    official_name: str | None = None
    mask: str | None = None
    subtype: str | None = None
    type: str | None = None
    balances: BalancesModel = Field(default_factory=BalancesModel)


class LocationModel(PlaidBaseModel):
    address: str | None = None
    city: str | None = None
    region: str | None = None
    postal_code: str | None = None
    country: str | None = None
    lat: float | None = None
    lon: float | None = None


class PlaidTransactionModel(PlaidBaseModel):
    transaction_id: str | None = None
    account_id: str
    amount: float
    iso_currency_code: str | None = None
    unofficial_currency_code: str | None = None
    date: str
    name: str
    pending: bool = False
    transaction_type: str | None = None
    category: list[str] | None = None  # e.g., ["Food and Drink", "Groceries"]
    location: LocationModel = Field(default_factory=LocationModel)


class AccountsGetResponse(PlaidBaseModel):
    accounts: list[PlaidAccountModel]


class TransactionsGetResponse(PlaidBaseModel):
    accounts: list[PlaidAccountModel] = Field(default_factory=list)
    transactions: list[PlaidTransactionModel] = Field(default_factory=list)
    total_transactions: int = 0


class PlaidClient:
    def __init__(
        self,
        *,
        client_id: str,
        secret: str,
        env: PlaidEnv = "sandbox",
        client_name: str = "budgetsync",
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._client_id = client_id
        self._secret = secret
        self._env = env
        self._client_name = client_name
        self._timeout_seconds = timeout_seconds
        self._http = http_client
        self._owns_http = http_client is None

    @property
    def env(self) -> PlaidEnv:
        return self._env

    @property
    def client_name(self) -> str:
        return self._client_name

    @classmethod
    def from_env(cls) -> PlaidClient:
        """Construct a PlaidClient from environment variables.

        Required:
        - PLAID_CLIENT_ID
        - PLAID_ENV (defaults to sandbox)
        - PLAID_<ENV>_SECRET (e.g. PLAID_SANDBOX_SECRET)
        """
        env_str = os.getenv("PLAID_ENV", "sandbox").lower()
        if env_str not in PLAID_ENV_MAP:
            raise PlaidClientError(
                f"Invalid PLAID_ENV={env_str!r}. "
                "Expected one of: sandbox, development, production."
            )
        env: PlaidEnv = env_str  # type: ignore[assignment]

        client_id = cls._getenv_or_die("PLAID_CLIENT_ID")
        secret = cls._getenv_or_die(f"PLAID_{env.upper()}_SECRET")
        client_name = os.getenv("PLAID_CLIENT_NAME", "budgetsync")
        return cls(client_id=client_id, secret=secret, env=env, client_name=client_name)

    @staticmethod
    def _getenv_or_die(name: str) -> str:
        value = os.getenv(name)
        if not value:
            raise PlaidClientError(f"Missing required environment variable: {name}")
        return value

    def _base_url(self) -> str:
        try:
            return PLAID_ENV_MAP[self._env]
        except KeyError as e:
            raise PlaidClientError(
                f"Unsupported Plaid environment: {self._env!r}"
            ) from e

    def _http_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self._base_url(),
                timeout=self._timeout_seconds,
                headers={"Content-Type": "application/json"},
            )
        return self._http

    async def aclose(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    def _credentials(self) -> dict[str, Any]:
        return {"client_id": self._client_id, "secret": self._secret}

    @staticmethod
    def _error_from_response(response: httpx.Response) -> PlaidClientError:
        """Map a non-2xx Plaid response onto the client error taxonomy."""
        error_code: str | None = None
        message = response.text
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error_code = body.get("error_code")
            message = body.get("error_message") or message

        text = f"Plaid API error ({response.status_code}, {error_code}): {message}"
        if response.status_code in (401, 403) or error_code in AUTH_ERROR_CODES:
            return PlaidAuthError(
                text, error_code=error_code, status_code=response.status_code
            )
        return PlaidTransportError(
            text, error_code=error_code, status_code=response.status_code
        )

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._http_client().post(path, json=payload)
        except httpx.HTTPError as e:
            raise PlaidTransportError(f"Network error calling Plaid API: {e}") from e

        if response.is_error:
            raise self._error_from_response(response)

        try:
            return cast(dict[str, Any], response.json())
        except ValueError as e:
            raise PlaidTransportError(
                f"Failed to parse Plaid response as JSON: {e}: {response.text}"
            ) from e

    # High-level APIs -----------------------------------------------------

    async def create_link_token(
        self,
        *,
        user_id: str,
        access_token: str | None = None,
        products: list[str] | None = None,
        country_codes: list[str] | None = None,
        language: str = "en",
    ) -> str:
        """Create a Plaid Link token and return it.

        Passing an access_token creates an update-mode token for an existing item.
        """
        payload: dict[str, Any] = {
            **self._credentials(),
            "client_name": self._client_name,
            "language": language,
            "country_codes": country_codes or ["US"],
            "user": {"client_user_id": user_id},
        }
        if access_token is not None:
            payload["access_token"] = access_token
        else:
            payload["products"] = products or ["transactions"]

        resp = LinkTokenCreateResponse.parse(
            await self._post("/link/token/create", payload)
        )
        return resp.link_token

    async def exchange_public_token(
        self, public_token: str
    ) -> PublicTokenExchangeResponse:
        """Exchange a Link public_token for a durable access_token."""
        payload = {**self._credentials(), "public_token": public_token}
        return PublicTokenExchangeResponse.parse(
            await self._post("/item/public_token/exchange", payload)
        )

    async def create_public_token(self, access_token: str) -> str:
        """Exchange an expired API access_token for a new Link public_token."""
        payload = {**self._credentials(), "access_token": access_token}
        resp = PublicTokenCreateResponse.parse(
            await self._post("/item/public_token/create", payload)
        )
        return resp.public_token

    async def get_accounts(self, access_token: str) -> AccountsGetResponse:
        """Return accounts for an item using Plaid's /accounts/get endpoint."""
        payload = {**self._credentials(), "access_token": access_token}
        return AccountsGetResponse.parse(await self._post("/accounts/get", payload))

    async def get_transactions(
        self,
        access_token: str,
        *,
        start_date: date,
        end_date: date,
        offset: int = 0,
        count: int = 500,
    ) -> TransactionsGetResponse:
        """Return one page of transactions using Plaid's /transactions/get."""
        payload: dict[str, Any] = {
            **self._credentials(),
            "access_token": access_token,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "options": {
                "count": count,
                "offset": offset,
            },
        }
        return TransactionsGetResponse.parse(
            await self._post("/transactions/get", payload)
        )
