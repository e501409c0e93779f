"""One-shot local server completing the Plaid Link credential handshake.

The server hosts the Link widget page, receives the widget's result, exchanges
a public token for a durable access token, persists it, and stops when the
page reports it is done.

States:
    LISTENING -> AWAITING_CLIENT_RESULT -> EXCHANGING
        -> PERSISTED | CANCELLED | FAILED -> CLOSED
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
import socket
from types import TracebackType
from typing import TYPE_CHECKING, Any, Self

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.background import BackgroundTask
import uvicorn

from budgetsync.infra.clients.plaid import PlaidClientError
from budgetsync.link.logger import LinkServerLogger
from budgetsync.link.page import LINK_ERROR_HTML, render_link_page
from budgetsync.models.account import IntegrationId

if TYPE_CHECKING:
    from budgetsync.integrations.plaid_integration import PlaidIntegration

DEFAULT_LINK_HOST = "127.0.0.1"
DEFAULT_LINK_PORT = 8000


class LinkError(Exception):
    """Base error for Plaid Link handshake failures."""


class LinkServerError(LinkError):
    """Raised when the local Link server cannot be started."""


class LinkCancelledError(LinkError):
    """Raised when the user exits the Link widget without linking."""


class LinkFailedError(LinkError):
    """Raised when the Link widget reports an error."""

    def __init__(self, message: str, payload: Any = None) -> None:
        super().__init__(message)
        self.payload = payload


class LinkTimeoutError(LinkError):
    """Raised when the handshake does not complete in time."""


class HandshakeState(str, Enum):
    LISTENING = "listening"
    AWAITING_CLIENT_RESULT = "awaiting_client_result"
    EXCHANGING = "exchanging"
    PERSISTED = "persisted"
    CANCELLED = "cancelled"
    FAILED = "failed"
    CLOSED = "closed"


SETTLED_STATES = frozenset(
    {
        HandshakeState.EXCHANGING,
        HandshakeState.PERSISTED,
        HandshakeState.CANCELLED,
        HandshakeState.FAILED,
        HandshakeState.CLOSED,
    }
)


@dataclass(frozen=True, slots=True)
class HandshakeResult:
    """Credential persisted by a successful handshake."""

    item_id: str
    integration: IntegrationId = IntegrationId.PLAID


async def _read_json(request: Request) -> dict[str, Any]:
    body = await request.body()
    if not body:
        return {}
    try:
        data = await request.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class LinkServer:
    """Explicit handle on one Link handshake and its listening socket.

    Example:
        async with LinkServer(integration) as server:
            result = await server.wait_closed(timeout_seconds=300)

    An instance serves exactly one handshake; start a new one to link again.
    """

    def __init__(
        self,
        integration: PlaidIntegration,
        *,
        host: str = DEFAULT_LINK_HOST,
        port: int = DEFAULT_LINK_PORT,
        server_logger: LinkServerLogger | None = None,
    ) -> None:
        self._integration = integration
        self._host = host
        self._port = port
        self._logger = server_logger or LinkServerLogger()

        self._state = HandshakeState.LISTENING
        self._outcome: HandshakeResult | BaseException | None = None
        self._closed = asyncio.Event()
        self._done_pending = False

        self._socket: socket.socket | None = None
        self._uvicorn: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._started = False
        self._stopped = False

        self.app = self._build_app()

    @property
    def state(self) -> HandshakeState:
        return self._state

    @property
    def port(self) -> int:
        """Bound port; differs from the requested one when binding port 0."""
        if self._socket is not None:
            return int(self._socket.getsockname()[1])
        return self._port

    @property
    def url(self) -> str:
        return f"http://{self._host}:{self.port}/"

    # Lifecycle ------------------------------------------------------------

    async def start(self) -> None:
        """Bind the listening socket and begin serving."""
        if self._started or self._stopped:
            raise LinkServerError(
                "LinkServer is single-use; create a new instance to link again"
            )
        self._started = True

        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self._host, self._port))
        except OSError as e:
            sock.close()
            self._stopped = True
            raise LinkServerError(
                f"Cannot listen on {self._host}:{self._port}: {e}"
            ) from e
        self._socket = sock

        config = uvicorn.Config(
            self.app, log_level="warning", lifespan="off", access_log=False
        )
        self._uvicorn = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._uvicorn.serve(sockets=[sock]))

        while not self._uvicorn.started:
            if self._serve_task.done():
                await self.stop()
                raise LinkServerError("Plaid Link server exited during startup")
            await asyncio.sleep(0.01)

        self._logger.listening(self._host, self.port)

    async def stop(self) -> None:
        """Stop listening and release the socket. Safe to call repeatedly."""
        if self._stopped:
            return
        self._stopped = True

        if self._uvicorn is not None:
            self._uvicorn.should_exit = True
        try:
            if self._serve_task is not None:
                await self._serve_task
        finally:
            if self._socket is not None:
                self._socket.close()
            self._transition(HandshakeState.CLOSED)
            self._closed.set()
            if self._started:
                self._logger.stopped()

    async def wait_closed(
        self, *, timeout_seconds: float | None = None
    ) -> HandshakeResult:
        """Wait for the page to finish, then report the handshake outcome.

        Raises:
            LinkCancelledError: The user exited, or the page closed first
            LinkFailedError: The widget reported an error
            LinkTimeoutError: Nothing closed the handshake in time
            PlaidClientError: The public token exchange failed
        """
        try:
            await asyncio.wait_for(self._closed.wait(), timeout=timeout_seconds)
        except TimeoutError:
            await self.stop()
            raise LinkTimeoutError(
                f"Timed out after {timeout_seconds}s waiting for Plaid Link to finish"
            ) from None
        return self._result()

    async def __aenter__(self) -> Self:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.stop()

    # Handshake ------------------------------------------------------------

    def _transition(self, new: HandshakeState) -> None:
        old = self._state
        # CLOSED is terminal.
        if old is new or old is HandshakeState.CLOSED:
            return
        self._state = new
        self._logger.state_changed(old.value, new.value)

    def _result(self) -> HandshakeResult:
        outcome = self._outcome
        if isinstance(outcome, HandshakeResult):
            return outcome
        if isinstance(outcome, BaseException):
            raise outcome
        raise LinkCancelledError("Plaid Link closed before a result was reported")

    async def _handle_client_result(self, body: dict[str, Any]) -> None:
        if self._state in SETTLED_STATES:
            self._logger.outcome_ignored(self._state.value)
            return

        if body.get("public_token") is not None:
            self._transition(HandshakeState.EXCHANGING)
            try:
                config = await self._integration.exchange_public_token(
                    body["public_token"]
                )
            except Exception as e:
                self._logger.exchange_failed(e)
                self._outcome = e
                self._transition(HandshakeState.FAILED)
            else:
                self._logger.token_saved(config.id)
                self._outcome = HandshakeResult(item_id=config.id)
                self._transition(HandshakeState.PERSISTED)
            if self._done_pending:
                self._mark_done()
        elif "exit" in body:
            self._logger.cancelled()
            self._outcome = LinkCancelledError("Plaid authentication cancelled.")
            self._transition(HandshakeState.CANCELLED)
        else:
            error = body.get("error")
            self._logger.client_error(error)
            self._outcome = LinkFailedError(
                "Encountered error during authentication.", payload=error
            )
            self._transition(HandshakeState.FAILED)

    def _mark_done(self) -> None:
        # Runs after the /done response is sent; stop() joins the serve task.
        if self._state is HandshakeState.EXCHANGING:
            # Settled by _handle_client_result once the exchange returns.
            self._done_pending = True
            return
        if self._outcome is None:
            self._outcome = LinkCancelledError(
                "Plaid Link closed before a result was reported"
            )
        self._transition(HandshakeState.CLOSED)
        if self._uvicorn is not None:
            self._uvicorn.should_exit = True
        self._closed.set()

    def _build_app(self) -> FastAPI:
        app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)

        @app.get("/", response_class=HTMLResponse)
        async def index() -> HTMLResponse:
            try:
                link_token = await self._integration.create_link_token()
            except PlaidClientError as e:
                self._logger.link_token_failed(e)
                return HTMLResponse(LINK_ERROR_HTML, status_code=503)
            if self._state is HandshakeState.LISTENING:
                self._transition(HandshakeState.AWAITING_CLIENT_RESULT)
            return HTMLResponse(render_link_page(link_token))

        @app.post("/get_access_token")
        async def get_access_token(request: Request) -> dict[str, Any]:
            await self._handle_client_result(await _read_json(request))
            return {}

        @app.post("/accounts")
        async def accounts() -> list[dict[str, str]]:
            names = await self._integration.list_account_names()
            return [dict(entry) for entry in names]

        @app.post("/exchangeAccessToken")
        async def exchange_access_token(request: Request) -> dict[str, str]:
            body = await _read_json(request)
            token = body.get("token")
            if not isinstance(token, str) or not token:
                raise HTTPException(status_code=400, detail="token is required")
            try:
                new_token = await self._integration.exchange_access_token(token)
            except PlaidClientError as e:
                raise HTTPException(status_code=502, detail=str(e)) from e
            return {"token": new_token}

        @app.post("/update_link_token")
        async def update_link_token(request: Request) -> dict[str, str]:
            body = await _read_json(request)
            token = body.get("token")
            if not isinstance(token, str) or not token:
                raise HTTPException(status_code=400, detail="token is required")
            try:
                link_token = await self._integration.create_link_token(
                    access_token=token
                )
            except PlaidClientError as e:
                self._logger.link_token_failed(e)
                raise HTTPException(status_code=502, detail=str(e)) from e
            return {"link_token": link_token}

        @app.post("/done")
        async def done() -> JSONResponse:
            return JSONResponse({}, background=BackgroundTask(self._mark_done))

        return app
