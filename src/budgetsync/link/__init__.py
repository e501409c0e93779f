"""Local Plaid Link handshake server."""

from budgetsync.link.server import (
    DEFAULT_LINK_HOST,
    DEFAULT_LINK_PORT,
    HandshakeResult,
    HandshakeState,
    LinkCancelledError,
    LinkError,
    LinkFailedError,
    LinkServer,
    LinkServerError,
    LinkTimeoutError,
)

__all__ = [
    "DEFAULT_LINK_HOST",
    "DEFAULT_LINK_PORT",
    "HandshakeResult",
    "HandshakeState",
    "LinkCancelledError",
    "LinkError",
    "LinkFailedError",
    "LinkServer",
    "LinkServerError",
    "LinkTimeoutError",
]
