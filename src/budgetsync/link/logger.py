"""Logging for the local Link server.

Separates logging logic from the handshake state machine.
"""

from __future__ import annotations

from typing import Any

import loguru
from loguru import logger


class LinkServerLogger:
    """Handles all logging for LinkServer with business logic separated."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def listening(self, host: str, port: int) -> None:
        """Log listener bound."""
        self._logger.bind(host=host, port=port).info(
            "Plaid Link server listening on http://{}:{}", host, port
        )

    def stopped(self) -> None:
        """Log listener released."""
        self._logger.info("Plaid Link server stopped")

    def state_changed(self, old: str, new: str) -> None:
        """Log handshake state transition."""
        self._logger.bind(old=old, new=new).debug(
            "Handshake state {} -> {}", old, new
        )

    def token_saved(self, item_id: str) -> None:
        """Log successful exchange."""
        self._logger.bind(item_id=item_id).info("Plaid access token saved.")

    def cancelled(self) -> None:
        """Log user exit from the widget."""
        self._logger.info("Plaid authentication cancelled.")

    def client_error(self, error: Any) -> None:
        """Log error reported by the widget."""
        self._logger.bind(error=error).error(
            "Encountered error during authentication: {}", error
        )

    def exchange_failed(self, error: Exception) -> None:
        """Log failed public token exchange."""
        self._logger.opt(exception=error).error(
            "Encountered error exchanging Plaid public token."
        )

    def outcome_ignored(self, state: str) -> None:
        """Log a late client result after the handshake already settled."""
        self._logger.bind(state=state).warning(
            "Ignoring client result; handshake already {}", state
        )

    def link_token_failed(self, error: Exception) -> None:
        """Log failure to create the widget's link token."""
        self._logger.opt(exception=error).error("Failed to create Plaid link token")
