from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
import json
import os
from pathlib import Path
import tempfile
from typing import Any, Protocol, TextIO

from loguru import logger

from budgetsync.models.account import AccountConfig, IntegrationId

__all__ = [
    "CredentialStore",
    "CredentialStoreError",
    "InMemoryCredentialStore",
    "JsonFileCredentialStore",
]


class CredentialStoreError(Exception):
    """Raised when stored credentials cannot be read or written."""


class CredentialStore(Protocol):
    """Keyed map of item id -> AccountConfig with explicit load/save."""

    def load(self) -> dict[str, AccountConfig]: ...

    def save(self, accounts: dict[str, AccountConfig]) -> None: ...

    def get(self, item_id: str) -> AccountConfig | None: ...

    def put(self, config: AccountConfig) -> None: ...


class InMemoryCredentialStore:
    """Credential store held entirely in process memory."""

    def __init__(self, accounts: dict[str, AccountConfig] | None = None) -> None:
        self._accounts: dict[str, AccountConfig] = dict(accounts or {})

    def load(self) -> dict[str, AccountConfig]:
        return dict(self._accounts)

    def save(self, accounts: dict[str, AccountConfig]) -> None:
        self._accounts = dict(accounts)

    def get(self, item_id: str) -> AccountConfig | None:
        return self._accounts.get(item_id)

    def put(self, config: AccountConfig) -> None:
        # Re-linking an item overwrites its token in place.
        self._accounts[config.id] = config


class JsonFileCredentialStore:
    """
    Credential store persisted as a single JSON document.

    - Layout: {"accounts": {item_id: {"id", "integration", "token"}}}.
    - Writes are atomic via write-to-temp + os.replace().
    - A missing file is an empty store; a corrupt file is an error.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    # -------- Public API --------

    def load(self) -> dict[str, AccountConfig]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise CredentialStoreError(
                f"Credential file {self.path} is not valid JSON: {e}"
            ) from e
        except OSError as e:
            raise CredentialStoreError(
                f"Failed to read credential file {self.path}: {e}"
            ) from e

        raw_accounts = data.get("accounts", {}) if isinstance(data, dict) else None
        if not isinstance(raw_accounts, dict):
            raise CredentialStoreError(
                f"Credential file {self.path} has no 'accounts' mapping"
            )
        return {
            item_id: self._decode(item_id, entry)
            for item_id, entry in raw_accounts.items()
        }

    def save(self, accounts: dict[str, AccountConfig]) -> None:
        document = {
            "accounts": {
                item_id: self._encode(config) for item_id, config in accounts.items()
            }
        }
        serialized = json.dumps(document, indent=2, sort_keys=True)
        with self._atomic_writer() as tmp_file:
            tmp_file.write(serialized)
        logger.bind(path=str(self.path), count=len(accounts)).debug(
            "Saved {} account credential(s) to {}", len(accounts), self.path
        )

    def get(self, item_id: str) -> AccountConfig | None:
        return self.load().get(item_id)

    def put(self, config: AccountConfig) -> None:
        accounts = self.load()
        accounts[config.id] = config
        self.save(accounts)

    # -------- Internal helpers --------

    @staticmethod
    def _encode(config: AccountConfig) -> dict[str, Any]:
        return {
            "id": config.id,
            "integration": config.integration.value,
            "token": config.token,
        }

    def _decode(self, item_id: str, entry: Any) -> AccountConfig:
        try:
            return AccountConfig(
                id=entry.get("id", item_id),
                integration=IntegrationId(entry["integration"]),
                token=entry["token"],
            )
        except (AttributeError, KeyError, ValueError) as e:
            raise CredentialStoreError(
                f"Malformed credential entry {item_id!r} in {self.path}: {e}"
            ) from e

    @contextmanager
    def _atomic_writer(self) -> Iterator[TextIO]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            delete=False,
            dir=str(self.path.parent),
            prefix=".tmp",
        )
        try:
            try:
                yield tmp_file
            finally:
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
                tmp_file.close()

            os.replace(tmp_file.name, self.path)
        except Exception:
            # Best-effort cleanup of temp file
            try:
                if os.path.exists(tmp_file.name):
                    os.unlink(tmp_file.name)
            except OSError:
                pass
            raise
