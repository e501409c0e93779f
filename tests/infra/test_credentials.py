from __future__ import annotations

import json
from pathlib import Path

import pytest

from budgetsync.infra.credentials import (
    CredentialStoreError,
    InMemoryCredentialStore,
    JsonFileCredentialStore,
)
from budgetsync.models.account import AccountConfig, IntegrationId


class TestInMemoryCredentialStore:
    def test_put_overwrites_token_for_same_item(self) -> None:
        store = InMemoryCredentialStore()

        store.put(AccountConfig(id="itemX", integration=IntegrationId.PLAID, token="a"))
        store.put(AccountConfig(id="itemX", integration=IntegrationId.PLAID, token="b"))

        assert store.load() == {
            "itemX": AccountConfig(
                id="itemX", integration=IntegrationId.PLAID, token="b"
            )
        }

    def test_load_returns_a_copy(self) -> None:
        store = InMemoryCredentialStore()

        store.load()["itemX"] = AccountConfig(
            id="itemX", integration=IntegrationId.PLAID, token="a"
        )

        assert store.load() == {}


class TestJsonFileCredentialStore:
    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        store = JsonFileCredentialStore(tmp_path / "credentials.json")

        assert store.load() == {}
        assert store.get("itemX") is None

    def test_put_persists_document(self, tmp_path: Path) -> None:
        # input
        path = tmp_path / "nested" / "credentials.json"
        config = AccountConfig(
            id="itemX", integration=IntegrationId.PLAID, token="accX"
        )

        # act
        JsonFileCredentialStore(path).put(config)

        # assert
        assert json.loads(path.read_text(encoding="utf-8")) == {
            "accounts": {
                "itemX": {"id": "itemX", "integration": "plaid", "token": "accX"}
            }
        }
        assert JsonFileCredentialStore(path).get("itemX") == config
        assert [p.name for p in path.parent.iterdir()] == ["credentials.json"]

    def test_corrupt_file_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "credentials.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(CredentialStoreError):
            JsonFileCredentialStore(path).load()

    def test_malformed_entry_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "credentials.json"
        path.write_text(
            json.dumps({"accounts": {"itemX": {"integration": "plaid"}}}),
            encoding="utf-8",
        )

        with pytest.raises(CredentialStoreError, match="itemX"):
            JsonFileCredentialStore(path).load()
