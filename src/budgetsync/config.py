from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from budgetsync.infra.clients.plaid import PLAID_ENV_MAP, PlaidEnv
from budgetsync.link.server import DEFAULT_LINK_HOST, DEFAULT_LINK_PORT

DEFAULT_CREDENTIALS_PATH = "~/.budgetsync/credentials.json"


@dataclass(frozen=True, slots=True)
class Settings:
    """Process configuration loaded at startup."""

    plaid_client_id: str
    plaid_secret: str
    plaid_env: PlaidEnv = "sandbox"
    plaid_client_name: str = "budgetsync"
    credentials_path: Path = Path(DEFAULT_CREDENTIALS_PATH).expanduser()
    link_host: str = DEFAULT_LINK_HOST
    link_port: int = DEFAULT_LINK_PORT
    max_pages: int | None = None


def _require_env(name: str) -> str:
    value = os.environ.get(name, "").strip()
    if not value:
        raise ValueError(f"Missing required environment variable: {name}")
    return value


def _optional_positive_int(name: str) -> int | None:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


def load_settings_from_env() -> Settings:
    """Load settings from env and validate startup requirements."""
    env_value = os.environ.get("PLAID_ENV", "sandbox").strip().lower()
    if env_value not in PLAID_ENV_MAP:
        raise ValueError("PLAID_ENV must be one of: sandbox, development, production")
    plaid_env: PlaidEnv = env_value  # type: ignore[assignment]

    port_value = os.environ.get("BUDGETSYNC_LINK_PORT", str(DEFAULT_LINK_PORT))
    try:
        link_port = int(port_value.strip())
    except ValueError as e:
        raise ValueError(
            f"BUDGETSYNC_LINK_PORT must be an integer, got {port_value!r}"
        ) from e

    credentials_path = os.environ.get(
        "BUDGETSYNC_CREDENTIALS_PATH", DEFAULT_CREDENTIALS_PATH
    ).strip()

    return Settings(
        plaid_client_id=_require_env("PLAID_CLIENT_ID"),
        plaid_secret=_require_env(f"PLAID_{plaid_env.upper()}_SECRET"),
        plaid_env=plaid_env,
        plaid_client_name=os.environ.get("PLAID_CLIENT_NAME", "budgetsync").strip()
        or "budgetsync",
        credentials_path=Path(credentials_path).expanduser(),
        link_host=os.environ.get("BUDGETSYNC_LINK_HOST", DEFAULT_LINK_HOST).strip(),
        link_port=link_port,
        max_pages=_optional_positive_int("BUDGETSYNC_MAX_PAGES"),
    )
