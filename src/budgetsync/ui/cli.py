from __future__ import annotations

import asyncio
from datetime import date, datetime
import json
from pathlib import Path

from dotenv import load_dotenv
import typer

from budgetsync.config import Settings, load_settings_from_env
from budgetsync.infra.clients.plaid import PlaidClient, PlaidClientError
from budgetsync.infra.credentials import CredentialStoreError, JsonFileCredentialStore
from budgetsync.integrations.plaid_integration import PlaidIntegration
from budgetsync.link.server import LinkError
from budgetsync.models.account import Account
from budgetsync.services.fetch_all import fetch_all_accounts, to_export_payload

app = typer.Typer(
    help="Pull Plaid accounts and transactions for spreadsheet export.",
    no_args_is_help=True,
)


def _settings() -> Settings:
    load_dotenv(override=False)
    try:
        return load_settings_from_env()
    except ValueError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from e


def _client(settings: Settings) -> PlaidClient:
    return PlaidClient(
        client_id=settings.plaid_client_id,
        secret=settings.plaid_secret,
        env=settings.plaid_env,
        client_name=settings.plaid_client_name,
    )


async def _link_impl(settings: Settings, timeout_seconds: float | None) -> str:
    store = JsonFileCredentialStore(settings.credentials_path)
    async with _client(settings) as client:
        integration = PlaidIntegration(client=client, store=store)
        typer.echo(
            f"Open http://{settings.link_host}:{settings.link_port}/ "
            "to link an account."
        )
        result = await integration.add_account(
            host=settings.link_host,
            port=settings.link_port,
            timeout_seconds=timeout_seconds,
        )
    return result.item_id


async def _fetch_impl(
    settings: Settings, start_date: date, end_date: date
) -> list[Account]:
    store = JsonFileCredentialStore(settings.credentials_path)
    async with _client(settings) as client:
        integration = PlaidIntegration(
            client=client, store=store, max_pages=settings.max_pages
        )
        return await fetch_all_accounts(integration, store, start_date, end_date)


@app.command("link")
def link(
    timeout: float | None = typer.Option(
        None, help="Seconds to wait for the Link page before giving up"
    ),
) -> None:
    """Start the local Link server and store the credential it produces."""
    settings = _settings()
    try:
        item_id = asyncio.run(_link_impl(settings, timeout))
    except (LinkError, PlaidClientError, CredentialStoreError) as e:
        typer.secho(str(e), fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1) from e
    typer.echo(f"Linked item {item_id}.")


@app.command("accounts")
def accounts() -> None:
    """List stored item ids."""
    settings = _settings()
    store = JsonFileCredentialStore(settings.credentials_path)
    try:
        configs = store.load()
    except CredentialStoreError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from e
    if not configs:
        typer.echo("No linked accounts.")
        return
    for config in configs.values():
        typer.echo(f"{config.id}\t{config.integration.value}")


@app.command("fetch")
def fetch(
    start: datetime | None = typer.Option(
        None, formats=["%Y-%m-%d"], help="First day (default: start of this month)"
    ),
    end: datetime | None = typer.Option(
        None, formats=["%Y-%m-%d"], help="Last day (default: today)"
    ),
    output: Path | None = typer.Option(
        None, help="Write the export payload here instead of stdout"
    ),
) -> None:
    """Fetch every linked account and emit the export payload as JSON."""
    settings = _settings()
    today = date.today()
    start_date = start.date() if start else today.replace(day=1)
    end_date = end.date() if end else today
    if start_date > end_date:
        typer.secho("--start must not be after --end", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2)

    try:
        fetched = asyncio.run(_fetch_impl(settings, start_date, end_date))
    except CredentialStoreError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from e
    rendered = json.dumps(to_export_payload(fetched), indent=2)
    if output is None:
        typer.echo(rendered)
    else:
        output.write_text(rendered + "\n", encoding="utf-8")
        typer.echo(f"Wrote {len(fetched)} account(s) to {output}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
