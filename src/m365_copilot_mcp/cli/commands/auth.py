"""Authentication commands for m365-copilot-mcp CLI.

Commands:
    auth login   - Sign in (browser, or device code when no browser is available)
    auth logout  - Remove the account record and persisted token cache
    auth status  - Show authentication status without signing in
"""

from __future__ import annotations

__all__ = ["auth"]

import asyncio
import json as json_module
from typing import Any

import click

from m365_copilot_mcp.exceptions import (
    AuthenticationError,
    ConfigurationError,
    LogoutError,
)
from m365_copilot_mcp.security.auth.account_record import AccountRecordStore
from m365_copilot_mcp.security.auth.manager import AuthenticationManager
from m365_copilot_mcp.security.auth.secret_store import get_secret_store_info

from ..styling import echo_field, style_error, style_success


def _create_manager() -> AuthenticationManager:
    """Build a manager from the environment, exiting on bad configuration."""
    try:
        return AuthenticationManager()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


@click.group()
def auth() -> None:
    """Authentication commands."""
    pass


@auth.command()
def login() -> None:
    """Sign in to Microsoft 365.

    Opens the system browser. Without a usable browser, prints a device code
    to enter on another device. Tokens are kept in the OS credential store.
    """
    manager = _create_manager()
    click.echo("Starting authentication...")

    try:
        asyncio.run(manager.ensure_authentication())
    except (AuthenticationError, ConfigurationError) as e:
        raise click.ClickException(f"Authentication failed: {e}") from e

    click.echo()
    click.echo(click.style(style_success("Authentication successful!"), bold=True))
    record = manager.account_record
    if record is not None:
        click.echo(f"  Signed in as: {record.username}")
    status = manager.get_status()
    click.echo(f"  Login flow: {status['credential_flavor']}")


@auth.command()
def logout() -> None:
    """Sign out and erase stored credentials.

    Removes the account record and the persisted token cache. The next
    login prompts again.
    """
    manager = _create_manager()
    try:
        asyncio.run(manager.logout())
    except LogoutError as e:
        raise click.ClickException(f"Failed to clear credentials: {e}") from e

    click.echo(style_success("Local credentials cleared."))
    click.echo()
    click.echo("Run 'm365-copilot-mcp auth login' to authenticate again.")


@auth.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status(as_json: bool) -> None:
    """Show authentication status.

    Reads stored state only; never starts a login.
    """
    manager = _create_manager()
    config = manager.config
    record = AccountRecordStore(config.account_record_path).load()

    result: dict[str, Any] = {
        **manager.get_status(),
        "tenant_id": config.tenant_id,
        "client_id": config.client_id,
        "auth_method": config.auth_method.value,
        "account": record.model_dump() if record else None,
        "secure_store": get_secret_store_info(),
    }

    if as_json:
        click.echo(json_module.dumps(result, indent=2))
        return

    echo_field("Tenant", config.tenant_id)
    echo_field("Client id", config.client_id)
    echo_field("Login flow", config.auth_method.value)
    echo_field("Account", record.username if record else None, missing="not signed in")

    store = result["secure_store"]
    if store["secure_store_available"]:
        echo_field("Credential store", store["keyring_backend"], missing="unknown")
    else:
        echo_field("Credential store", style_error("unavailable"))
    echo_field("Persisted token cache", "present" if store["persisted_cache_present"] else "absent")
