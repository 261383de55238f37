"""Serve command: run the MCP server over stdio.

MCP clients launch this command and pass settings through its environment.
"""

from __future__ import annotations

__all__ = ["serve"]

import asyncio

import click

from m365_copilot_mcp.config import ServerConfig, load_server_config
from m365_copilot_mcp.exceptions import ConfigurationError
from m365_copilot_mcp.graph.client import GraphClient
from m365_copilot_mcp.security.auth.manager import AuthenticationManager
from m365_copilot_mcp.security.keyring_utils import is_keyring_available
from m365_copilot_mcp.server import create_server
from m365_copilot_mcp.telemetry.system.system_logger import (
    configure_system_logger_file,
    get_system_logger,
    set_console_level,
)


async def _run(manager: AuthenticationManager, server_config: ServerConfig) -> None:
    async with GraphClient() as graph_client:
        server = create_server(
            manager,
            graph_client,
            authenticate_on_startup=server_config.authenticate_on_startup,
        )
        await server.run_async(transport="stdio")


@click.command()
def serve() -> None:
    """Run the MCP server over stdio.

    Environment: AZURE_TENANT_ID, AZURE_CLIENT_ID, AUTH_METHOD
    (InteractiveBrowser or DeviceCode), M365_COPILOT_LOG_LEVEL,
    M365_COPILOT_LOG_FILE, M365_COPILOT_AUTH_ON_STARTUP.
    """
    try:
        server_config = load_server_config()
        manager = AuthenticationManager()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    set_console_level(server_config.log_level)
    if server_config.log_file is not None:
        try:
            configure_system_logger_file(server_config.log_file)
        except OSError as e:
            raise click.ClickException(f"Cannot open log file {server_config.log_file}: {e}") from e

    logger = get_system_logger()
    if not manager.config.allow_unencrypted_storage and not is_keyring_available():
        logger.warning(
            {
                "event": "secure_store_unavailable",
                "message": (
                    "No OS credential store found; tokens cannot be persisted. "
                    "Set M365_COPILOT_ALLOW_UNENCRYPTED_CACHE=true to allow a plaintext cache."
                ),
            }
        )

    logger.info(
        {
            "event": "server_starting",
            "message": "Starting m365-copilot-mcp on stdio",
            "tenant_id": manager.config.tenant_id,
            "auth_method": manager.config.auth_method.value,
        }
    )
    asyncio.run(_run(manager, server_config))
