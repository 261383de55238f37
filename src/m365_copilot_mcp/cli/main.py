"""Main CLI entry point for m365-copilot-mcp.

Commands:
    serve  - Run the MCP server over stdio (what MCP clients launch)
    auth   - Account commands (login, logout, status)

Subcommand help:
    m365-copilot-mcp COMMAND -h
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import sys

import click

from m365_copilot_mcp import __version__

from .commands.auth import auth
from .commands.serve import serve


class QuickStartGroup(click.Group):
    """Group whose help ends with setup steps for MCP clients."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        formatter.write(
            """
Quick Start:
  m365-copilot-mcp auth login      Sign in once (browser, or device code when headless)
  m365-copilot-mcp auth status     Check the stored account and credential store

MCP client entry:
  "m365-copilot": {"command": "m365-copilot-mcp", "args": ["serve"],
                   "env": {"AZURE_TENANT_ID": "common"}}

Environment:
  AZURE_TENANT_ID, AZURE_CLIENT_ID, AUTH_METHOD (InteractiveBrowser | DeviceCode)
"""
        )


@click.group(
    cls=QuickStartGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """Microsoft 365 Copilot retrieval, search and chat for MCP clients."""
    if version:
        click.echo(f"m365-copilot-mcp {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(auth)
cli.add_command(serve)


def main() -> None:
    """CLI entry point."""
    cli()
