"""Command-line interface for m365-copilot-mcp.

Provides the stdio server command and account lifecycle commands.
"""

from .main import cli, main

__all__ = ["cli", "main"]
