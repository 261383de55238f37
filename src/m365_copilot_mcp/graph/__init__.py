"""Microsoft Graph access."""

from m365_copilot_mcp.graph.client import GraphClient

__all__ = ["GraphClient"]
