"""m365-copilot-mcp: MCP server for Microsoft 365 Copilot retrieval, search and chat."""

__version__ = "0.6.0"
