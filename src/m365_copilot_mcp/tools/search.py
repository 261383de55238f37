"""Copilot search API."""

from __future__ import annotations

__all__ = ["search"]

from typing import Any

from m365_copilot_mcp.graph.client import GraphClient
from m365_copilot_mcp.telemetry.system.system_logger import get_system_logger


async def search(client: GraphClient, token: str, query: str) -> dict[str, Any]:
    """Run a semantic search over the user's OneDrive content.

    Returns:
        Graph response body (searchHits with webUrl, preview, resourceType).
    """
    result = await client.call("POST", "/beta/copilot/search", token, json={"query": query})
    get_system_logger().debug(
        {
            "event": "copilot_search_completed",
            "hits": len(result.get("searchHits") or []),
        }
    )
    return result
