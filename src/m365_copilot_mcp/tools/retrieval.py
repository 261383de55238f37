"""Copilot retrieval API.

Queries SharePoint and OneDrive concurrently and merges the hits, most
relevant first.
"""

from __future__ import annotations

__all__ = ["retrieve"]

import asyncio
from typing import Any

from m365_copilot_mcp.constants import (
    RETRIEVAL_DATA_SOURCES,
    RETRIEVAL_MAX_RESULTS,
    RETRIEVAL_RESOURCE_METADATA,
)
from m365_copilot_mcp.graph.client import GraphClient
from m365_copilot_mcp.telemetry.system.system_logger import get_system_logger


def _best_score(hit: dict[str, Any]) -> float:
    """Highest extract relevance score of a hit (0 without extracts)."""
    scores = [extract.get("relevanceScore") or 0 for extract in hit.get("extracts") or []]
    return max(scores, default=0)


async def retrieve(client: GraphClient, token: str, query: str) -> dict[str, Any]:
    """Fetch grounding extracts for query from every retrieval data source.

    Returns:
        {"retrievalHits": [...]} sorted by descending best relevance score.

    Raises:
        APIError: If any data source request fails.
    """
    responses = await asyncio.gather(
        *(
            client.call(
                "POST",
                "/beta/copilot/retrieval",
                token,
                json={
                    "queryString": query,
                    "dataSource": source,
                    "resourceMetadata": list(RETRIEVAL_RESOURCE_METADATA),
                    "maximumNumberOfResults": RETRIEVAL_MAX_RESULTS,
                },
            )
            for source in RETRIEVAL_DATA_SOURCES
        )
    )

    hits: list[dict[str, Any]] = []
    counts: dict[str, int] = {}
    for source, response in zip(RETRIEVAL_DATA_SOURCES, responses):
        source_hits = response.get("retrievalHits") or []
        counts[source] = len(source_hits)
        hits.extend(source_hits)

    # sorted() is stable: equal scores keep SharePoint before OneDrive
    hits = sorted(hits, key=_best_score, reverse=True)

    get_system_logger().debug(
        {"event": "copilot_retrieval_completed", "total_hits": len(hits), "hits_by_source": counts}
    )
    return {"retrievalHits": hits}
