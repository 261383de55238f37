"""Copilot chat API.

Messages go to a Copilot conversation. Without an explicit conversation id
the server keeps reusing one conversation, created on first use, so follow-up
questions keep their context.
"""

from __future__ import annotations

__all__ = ["ConversationCache", "chat"]

from typing import Any

from m365_copilot_mcp.exceptions import APIError
from m365_copilot_mcp.graph.client import GraphClient
from m365_copilot_mcp.telemetry.system.system_logger import get_system_logger


class ConversationCache:
    """Holds the id of the conversation reused across chat calls."""

    def __init__(self) -> None:
        self._conversation_id: str | None = None

    def get(self) -> str | None:
        return self._conversation_id

    def set(self, conversation_id: str) -> None:
        self._conversation_id = conversation_id

    def clear(self) -> None:
        self._conversation_id = None


async def _create_conversation(client: GraphClient, token: str) -> str:
    result = await client.call("POST", "/beta/copilot/conversations", token, json={})
    conversation_id = result.get("id")
    if not conversation_id:
        raise APIError("Copilot did not return a conversation id")
    get_system_logger().info(
        {"event": "copilot_conversation_created", "conversation_id": conversation_id}
    )
    return conversation_id


async def chat(
    client: GraphClient,
    token: str,
    message: str,
    time_zone: str,
    conversation_id: str | None = None,
    cache: ConversationCache | None = None,
) -> dict[str, Any]:
    """Send message to Copilot and return the updated conversation.

    Args:
        client: Graph client.
        token: Bearer access token.
        message: Question for Copilot.
        time_zone: IANA time zone used to resolve relative dates.
        conversation_id: Conversation to continue. When omitted, the cached
            conversation is used, or a new one is created and cached.
        cache: Conversation cache (no reuse across calls when omitted).

    Returns:
        Graph response body (conversation with its messages).

    Raises:
        APIError: If conversation creation or the chat call fails.
    """
    active_id = conversation_id or (cache.get() if cache else None)
    if active_id is None:
        active_id = await _create_conversation(client, token)
        if cache is not None:
            cache.set(active_id)

    return await client.call(
        "POST",
        f"/beta/copilot/conversations/{active_id}/chat",
        token,
        json={"message": {"text": message}, "locationHint": {"timeZone": time_zone}},
    )
