"""Copilot data-access calls behind the MCP tools.

- retrieval: grounding extracts from SharePoint and OneDrive
- search: semantic document search
- chat: conversational Copilot with a per-server conversation cache
"""

from m365_copilot_mcp.tools.chat import ConversationCache, chat
from m365_copilot_mcp.tools.retrieval import retrieve
from m365_copilot_mcp.tools.search import search

__all__ = ["ConversationCache", "chat", "retrieve", "search"]
