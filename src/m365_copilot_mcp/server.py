"""FastMCP server exposing Microsoft 365 Copilot tools.

Tools:
    m365copilotretrieval  - Grounding extracts from SharePoint/OneDrive
    m365copilotsearch     - Document search
    m365copilotchat       - Conversational Copilot
    m365copilotauthstatus - Authentication diagnostics (never prompts)
    m365copilotlogout     - Sign out and erase stored credentials

Every data tool calls AuthenticationManager.ensure_authentication() first.
Failures come back as tool errors whose text is a JSON payload
{"message", "code", "details"}; the protocol stream itself is unaffected.
"""

from __future__ import annotations

__all__ = ["create_server"]

import asyncio
import json
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager, suppress
from typing import Annotated, Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from m365_copilot_mcp import __version__
from m365_copilot_mcp.constants import MAX_QUERY_LENGTH, REQUIRED_SCOPES, SERVER_NAME
from m365_copilot_mcp.exceptions import M365CopilotError, format_error_response
from m365_copilot_mcp.graph.client import GraphClient
from m365_copilot_mcp.security.auth.manager import AuthenticationManager
from m365_copilot_mcp.telemetry.system.system_logger import get_system_logger
from m365_copilot_mcp.tools.chat import ConversationCache, chat
from m365_copilot_mcp.tools.retrieval import retrieve
from m365_copilot_mcp.tools.search import search
from m365_copilot_mcp.utils.validation import (
    max_length,
    optional_string,
    require_string,
    require_timezone,
)

_RETRIEVAL_DESCRIPTION = """\
Retrieves relevant text extracts from the user's SharePoint and OneDrive content \
to answer questions with Retrieval-Augmented Generation. Returns text snippets \
with relevance scores, ideal for grounding answers in Microsoft 365 data.

Use this when:
- The user asks a question answered by their M365 content \
(e.g., "What did the team decide about the project?")
- You need exact passages to quote or summarize

Do not use this to locate files by name; use m365copilotsearch instead."""

_SEARCH_DESCRIPTION = """\
Searches SharePoint, OneDrive and other M365 content to find specific documents. \
Returns document links with preview text, ideal for discovery and navigation.

Use this when:
- The user wants to find or open a document (e.g., "Find the VPN setup guide")
- You need links rather than passages"""

_CHAT_DESCRIPTION = """\
Converses with Microsoft 365 Copilot. Keeps conversation context across calls, \
ideal for complex queries, follow-up questions and time-aware requests \
(e.g., "What meetings do I have tomorrow?").

Without conversationId the server reuses one conversation for the session, \
creating it on first use."""

_AUTH_STATUS_DESCRIPTION = """\
Reports authentication state (configured, initialized, ready, login flow, \
cached tokens, signed-in account). Never starts a login."""

_LOGOUT_DESCRIPTION = """\
Signs out of Microsoft 365: removes the stored account record and the \
persisted token cache. The next Copilot tool call starts a new login."""


def _to_text(result: Any) -> str:
    return json.dumps(result, indent=2, ensure_ascii=False)


async def _authenticate_in_background(manager: AuthenticationManager) -> None:
    try:
        await manager.ensure_authentication()
    except M365CopilotError as e:
        # The first tool call retries through the normal path
        get_system_logger().warning(
            {
                "event": "startup_authentication_failed",
                "message": f"Startup authentication failed: {e}",
                "error": str(e),
                "error_type": type(e).__name__,
            }
        )


def create_server(
    manager: AuthenticationManager,
    graph_client: GraphClient,
    *,
    authenticate_on_startup: bool = True,
) -> FastMCP:
    """Build the MCP server.

    Args:
        manager: Authentication manager shared by every tool.
        graph_client: Graph client used for Copilot calls. Owned by the caller.
        authenticate_on_startup: Start logging in as soon as the server runs,
            so the first tool call does not wait for the user.

    Returns:
        Configured FastMCP server (run with .run() or .run_async()).
    """
    conversations = ConversationCache()
    logger = get_system_logger()

    @asynccontextmanager
    async def lifespan(app: FastMCP) -> AsyncIterator[None]:
        task: asyncio.Task[None] | None = None
        if authenticate_on_startup and manager.is_configured() and not manager.ready:
            task = asyncio.create_task(_authenticate_in_background(manager))
        try:
            yield
        finally:
            if task is not None and not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task

    mcp = FastMCP(SERVER_NAME, version=__version__, lifespan=lifespan)

    async def run_tool(
        tool_name: str,
        validate: Callable[[], Any],
        operation: Callable[[str, Any], Awaitable[Any]],
    ) -> str:
        """Validate, authenticate, call, and format one tool invocation."""
        try:
            args = validate()
            await manager.ensure_authentication()
            token = await manager.get_access_token(REQUIRED_SCOPES)
            result = await operation(token, args)
        except Exception as e:
            level = logger.warning if isinstance(e, M365CopilotError) else logger.error
            level(
                {
                    "event": "tool_failed",
                    "message": f"{tool_name} failed: {e}",
                    "tool_name": tool_name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            raise ToolError(_to_text(format_error_response(e))) from e
        return _to_text(result)

    @mcp.tool(name="m365copilotretrieval", description=_RETRIEVAL_DESCRIPTION)
    async def m365copilotretrieval(
        queryString: Annotated[
            str, Field(description="Natural language query for relevant Microsoft 365 content")
        ],
    ) -> str:
        def validate() -> str:
            query = require_string({"queryString": queryString}, "queryString")
            return max_length(query, "queryString", MAX_QUERY_LENGTH)

        return await run_tool(
            "m365copilotretrieval",
            validate,
            lambda token, query: retrieve(graph_client, token, query),
        )

    @mcp.tool(name="m365copilotsearch", description=_SEARCH_DESCRIPTION)
    async def m365copilotsearch(
        query: Annotated[
            str, Field(description="Natural language query to find Microsoft 365 documents")
        ],
    ) -> str:
        def validate() -> str:
            value = require_string({"query": query}, "query")
            return max_length(value, "query", MAX_QUERY_LENGTH)

        return await run_tool(
            "m365copilotsearch",
            validate,
            lambda token, value: search(graph_client, token, value),
        )

    @mcp.tool(name="m365copilotchat", description=_CHAT_DESCRIPTION)
    async def m365copilotchat(
        message: Annotated[str, Field(description="The message or question to send to Copilot")],
        timeZone: Annotated[
            str,
            Field(
                description=(
                    'User time zone in IANA format (e.g., "America/New_York", '
                    '"Europe/London"). Must be a valid IANA identifier.'
                )
            ),
        ],
        conversationId: Annotated[
            str | None,
            Field(description="Conversation to continue. Omit to reuse the session conversation."),
        ] = None,
    ) -> str:
        params = {"message": message, "timeZone": timeZone, "conversationId": conversationId}

        def validate() -> tuple[str, str, str | None]:
            return (
                require_string(params, "message"),
                require_timezone(params, "timeZone"),
                optional_string(params, "conversationId"),
            )

        return await run_tool(
            "m365copilotchat",
            validate,
            lambda token, args: chat(
                graph_client,
                token,
                args[0],
                args[1],
                conversation_id=args[2],
                cache=conversations,
            ),
        )

    @mcp.tool(name="m365copilotauthstatus", description=_AUTH_STATUS_DESCRIPTION)
    async def m365copilotauthstatus() -> str:
        record = manager.account_record
        status = {
            **manager.get_status(),
            "ready": manager.ready,
            "account": record.username if record else None,
        }
        return _to_text(status)

    @mcp.tool(name="m365copilotlogout", description=_LOGOUT_DESCRIPTION)
    async def m365copilotlogout() -> str:
        conversations.clear()
        try:
            await manager.logout()
        except M365CopilotError as e:
            raise ToolError(_to_text(format_error_response(e))) from e
        return _to_text({"message": "Logged out of Microsoft 365. The next Copilot call will sign in again."})

    return mcp
