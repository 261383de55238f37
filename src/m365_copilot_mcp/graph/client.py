"""Async Microsoft Graph REST client.

Thin wrapper over httpx.AsyncClient that attaches the bearer token and turns
Graph error envelopes and transport failures into APIError.
"""

from __future__ import annotations

__all__ = ["GraphClient"]

from types import TracebackType
from typing import Any

import httpx

from m365_copilot_mcp.constants import GRAPH_BASE_URL, GRAPH_TIMEOUT_SECONDS
from m365_copilot_mcp.exceptions import APIError
from m365_copilot_mcp.telemetry.system.system_logger import get_system_logger


class GraphClient:
    """Makes authenticated JSON requests against Graph.

    Args:
        base_url: Graph root, without version segment.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str = GRAPH_BASE_URL,
        timeout: float = GRAPH_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    async def __aenter__(self) -> GraphClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def call(
        self,
        method: str,
        path: str,
        token: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one request and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: Path relative to the base URL (e.g. "/beta/copilot/search").
            token: Bearer access token.
            json: Request body.

        Returns:
            Decoded response body ({} for empty bodies).

        Raises:
            APIError: On non-2xx responses (with status code) or transport
                failures (without).
        """
        try:
            response = await self._client.request(
                method,
                path,
                json=json,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            get_system_logger().warning(
                {
                    "event": "graph_request_failed",
                    "message": f"Graph request failed: {type(e).__name__}",
                    "path": path,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            raise APIError(f"Network error calling Microsoft Graph: {e}") from e

        if not response.is_success:
            error = _error_from_response(response)
            get_system_logger().warning(
                {
                    "event": "graph_request_failed",
                    "message": f"Graph returned HTTP {response.status_code}",
                    "path": path,
                    "status_code": response.status_code,
                    "error": error.message,
                }
            )
            raise error

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise APIError(
                "Microsoft Graph returned a response that is not JSON",
                status_code=response.status_code,
            ) from e


def _error_from_response(response: httpx.Response) -> APIError:
    """Build APIError from a Graph error envelope {"error": {"code", "message", "details"}}."""
    message = response.reason_phrase or f"HTTP {response.status_code}"
    details: dict[str, Any] = {}
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        envelope = body["error"]
        message = envelope.get("message") or message
        if envelope.get("code"):
            details["code"] = envelope["code"]
        if envelope.get("details"):
            details["details"] = envelope["details"]

    return APIError(
        f"Microsoft Graph error ({response.status_code}): {message}",
        status_code=response.status_code,
        details=details or None,
    )
