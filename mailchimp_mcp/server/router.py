"""
JSON-RPC request router shared by the HTTP/SSE transport.

Supported methods:
- initialize: static server/capability descriptor
- tools/list: tool descriptors from the registry
- tools/call: run a registered tool

Every failure is returned as an error envelope; ``dispatch`` never raises.
"""

import json
import logging
from typing import Any, Dict, Optional

from mailchimp_mcp import __version__
from mailchimp_mcp.observability import MetricsCollector
from mailchimp_mcp.server.jsonrpc import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    JSONRPC_VERSION,
    METHOD_NOT_FOUND,
    ProtocolError,
    error_response,
    success_response,
)
from mailchimp_mcp.tools.registry import ToolRegistry

SERVER_NAME = "mailchimp-mcp"
SERVER_VERSION = __version__
PROTOCOL_VERSION = "2024-11-05"


class Router:
    """Dispatch decoded JSON-RPC requests to the tool registry."""

    def __init__(
        self,
        registry: ToolRegistry,
        metrics: Optional[MetricsCollector] = None,
        logger: Optional[logging.Logger] = None,
        server_name: str = SERVER_NAME,
        server_version: str = SERVER_VERSION,
    ):
        self.registry = registry
        self.metrics = metrics or MetricsCollector()
        self.logger = logger or logging.getLogger(__name__)
        self.server_name = server_name
        self.server_version = server_version

    def server_info(self) -> Dict[str, Any]:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": self.server_name, "version": self.server_version},
        }

    async def dispatch(self, message: Any) -> Dict[str, Any]:
        """
        Handle one decoded request.

        Args:
            message: The decoded JSON value (normally a dict)

        Returns:
            A response envelope whose ``id`` echoes the request's ``id``
        """
        request_id = message.get("id") if isinstance(message, dict) else None
        try:
            if not isinstance(message, dict) or message.get("jsonrpc") != JSONRPC_VERSION:
                raise ProtocolError(INVALID_REQUEST, "Invalid Request", request_id)

            method = message.get("method")
            self.metrics.counter("jsonrpc.request", tags={"method": method})

            if method == "initialize":
                return success_response(request_id, self.server_info())
            if method == "tools/list":
                return success_response(request_id, {"tools": self.registry.list_tools()})
            if method == "tools/call":
                return await self._call_tool(request_id, message.get("params"))
            raise ProtocolError(METHOD_NOT_FOUND, f"Method not found: {method}", request_id)
        except ProtocolError as e:
            self.logger.debug(f"JSON-RPC error {e.code}: {e.message}")
            return e.to_envelope()
        except Exception as e:
            self.logger.exception("Unhandled error while dispatching request")
            return error_response(request_id, INTERNAL_ERROR, str(e) or "Internal error")

    async def _call_tool(self, request_id: Any, params: Any) -> Dict[str, Any]:
        params = params if isinstance(params, dict) else {}
        name = params.get("name")
        if not self.registry.has_tool(name):
            raise ProtocolError(METHOD_NOT_FOUND, f"Unknown tool: {name}", request_id)

        arguments = params.get("arguments") or {}
        self.logger.info(f"tools/call {name}")
        try:
            async with self.metrics.measure("tool.call", {"tool": name}):
                result = await self.registry.invoke(name, arguments)
        except Exception as e:
            self.logger.warning(f"Tool {name} failed: {e}")
            raise ProtocolError(INTERNAL_ERROR, str(e) or type(e).__name__, request_id)

        return success_response(request_id, {
            "content": [{"type": "text", "text": json.dumps(result, separators=(",", ":"))}],
        })
