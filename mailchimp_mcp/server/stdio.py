"""
stdio transport built on the official MCP Python SDK.

The SDK owns line-delimited JSON-RPC framing and the initialize handshake;
this module only wires tools/list and tools/call to the registry. A tool
that raises is reported by the SDK as text content with ``isError: true``.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from mailchimp_mcp.observability import MetricsCollector
from mailchimp_mcp.server.router import SERVER_NAME, SERVER_VERSION
from mailchimp_mcp.tools.registry import ToolRegistry, UnknownToolError


def create_stdio_server(
    registry: ToolRegistry,
    metrics: Optional[MetricsCollector] = None,
    logger: Optional[logging.Logger] = None,
) -> Server:
    """Create an MCP ``Server`` exposing the registry's tools."""
    metrics = metrics or MetricsCollector()
    logger = logger or logging.getLogger(__name__)
    server = Server(SERVER_NAME, version=SERVER_VERSION)

    @server.list_tools()
    async def list_tools() -> List[Tool]:
        tools = [
            Tool(name=t["name"], description=t["description"], inputSchema=t["inputSchema"])
            for t in registry.list_tools()
        ]
        logger.info(f"Listed {len(tools)} tools via MCP")
        return tools

    @server.call_tool()
    async def call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> List[TextContent]:
        if not registry.has_tool(name):
            raise UnknownToolError(name)
        metrics.counter("jsonrpc.request", tags={"method": "tools/call"})
        async with metrics.measure("tool.call", {"tool": name}):
            result = await registry.invoke(name, arguments or {})
        return [TextContent(type="text", text=json.dumps(result, separators=(",", ":")))]

    return server


async def run_stdio_server(server: Server, logger: Optional[logging.Logger] = None) -> None:
    """Serve MCP over stdin/stdout until the client closes the stream."""
    logger = logger or logging.getLogger(__name__)
    async with stdio_server() as (read_stream, write_stream):
        logger.info("Mailchimp MCP server running via stdio")
        await server.run(read_stream, write_stream, server.create_initialization_options())
