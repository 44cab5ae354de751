"""
MCP transports for the Mailchimp tools.

- stdio: official MCP SDK server (for Claude Desktop and other local clients)
- sse: Starlette app served by uvicorn, with JSON-RPC routed by Router
"""

from .http_app import create_app, run_http_server
from .jsonrpc import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    ProtocolError,
    decode_body,
)
from .router import Router
from .sse import ConnectionState, SSEConnection, SSEEndpoint
from .stdio import create_stdio_server, run_stdio_server

__all__ = [
    # Routing
    "Router",
    "ProtocolError",
    "decode_body",
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INTERNAL_ERROR",
    # SSE transport
    "create_app",
    "run_http_server",
    "SSEEndpoint",
    "SSEConnection",
    "ConnectionState",
    # stdio transport
    "create_stdio_server",
    "run_stdio_server",
]
