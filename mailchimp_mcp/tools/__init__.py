"""
Mailchimp tools exposed over MCP.

Both transports talk to the same ToolRegistry:
    registry = build_registry(client, write_enabled=False)
    registry.list_tools()                      # descriptors with inputSchema
    await registry.invoke("mc_listAudiences", {"count": 10})
"""

from .pii import mask_pii
from .read_tools import READ_TOOLS
from .registry import (
    ToolInputError,
    ToolRegistry,
    ToolSpec,
    UnknownToolError,
    build_registry,
    subscriber_hash,
)
from .write_tools import WRITE_TOOLS

__all__ = [
    "ToolRegistry",
    "ToolSpec",
    "build_registry",
    "READ_TOOLS",
    "WRITE_TOOLS",
    "UnknownToolError",
    "ToolInputError",
    "subscriber_hash",
    "mask_pii",
]
