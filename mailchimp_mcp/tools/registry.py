"""
Tool registry: names, input schemas and handlers for the Mailchimp tools.

Each tool pairs a pydantic input model (validation and JSON Schema) with an
async handler that calls the API client. The registry only exposes write
tools when writes are enabled.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Annotated, Any, Awaitable, Callable, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mailchimp_mcp.api.client import MailchimpClient
from mailchimp_mcp.tools.pii import mask_pii

MAILCHIMP_ID_PATTERN = r"^[a-zA-Z0-9-]{1,64}$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
MAX_EMAIL_LENGTH = 254
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000

MailchimpId = Annotated[str, Field(min_length=1, max_length=64, pattern=MAILCHIMP_ID_PATTERN)]
EmailAddress = Annotated[str, Field(max_length=MAX_EMAIL_LENGTH, pattern=EMAIL_PATTERN)]

Handler = Callable[[MailchimpClient, Any], Awaitable[Any]]


class ToolInput(BaseModel):
    """Base for tool input models; accepts both field names and camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True)


class NoInput(ToolInput):
    """Tool without arguments."""


class UnknownToolError(Exception):
    """The requested tool is not registered (or writes are disabled)."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class ToolInputError(Exception):
    """Tool arguments failed validation."""

    def __init__(self, name: str, error: ValidationError):
        self.name = name
        self.errors = error.errors()
        details = "; ".join(
            f"{'.'.join(str(p) for p in e['loc']) or 'arguments'}: {e['msg']}"
            for e in self.errors
        )
        super().__init__(f"Invalid arguments for {name}: {details}")


def subscriber_hash(email: str) -> str:
    """Mailchimp member id: MD5 of the lower-cased, trimmed email address."""
    return hashlib.md5(email.strip().lower().encode()).hexdigest()


@dataclass(frozen=True)
class ToolSpec:
    """A single tool: descriptor fields plus its handler."""
    name: str
    description: str
    input_model: Type[ToolInput]
    handler: Handler
    write: bool = False

    def descriptor(self) -> Dict[str, Any]:
        schema = self.input_model.model_json_schema(by_alias=True)
        schema.pop("title", None)
        schema.pop("description", None)
        schema.setdefault("properties", {})
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": schema,
        }


class ToolRegistry:
    """
    Registry consulted by both transports.

    Read tools are always available; write tools are registered only when
    ``write_enabled`` is set.
    """

    def __init__(
        self,
        client: MailchimpClient,
        read_tools: Iterable[ToolSpec],
        write_tools: Iterable[ToolSpec] = (),
        write_enabled: bool = False,
        mask_pii_enabled: bool = False,
        logger: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.write_enabled = write_enabled
        self.mask_pii_enabled = mask_pii_enabled
        self.logger = logger or logging.getLogger(__name__)
        self._tools: Dict[str, ToolSpec] = {}

        for tool in read_tools:
            self._tools[tool.name] = tool
        if write_enabled:
            for tool in write_tools:
                self._tools[tool.name] = tool

    def list_tools(self) -> List[Dict[str, Any]]:
        """Tool descriptors (name, description, inputSchema) in registration order."""
        return [tool.descriptor() for tool in self._tools.values()]

    def has_tool(self, name: Any) -> bool:
        return isinstance(name, str) and name in self._tools

    def get(self, name: str) -> ToolSpec:
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return tool

    async def invoke(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        """
        Validate arguments and run a tool.

        Raises:
            UnknownToolError: No tool with this name is registered
            ToolInputError: Arguments do not match the tool's schema
            ApiError: The Mailchimp API call failed (propagated unchanged)
        """
        tool = self.get(name)
        try:
            params = tool.input_model.model_validate(arguments or {})
        except ValidationError as e:
            raise ToolInputError(name, e)

        self.logger.info(f"Running tool {name}")
        result = await tool.handler(self.client, params)

        if self.mask_pii_enabled and not tool.write:
            result = mask_pii(result)
        return result


def build_registry(
    client: MailchimpClient,
    write_enabled: bool = False,
    mask_pii_enabled: bool = False,
    logger: Optional[logging.Logger] = None,
) -> ToolRegistry:
    """Create the registry with the standard Mailchimp read and write tools."""
    from mailchimp_mcp.tools.read_tools import READ_TOOLS
    from mailchimp_mcp.tools.write_tools import WRITE_TOOLS

    return ToolRegistry(
        client,
        READ_TOOLS,
        WRITE_TOOLS,
        write_enabled=write_enabled,
        mask_pii_enabled=mask_pii_enabled,
        logger=logger,
    )
