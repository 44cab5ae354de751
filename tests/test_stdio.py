"""
Tests for the stdio transport.

This file contains two test suites:
1. In-memory protocol tests: an MCP ClientSession talks to the server
   object directly, without a subprocess
2. Integration tests that launch ``run_servers.py mcp`` over real stdio
   (need MAILCHIMP_API_KEY and network access)
"""

import json
import os
import sys

import httpx
import pytest
from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.shared.memory import create_connected_server_and_client_session

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from mailchimp_mcp.api import MailchimpClient
from mailchimp_mcp.observability import MetricsCollector
from mailchimp_mcp.server.router import SERVER_NAME, SERVER_VERSION
from mailchimp_mcp.server.stdio import create_stdio_server
from mailchimp_mcp.tools import READ_TOOLS, build_registry


def make_server(handler=None, write_enabled=False):
    if handler is None:
        def handler(request):
            return httpx.Response(200, json={"lists": [{"id": "abc123", "name": "Newsletter"}]})

    client = MailchimpClient("key-us9", "us9", transport=httpx.MockTransport(handler))
    metrics = MetricsCollector()
    registry = build_registry(client, write_enabled=write_enabled)
    return create_stdio_server(registry, metrics=metrics), metrics


class TestStdioProtocol:
    """tools/list and tools/call through an MCP client session."""

    def test_server_info_matches_http_transport(self):
        server, _ = make_server()

        options = server.create_initialization_options()

        assert options.server_name == SERVER_NAME
        assert options.server_version == SERVER_VERSION

    @pytest.mark.asyncio
    async def test_list_tools(self):
        server, _ = make_server()

        async with create_connected_server_and_client_session(server) as session:
            result = await session.list_tools()

        assert [t.name for t in result.tools] == [t.name for t in READ_TOOLS]
        for tool in result.tools:
            assert tool.description
            assert tool.inputSchema["type"] == "object"

    @pytest.mark.asyncio
    async def test_write_tools_listed_when_enabled(self):
        server, _ = make_server(write_enabled=True)

        async with create_connected_server_and_client_session(server) as session:
            result = await session.list_tools()

        assert "mc_createCampaign" in {t.name for t in result.tools}

    @pytest.mark.asyncio
    async def test_call_tool(self):
        server, metrics = make_server()

        async with create_connected_server_and_client_session(server) as session:
            result = await session.call_tool("mc_listAudiences", {"count": 10})

        assert not result.isError
        assert json.loads(result.content[0].text) == {"lists": [{"id": "abc123", "name": "Newsletter"}]}
        assert metrics.snapshot()["histograms"]["tool.call{status=success,tool=mc_listAudiences}"]["count"] == 1

    @pytest.mark.asyncio
    async def test_unknown_tool_is_an_error_result(self):
        server, _ = make_server()

        async with create_connected_server_and_client_session(server) as session:
            result = await session.call_tool("mc_unknownTool", {})

        assert result.isError
        assert "Unknown tool: mc_unknownTool" in result.content[0].text

    @pytest.mark.asyncio
    async def test_api_failure_is_an_error_result(self):
        def handler(request):
            return httpx.Response(404, json={"status": 404, "title": "Resource Not Found"})

        server, _ = make_server(handler)

        async with create_connected_server_and_client_session(server) as session:
            result = await session.call_tool("mc_getAudience", {"audienceId": "missing1"})

        assert result.isError
        assert "API error 404" in result.content[0].text


class TestStdioIntegration:
    """
    End-to-end tests against a real server process and the live API.

    NOTE: These tests require MAILCHIMP_API_KEY (and MAILCHIMP_SERVER_PREFIX)
    in the environment.
    """

    @pytest.fixture
    def server_params(self):
        if not os.environ.get("MAILCHIMP_API_KEY"):
            pytest.skip("MAILCHIMP_API_KEY not set")
        return StdioServerParameters(
            command=sys.executable,
            args=[os.path.join(PROJECT_ROOT, "run_servers.py"), "mcp", "--transport", "stdio"],
            env={**os.environ, "MAILCHIMP_READONLY": "true"},
        )

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_ping_and_list_audiences(self, server_params):
        async with stdio_client(server_params) as (read_stream, write_stream):
            async with ClientSession(read_stream, write_stream) as session:
                await session.initialize()

                tools = await session.list_tools()
                ping = await session.call_tool("mc_ping", {})
                audiences = await session.call_tool("mc_listAudiences", {"count": 1})

        assert "mc_deleteAudience" not in {t.name for t in tools.tools}
        assert json.loads(ping.content[0].text) == {"ok": True}
        assert not audiences.isError


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
