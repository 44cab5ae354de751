"""
Main entry point for running the Mailchimp MCP server.

This script provides commands to run:
- The MCP server over stdio (for MCP clients such as Claude Desktop)
- The MCP server over HTTP + Server-Sent Events
"""

import argparse
import asyncio
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Optional

from mailchimp_mcp.api import MailchimpClient
from mailchimp_mcp.config import Config, ConfigurationError, TRANSPORT_SSE, TRANSPORT_STDIO, resolve_transport
from mailchimp_mcp.observability import MetricsCollector, configure_logging
from mailchimp_mcp.server import Router, create_app, create_stdio_server, run_http_server, run_stdio_server
from mailchimp_mcp.tools import build_registry


def build_runtime(config: Config, logger: Optional[logging.Logger] = None):
    """
    Wire the client, registry and router for a configuration.

    Returns:
        (client, registry, router, metrics)
    """
    logger = logger or logging.getLogger("mailchimp_mcp")
    metrics = MetricsCollector()
    client = MailchimpClient(
        config.api_key,
        config.server_prefix,
        metrics=metrics,
        logger=logger.getChild("api"),
    )
    registry = build_registry(
        client,
        write_enabled=config.write_enabled,
        mask_pii_enabled=config.mask_pii,
        logger=logger.getChild("tools"),
    )
    router = Router(registry, metrics=metrics, logger=logger.getChild("router"))
    return client, registry, router, metrics


async def _serve_stdio(config: Config, logger: logging.Logger) -> None:
    client, registry, router, metrics = build_runtime(config, logger)
    async with client:
        server = create_stdio_server(registry, metrics=metrics, logger=logger.getChild("stdio"))
        await run_stdio_server(server, logger=logger)


def run_mcp_server(config: Config, logger: logging.Logger) -> None:
    """Run the MCP server on the configured transport."""
    write_mode = "read/write" if config.write_enabled else "read-only"
    logger.info(f"Starting Mailchimp MCP server ({config.server_prefix}, {write_mode}, {config.transport})")

    if config.transport == TRANSPORT_STDIO:
        asyncio.run(_serve_stdio(config, logger))
    elif config.transport == TRANSPORT_SSE:
        client, _, router, metrics = build_runtime(config, logger)

        @asynccontextmanager
        async def app_lifespan(app) -> AsyncIterator[None]:
            """Close the API client's connection pool on shutdown."""
            try:
                yield
            finally:
                await client.aclose()

        app = create_app(
            router,
            metrics=metrics,
            cors_origins=config.cors_origins,
            logger=logger.getChild("sse"),
            lifespan=app_lifespan,
        )
        logger.info(f"SSE endpoint at http://{config.host}:{config.port}/sse")
        run_http_server(app, host=config.host, port=config.port, log_level=config.log_level)
    else:
        raise ConfigurationError(f"Unknown transport: {config.transport}")


def main(argv=None):
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description="Run the Mailchimp MCP server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run MCP server with stdio (for MCP clients like Claude)
  python run_servers.py mcp

  # Run MCP server with HTTP + SSE transport
  python run_servers.py mcp --transport sse --port 3000
"""
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    mcp_parser = subparsers.add_parser("mcp", help="Run the MCP server")
    mcp_parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "http"],
        help="Transport type (default: TRANSPORT_MODE or stdio)"
    )
    mcp_parser.add_argument("--host", help="Host for the SSE transport")
    mcp_parser.add_argument("--port", type=int, help="Port for the SSE transport")

    args = parser.parse_args(argv)

    if args.command != "mcp":
        parser.print_help()
        print("\nNo command specified. Use: mcp", file=sys.stderr)
        sys.exit(1)

    try:
        config = Config.from_env()
        overrides = {}
        if args.transport:
            overrides["transport"] = resolve_transport(args.transport)
        if args.host:
            overrides["host"] = args.host
        if args.port:
            overrides["port"] = args.port
        config = replace(config, **overrides)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    logger = configure_logging(config.log_level)
    try:
        run_mcp_server(config, logger)
    except KeyboardInterrupt:
        logger.info("Shutting down server...")


if __name__ == "__main__":
    main()
