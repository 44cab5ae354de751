"""
Mailchimp MCP Server.

Exposes the Mailchimp Marketing API as Model Context Protocol tools.

## Transports

### stdio (default, for Claude Desktop and other local MCP clients)
    python run_servers.py mcp --transport stdio

### HTTP + Server-Sent Events
    python run_servers.py mcp --transport sse --port 3000

Endpoints: GET /health, OPTIONS * (CORS preflight), GET|POST /sse.

## Configuration
MAILCHIMP_API_KEY is required. MAILCHIMP_SERVER_PREFIX selects the data
center (us1..us21). Write tools are only exposed with MAILCHIMP_READONLY=false.
"""

__version__ = "1.0.0"
