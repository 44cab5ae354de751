"""
HTTP transport: health endpoints, CORS and the ``/sse`` event stream.

Routes:
- GET /, GET /health: JSON health descriptor (with a metrics snapshot)
- OPTIONS *: CORS preflight
- GET|POST /sse: event-stream connection (see sse.py)
"""

import logging
from typing import Optional, Tuple

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from mailchimp_mcp.config import is_origin_allowed
from mailchimp_mcp.observability import MetricsCollector
from mailchimp_mcp.server.router import Router
from mailchimp_mcp.server.sse import KEEPALIVE_INTERVAL_SECONDS, MAX_BODY_BYTES, SSEEndpoint

CORS_METHODS = ["GET", "POST", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "Authorization", "Accept", "Last-Event-ID"]


class StrictCORSMiddleware(CORSMiddleware):
    """
    Starlette's CORS middleware with exact hostname matching.

    With no configured origins only loopback hosts are allowed; see
    ``config.is_origin_allowed``.
    """

    def __init__(self, app, allowed_origins: Tuple[str, ...] = (), **kwargs):
        # A placeholder entry keeps the parent from switching to allow-all.
        super().__init__(app, allow_origins=list(allowed_origins) or ["http://localhost"], **kwargs)
        self.allowed_origins = tuple(allowed_origins)

    def is_allowed_origin(self, origin: str) -> bool:
        return is_origin_allowed(origin, self.allowed_origins)


def create_app(
    router: Router,
    metrics: Optional[MetricsCollector] = None,
    cors_origins: Tuple[str, ...] = (),
    keepalive_interval: float = KEEPALIVE_INTERVAL_SECONDS,
    max_body_bytes: int = MAX_BODY_BYTES,
    logger: Optional[logging.Logger] = None,
    lifespan=None,
) -> Starlette:
    """
    Build the Starlette application for the SSE transport.

    Args:
        router: JSON-RPC router shared by all connections
        metrics: Collector exposed on the health endpoint (default: the router's)
        cors_origins: Allowed browser origins; empty means localhost only
        keepalive_interval: Seconds between keep-alive frames
        max_body_bytes: Request body limit for POST /sse
        logger: Logger for the transport
        lifespan: Optional Starlette lifespan context (startup/shutdown)
    """
    metrics = metrics or router.metrics
    logger = logger or logging.getLogger(__name__)
    sse = SSEEndpoint(
        router,
        keepalive_interval=keepalive_interval,
        max_body_bytes=max_body_bytes,
        logger=logger,
    )

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({
            "status": "ok",
            "name": router.server_name,
            "version": router.server_version,
            "transport": "sse",
            "endpoints": {"sse": "/sse", "health": "/health"},
            "metrics": metrics.snapshot(),
        })

    async def preflight(request: Request) -> Response:
        # Reached only for OPTIONS requests that are not CORS preflights;
        # real preflights are answered by the middleware.
        return Response(status_code=204, headers={"Allow": ", ".join(CORS_METHODS)})

    routes = [
        Route("/", health, methods=["GET"]),
        Route("/health", health, methods=["GET"]),
        Route("/sse", sse, methods=["GET", "POST"]),
        Route("/{path:path}", preflight, methods=["OPTIONS"]),
    ]
    middleware = [
        Middleware(
            StrictCORSMiddleware,
            allowed_origins=tuple(cors_origins),
            allow_methods=CORS_METHODS,
            allow_headers=CORS_HEADERS,
            max_age=86400,
        ),
    ]
    return Starlette(routes=routes, middleware=middleware, lifespan=lifespan)


def run_http_server(app: Starlette, host: str = "127.0.0.1", port: int = 3000, log_level: str = "info"):
    """Serve the application with uvicorn (blocking)."""
    uvicorn.run(app, host=host, port=port, log_level=log_level.lower())
