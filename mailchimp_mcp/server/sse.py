"""
Server-Sent-Events transport.

Each ``GET|POST /sse`` request becomes an SSEConnection:

    CONNECTING -> OPEN -> (DRAINING) -> CLOSED

- Response headers are flushed before the body is read, then a ``ping``
  notification is sent.
- A keep-alive comment frame is written every 15 seconds while OPEN.
- POST bodies are buffered up to 10 MiB; crossing the limit aborts the read
  with an INVALID_REQUEST frame.
- Each decoded message is dispatched as its own task and its response is
  written as a ``data:`` frame when the dispatch finishes.
- If the peer disconnects while dispatches are still running the connection
  is DRAINING: dispatches run to completion but nothing more is written.

The number of open streams is reported as the ``sse.connections`` gauge.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from mailchimp_mcp.server.jsonrpc import (
    INVALID_REQUEST,
    ProtocolError,
    decode_body,
    error_response,
    format_comment,
    format_event,
    notification,
)
from mailchimp_mcp.server.router import Router

KEEPALIVE_INTERVAL_SECONDS = 15.0
MAX_BODY_BYTES = 10 * 1024 * 1024

SSE_HEADERS = [
    (b"content-type", b"text/event-stream"),
    (b"cache-control", b"no-cache"),
    (b"connection", b"keep-alive"),
    (b"x-accel-buffering", b"no"),
]

Receive = Callable[[], Awaitable[Dict[str, Any]]]
Send = Callable[[Dict[str, Any]], Awaitable[None]]

# Errors raised by ASGI servers when writing to a connection that is gone.
WRITE_ERRORS = (OSError, RuntimeError)


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    DRAINING = "draining"
    CLOSED = "closed"


class SSEConnection:
    """One event-stream response and the request body feeding it."""

    def __init__(
        self,
        router: Router,
        send: Send,
        keepalive_interval: float = KEEPALIVE_INTERVAL_SECONDS,
        max_body_bytes: int = MAX_BODY_BYTES,
        logger: Optional[logging.Logger] = None,
    ):
        self.router = router
        self.keepalive_interval = keepalive_interval
        self.max_body_bytes = max_body_bytes
        self.logger = logger or logging.getLogger(__name__)
        self.state = ConnectionState.CONNECTING
        self._send = send
        self._buffer = bytearray()
        self._keepalive_task: Optional[asyncio.Task] = None

    async def open(self) -> None:
        """Flush headers, announce the stream with ``ping`` and start the keep-alive timer."""
        try:
            await self._send({"type": "http.response.start", "status": 200, "headers": SSE_HEADERS})
        except WRITE_ERRORS as e:
            self.logger.debug(f"Could not open event stream: {e!r}")
            self.state = ConnectionState.CLOSED
            return
        self.state = ConnectionState.OPEN
        await self.write(notification("ping"))
        if self.state is ConnectionState.OPEN:
            self._keepalive_task = asyncio.create_task(self._keepalive())

    async def write(self, message: Dict[str, Any]) -> bool:
        return await self.write_frame(format_event(message))

    async def write_frame(self, frame: bytes) -> bool:
        """
        Write one frame; a no-op unless the connection is OPEN.

        Returns:
            True if the frame was handed to the server
        """
        if self.state is not ConnectionState.OPEN:
            return False
        try:
            await self._send({"type": "http.response.body", "body": frame, "more_body": True})
            return True
        except WRITE_ERRORS as e:
            self.logger.debug(f"Write to event stream failed: {e!r}")
            self.state = ConnectionState.CLOSED
            self._stop_keepalive()
            return False

    async def _keepalive(self) -> None:
        while self.state is ConnectionState.OPEN:
            await asyncio.sleep(self.keepalive_interval)
            await self.write_frame(format_comment("keep-alive"))

    def _stop_keepalive(self) -> None:
        task = self._keepalive_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    def _peer_disconnected(self) -> None:
        if self.state is ConnectionState.OPEN:
            self.state = ConnectionState.DRAINING
        self._stop_keepalive()

    async def read_body(self, receive: Receive) -> Optional[bytes]:
        """
        Buffer the request body.

        Returns:
            The body, or None when the peer disconnected or the size limit
            was exceeded (an INVALID_REQUEST frame has then been written)
        """
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                self._peer_disconnected()
                return None
            if message["type"] != "http.request":
                continue
            self._buffer.extend(message.get("body", b""))
            if len(self._buffer) > self.max_body_bytes:
                await self._reject_oversized()
                return None
            if not message.get("more_body", False):
                break

        body = bytes(self._buffer)
        self._buffer.clear()
        if len(body) > self.max_body_bytes:
            await self._reject_oversized()
            return None
        return body

    async def _reject_oversized(self) -> None:
        self.logger.warning(f"Request body exceeds {self.max_body_bytes} bytes; aborting read")
        self._buffer.clear()
        await self.write(error_response(None, INVALID_REQUEST, "Request body too large"))

    async def handle_body(self, body: bytes) -> None:
        """Dispatch every message in ``body`` and write each response as it completes."""
        tasks: List[asyncio.Task] = []
        for item in decode_body(body):
            if isinstance(item, ProtocolError):
                await self.write(item.to_envelope())
                continue
            tasks.append(asyncio.create_task(self._dispatch(item)))
        if tasks:
            await asyncio.gather(*tasks)

    async def _dispatch(self, message: Any) -> None:
        response = await self.router.dispatch(message)
        if not await self.write(response):
            self.logger.debug(f"Dropped response for request {response.get('id')!r}: stream closed")

    async def wait_for_disconnect(self, receive: Receive) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                self._peer_disconnected()
                return

    async def close(self) -> None:
        """Stop the keep-alive timer and end the response if it is still writable."""
        was_open = self.state is ConnectionState.OPEN
        self.state = ConnectionState.CLOSED
        self._stop_keepalive()
        if not was_open:
            return
        try:
            await self._send({"type": "http.response.body", "body": b"", "more_body": False})
        except WRITE_ERRORS as e:
            self.logger.debug(f"Closing event stream failed: {e!r}")


class SSEEndpoint:
    """ASGI application serving ``GET|POST /sse``."""

    def __init__(
        self,
        router: Router,
        keepalive_interval: float = KEEPALIVE_INTERVAL_SECONDS,
        max_body_bytes: int = MAX_BODY_BYTES,
        logger: Optional[logging.Logger] = None,
    ):
        self.router = router
        self.keepalive_interval = keepalive_interval
        self.max_body_bytes = max_body_bytes
        self.logger = logger or logging.getLogger(__name__)
        self.open_connections = 0

    async def __call__(self, scope: Dict[str, Any], receive: Receive, send: Send) -> None:
        connection = SSEConnection(
            self.router,
            send,
            keepalive_interval=self.keepalive_interval,
            max_body_bytes=self.max_body_bytes,
            logger=self.logger,
        )
        await connection.open()
        if connection.state is not ConnectionState.OPEN:
            return

        self.open_connections += 1
        self._report_connections()
        watcher: Optional[asyncio.Task] = None
        try:
            body = None
            if scope.get("method") == "POST":
                body = await connection.read_body(receive)
                if body is None:
                    return

            watcher = asyncio.create_task(connection.wait_for_disconnect(receive))
            # GET has no body; an empty POST body is still decoded (and rejected).
            if body is not None:
                await connection.handle_body(body)
            await watcher
        finally:
            if watcher is not None and not watcher.done():
                watcher.cancel()
            await connection.close()
            self.open_connections -= 1
            self._report_connections()

    def _report_connections(self) -> None:
        self.router.metrics.gauge("sse.connections", self.open_connections)
