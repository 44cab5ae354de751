"""
JSON-RPC 2.0 envelopes and Server-Sent-Events framing.

POST bodies on the SSE transport arrive in one of two shapes:
- one or more ``data: <json>`` lines (event-stream framing)
- a single bare JSON document

``decode_body`` handles both and reports undecodable input as
ProtocolError values instead of raising, so one bad line never stops the
rest of the body from being processed.
"""

import json
from typing import Any, Dict, List, Optional, Union

JSONRPC_VERSION = "2.0"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603


class ProtocolError(Exception):
    """JSON-RPC level failure; always turned into an error envelope."""

    def __init__(self, code: int, message: str, request_id: Any = None):
        self.code = code
        self.message = message
        self.request_id = request_id
        super().__init__(message)

    def to_envelope(self) -> Dict[str, Any]:
        return error_response(self.request_id, self.code, self.message)


def success_response(request_id: Any, result: Any) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def error_response(request_id: Any, code: int, message: str) -> Dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": {"code": code, "message": message}}


def notification(method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    message = {"jsonrpc": JSONRPC_VERSION, "method": method}
    if params is not None:
        message["params"] = params
    return message


def format_event(message: Dict[str, Any]) -> bytes:
    """Encode one message as an SSE ``data:`` frame."""
    return f"data: {json.dumps(message, separators=(',', ':'))}\n\n".encode("utf-8")


def format_comment(text: str) -> bytes:
    """Encode an SSE comment frame (ignored by clients, keeps proxies from timing out)."""
    return f": {text}\n\n".encode("utf-8")


Decoded = Union[Any, ProtocolError]


def decode_body(body: Union[bytes, str]) -> List[Decoded]:
    """
    Split a POST body into decoded JSON values.

    Every ``data:`` line is decoded on its own; a line that is not valid
    JSON yields a PARSE_ERROR in its place. The whole body is only parsed as
    one document when no ``data:`` line decoded successfully.

    Returns:
        Decoded values and ProtocolError entries, in body order
    """
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")

    results: List[Decoded] = []
    parsed_any = False
    for line in body.splitlines():
        line = line.strip()
        if not line.startswith("data:"):
            continue
        try:
            results.append(json.loads(line[len("data:"):].strip()))
            parsed_any = True
        except ValueError:
            results.append(ProtocolError(PARSE_ERROR, "Parse error"))

    if not parsed_any:
        try:
            results.append(json.loads(body))
        except ValueError:
            results.append(ProtocolError(PARSE_ERROR, "Parse error"))
    return results
