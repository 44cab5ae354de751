"""
Errors raised by the Mailchimp API client.

- ApiError: any non-2xx response that is not retried (400, 401, 404, ...)
- RateLimitExceeded: 429 responses after the retry budget is spent
- ServerError: 5xx responses after the retry budget is spent
- NetworkError: transport failures (DNS, refused, reset, timeout). These are
  httpx's own exceptions and are re-raised unchanged once retries run out.
"""

import json
from typing import Any, Optional

import httpx

NetworkError = httpx.TransportError

_SAFE_FIELDS = ("detail", "title", "status")


def sanitize_error(error_data: Any) -> str:
    """
    Reduce an API error body to fields that are safe to show to a caller.

    Mailchimp error documents can echo request details; only ``detail``,
    ``title`` and ``status`` are kept.
    """
    if not error_data or not isinstance(error_data, dict):
        return "Unknown error"

    sanitized = {
        field: error_data[field]
        for field in _SAFE_FIELDS
        if error_data.get(field) is not None
    }
    if not sanitized:
        return "API request failed"
    return json.dumps(sanitized)


class ApiError(Exception):
    """Non-2xx response from the Mailchimp API."""

    label = "API error"

    def __init__(self, status: int, body: Any = None, detail: Optional[str] = None):
        self.status = status
        self.body = body
        self.detail = detail if detail is not None else sanitize_error(body)
        super().__init__(self._format())

    def _format(self) -> str:
        return f"{self.label} {self.status}: {self.detail}"


class RateLimitExceeded(ApiError):
    """Every attempt was answered with 429 Too Many Requests."""

    label = "Rate limit exceeded"

    def __init__(self, body: Any = None, detail: Optional[str] = None):
        super().__init__(429, body, detail)

    def _format(self) -> str:
        return f"{self.label}: {self.detail}"


class ServerError(ApiError):
    """Every attempt was answered with a 5xx status."""

    label = "Server error"
