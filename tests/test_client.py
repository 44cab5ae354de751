"""
Tests for the Mailchimp API client.

This file tests:
1. Exponential backoff calculation
2. Request construction (URL, auth header, JSON body)
3. Retry behaviour for 429, 5xx and network errors
4. Immediate failure for other error responses
"""

import base64
import json
import os
import sys

import httpx
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mailchimp_mcp.api import (
    ApiError,
    MailchimpClient,
    RateLimitExceeded,
    RetryConfig,
    ServerError,
    calculate_backoff,
    sanitize_error,
)
from mailchimp_mcp.observability import MetricsCollector

API_KEY = "test-api-key-us9"


def scripted(*responses):
    """Build a MockTransport handler that replays responses (or raises exceptions) in order."""
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        item = responses[min(len(calls), len(responses)) - 1]
        if isinstance(item, Exception):
            raise item
        return item

    return handler, calls


def make_client(handler, retry_config=RetryConfig(max_retries=3, initial_delay_ms=1000, max_delay_ms=10000)):
    """Client on a mock transport whose sleeps are recorded instead of awaited."""
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    client = MailchimpClient(
        API_KEY,
        "us9",
        retry_config=retry_config,
        metrics=MetricsCollector(),
        transport=httpx.MockTransport(handler),
        sleep=fake_sleep,
    )
    return client, delays


class TestBackoff:
    """Tests for the backoff calculator."""

    def test_delays_double_per_attempt(self):
        """Attempts 0..3 wait 1s, 2s, 4s, 8s with the default config."""
        config = RetryConfig(max_retries=3, initial_delay_ms=1000, max_delay_ms=10000)

        assert [calculate_backoff(a, config) for a in range(4)] == [1000, 2000, 4000, 8000]

    def test_delay_is_capped(self):
        """Attempts past the cap wait max_delay_ms."""
        config = RetryConfig(max_retries=3, initial_delay_ms=1000, max_delay_ms=10000)

        assert calculate_backoff(4, config) == 10000
        assert calculate_backoff(10, config) == 10000

    def test_delays_are_monotonic_and_bounded(self):
        """Delays never decrease and never exceed the cap."""
        config = RetryConfig(max_retries=10, initial_delay_ms=250, max_delay_ms=5000)
        delays = [calculate_backoff(a, config) for a in range(12)]

        assert delays == sorted(delays)
        assert all(d <= config.max_delay_ms for d in delays)

    def test_invalid_config_rejected(self):
        """initial_delay_ms must not exceed max_delay_ms; counts must be sane."""
        with pytest.raises(ValueError):
            RetryConfig(max_retries=1, initial_delay_ms=5000, max_delay_ms=1000)
        with pytest.raises(ValueError):
            RetryConfig(max_retries=-1)
        with pytest.raises(ValueError):
            RetryConfig(initial_delay_ms=0)

    def test_total_attempts(self):
        assert RetryConfig(max_retries=3).total_attempts == 4


class TestRequests:
    """Tests for request construction and successful responses."""

    def test_base_url(self):
        client, _ = make_client(scripted(httpx.Response(200, json={}))[0])

        assert client.base_url == "https://us9.api.mailchimp.com/3.0"

    @pytest.mark.asyncio
    async def test_get_sends_auth_and_content_type(self):
        """Credential is used as both user and password of a Basic header."""
        handler, calls = scripted(httpx.Response(200, json={"data": "test"}))
        client, _ = make_client(handler)

        result = await client.get("/test")

        assert result == {"data": "test"}
        request = calls[0]
        assert str(request.url) == "https://us9.api.mailchimp.com/3.0/test"
        assert request.method == "GET"
        expected = base64.b64encode(f"{API_KEY}:{API_KEY}".encode()).decode()
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert request.headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_post_serializes_body(self):
        handler, calls = scripted(httpx.Response(201, json={"id": "123"}))
        client, _ = make_client(handler)

        result = await client.post("/test", {"name": "Test"})

        assert result == {"id": "123"}
        assert calls[0].method == "POST"
        assert json.loads(calls[0].content) == {"name": "Test"}

    @pytest.mark.asyncio
    async def test_put_and_patch_methods(self):
        handler, calls = scripted(httpx.Response(200, json={"id": "123"}))
        client, _ = make_client(handler)

        await client.put("/test/123", {"name": "Updated"})
        await client.patch("/test/123", {"name": "Patched"})

        assert [c.method for c in calls] == ["PUT", "PATCH"]

    @pytest.mark.asyncio
    async def test_delete_with_empty_body(self):
        """A 204 without content decodes to an empty object."""
        handler, calls = scripted(httpx.Response(204))
        client, _ = make_client(handler)

        result = await client.delete("/test/123")

        assert result == {}
        assert calls[0].method == "DELETE"
        assert calls[0].content == b""

    @pytest.mark.asyncio
    async def test_success_is_never_retried(self):
        handler, calls = scripted(httpx.Response(200, json={"ok": True}))
        client, delays = make_client(handler)

        await client.get("/ping")

        assert len(calls) == 1
        assert delays == []

    @pytest.mark.asyncio
    async def test_context_manager_closes_client(self):
        handler, _ = scripted(httpx.Response(200, json={}))
        client, _ = make_client(handler)

        async with client as c:
            await c.get("/")

        assert client._http.is_closed


class TestRetries:
    """Tests for retry and failure semantics."""

    @pytest.mark.asyncio
    async def test_server_errors_then_success(self):
        """Three 503s followed by a 200: the 200 body is returned after 4 calls."""
        handler, calls = scripted(
            httpx.Response(503),
            httpx.Response(503),
            httpx.Response(503),
            httpx.Response(200, json={"lists": []}),
        )
        client, delays = make_client(handler)

        result = await client.get("/lists")

        assert result == {"lists": []}
        assert len(calls) == 4
        assert delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_server_error_exhausts_budget(self):
        """With max_retries=N at most N+1 calls are made."""
        handler, calls = scripted(httpx.Response(500, json={"title": "Oops", "detail": "boom", "instance": "x"}))
        client, _ = make_client(handler, RetryConfig(max_retries=2, initial_delay_ms=10, max_delay_ms=100))

        with pytest.raises(ServerError) as exc_info:
            await client.get("/lists")

        assert len(calls) == 3
        assert exc_info.value.status == 500
        assert "Server error 500" in str(exc_info.value)
        assert "boom" in str(exc_info.value)
        assert "instance" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self):
        """A 404 fails on the first call with ApiError."""
        handler, calls = scripted(httpx.Response(404, json={"status": 404, "title": "Resource Not Found"}))
        client, delays = make_client(handler)

        with pytest.raises(ApiError) as exc_info:
            await client.get("/lists/missing")

        assert len(calls) == 1
        assert delays == []
        assert exc_info.value.status == 404
        assert not isinstance(exc_info.value, (RateLimitExceeded, ServerError))
        assert str(exc_info.value).startswith("API error 404")

    @pytest.mark.asyncio
    async def test_bad_request_is_not_retried(self):
        handler, calls = scripted(httpx.Response(400, json={"detail": "Invalid Resource"}))
        client, _ = make_client(handler)

        with pytest.raises(ApiError):
            await client.post("/lists", {})

        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_retry_after_takes_precedence(self):
        """Retry-After: 2 waits 2s even when the backoff for that attempt is 4s."""
        handler, calls = scripted(
            httpx.Response(503),
            httpx.Response(503),
            httpx.Response(429, headers={"Retry-After": "2"}),
            httpx.Response(200, json={"ok": True}),
        )
        client, delays = make_client(handler)

        assert await client.get("/lists") == {"ok": True}
        assert delays == [1.0, 2.0, 2.0]
        assert len(calls) == 4

    @pytest.mark.asyncio
    async def test_rate_limit_without_header_uses_backoff(self):
        handler, _ = scripted(
            httpx.Response(429),
            httpx.Response(200, json={}),
        )
        client, delays = make_client(handler)

        await client.get("/lists")

        assert delays == [1.0]

    @pytest.mark.asyncio
    async def test_rate_limit_exhausts_budget(self):
        body = {"status": 429, "title": "Too Many Requests", "detail": "You have exceeded the limit"}
        handler, calls = scripted(httpx.Response(429, json=body))
        client, delays = make_client(handler)

        with pytest.raises(RateLimitExceeded) as exc_info:
            await client.get("/lists")

        assert len(calls) == 4
        assert len(delays) == 3
        assert exc_info.value.status == 429
        assert exc_info.value.body == body
        assert "You have exceeded the limit" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_error_is_retried(self):
        handler, calls = scripted(
            httpx.ConnectError("Connection refused"),
            httpx.Response(200, json={"ok": True}),
        )
        client, delays = make_client(handler)

        assert await client.get("/") == {"ok": True}
        assert len(calls) == 2
        assert delays == [1.0]

    @pytest.mark.asyncio
    async def test_network_error_reraised_after_budget(self):
        """The last transport error is re-raised unchanged."""
        handler, calls = scripted(
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("slow"),
            httpx.ConnectError("reset"),
            httpx.ConnectError("last"),
        )
        client, delays = make_client(handler)

        with pytest.raises(httpx.ConnectError, match="last"):
            await client.get("/")

        assert len(calls) == 4
        assert delays == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_zero_retries(self):
        handler, calls = scripted(httpx.Response(503))
        client, delays = make_client(handler, RetryConfig(max_retries=0, initial_delay_ms=10, max_delay_ms=10))

        with pytest.raises(ServerError):
            await client.get("/")

        assert len(calls) == 1
        assert delays == []

    @pytest.mark.asyncio
    async def test_retries_are_counted(self):
        handler, _ = scripted(httpx.Response(502), httpx.Response(200, json={}))
        client, _ = make_client(handler)

        await client.get("/")

        counters = client.metrics.snapshot()["counters"]
        assert counters["mailchimp.retry{reason=server_error}"] == 1
        assert counters["mailchimp.response{status=200}"] == 1


class TestSanitizeError:
    """Tests for error body sanitisation."""

    def test_keeps_only_safe_fields(self):
        body = {"type": "https://x", "title": "Bad", "status": 400, "detail": "d", "instance": "abc"}

        assert json.loads(sanitize_error(body)) == {"title": "Bad", "status": 400, "detail": "d"}

    def test_non_object_body(self):
        assert sanitize_error(None) == "Unknown error"
        assert sanitize_error("oops") == "Unknown error"
        assert sanitize_error([1, 2]) == "Unknown error"

    def test_object_without_safe_fields(self):
        assert sanitize_error({"instance": "abc"}) == "API request failed"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
