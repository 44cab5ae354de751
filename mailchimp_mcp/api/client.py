"""
Async client for the Mailchimp Marketing API (v3.0).

Every call goes through ``MailchimpClient.request`` which retries:
- 429 responses, waiting ``Retry-After`` seconds when the header is sent,
  otherwise the exponential backoff delay
- 5xx responses, waiting the backoff delay
- transport failures (DNS, refused, reset, timeout), waiting the backoff delay

Any other non-2xx status raises ApiError on the first attempt.
"""

import asyncio
import base64
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from mailchimp_mcp.api.backoff import DEFAULT_RETRY_CONFIG, RetryConfig, calculate_backoff
from mailchimp_mcp.api.errors import ApiError, RateLimitExceeded, ServerError
from mailchimp_mcp.observability import MetricsCollector

DEFAULT_TIMEOUT_SECONDS = 30.0

Sleep = Callable[[float], Awaitable[None]]


def build_base_url(server_prefix: str) -> str:
    """Return the API root for a data-center prefix such as ``us21``."""
    return f"https://{server_prefix}.api.mailchimp.com/3.0"


def _decode_body(response: httpx.Response) -> Any:
    """Decode a JSON body, tolerating empty or non-JSON error pages."""
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return {}


def _retry_after_ms(response: httpx.Response) -> Optional[int]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return int(value.strip()) * 1000
    except ValueError:
        return None


class MailchimpClient:
    """
    Client session bound to one Mailchimp account.

    The base URL, credential and retry configuration are fixed at
    construction and shared by all concurrent requests.
    """

    def __init__(
        self,
        api_key: str,
        server_prefix: str,
        retry_config: RetryConfig = DEFAULT_RETRY_CONFIG,
        metrics: Optional[MetricsCollector] = None,
        logger: Optional[logging.Logger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Sleep] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        """
        Initialize the client.

        Args:
            api_key: Mailchimp API key
            server_prefix: Data-center prefix (already validated), e.g. "us21"
            retry_config: Retry budget and backoff bounds
            metrics: Collector for request timings and retry counts
            logger: Logger (default: this module's logger)
            transport: Optional httpx transport, used by tests to mock the API
            sleep: Coroutine used to wait between attempts (default: asyncio.sleep)
            timeout: Per-request timeout in seconds
        """
        self.api_key = api_key
        self.base_url = build_base_url(server_prefix)
        self.retry_config = retry_config
        self.metrics = metrics or MetricsCollector()
        self.logger = logger or logging.getLogger(__name__)
        self._sleep = sleep or asyncio.sleep

        token = base64.b64encode(f"{api_key}:{api_key}".encode()).decode()
        self._headers = {
            "Authorization": f"Basic {token}",
            "Content-Type": "application/json",
        }
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "MailchimpClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _wait(self, delay_ms: int) -> None:
        await self._sleep(delay_ms / 1000)

    async def request(self, method: str, path: str, body: Any = None) -> Any:
        """
        Perform one logical API operation.

        Args:
            method: HTTP method
            path: Path below the API root, e.g. "/lists"
            body: JSON-serialisable request body (optional)

        Returns:
            The decoded JSON response

        Raises:
            RateLimitExceeded: 429 on every attempt
            ServerError: 5xx on every attempt
            ApiError: any other non-2xx status (never retried)
            httpx.TransportError: network failure on every attempt
        """
        url = f"{self.base_url}{path}"
        content = json.dumps(body) if body is not None else None
        config = self.retry_config
        last_error: Optional[Exception] = None

        for attempt in range(config.max_retries + 1):
            has_retry = attempt < config.max_retries
            self.logger.debug(f"{method} {path} (attempt {attempt + 1}/{config.total_attempts})")

            try:
                async with self.metrics.measure("mailchimp.request", {"method": method}):
                    response = await self._http.request(
                        method, url, headers=self._headers, content=content
                    )
            except httpx.TransportError as e:
                last_error = e
                self.logger.warning(f"{method} {path} failed: {e!r}")
                if has_retry:
                    self.metrics.counter("mailchimp.retry", tags={"reason": "network"})
                    await self._wait(calculate_backoff(attempt, config))
                continue

            status = response.status_code
            self.metrics.counter("mailchimp.response", tags={"status": status})

            if status == 429:
                delay_ms = _retry_after_ms(response)
                if delay_ms is None:
                    delay_ms = calculate_backoff(attempt, config)
                if has_retry:
                    self.logger.info(f"Rate limited on {path}; retrying in {delay_ms}ms")
                    self.metrics.counter("mailchimp.retry", tags={"reason": "rate_limit"})
                    await self._wait(delay_ms)
                    continue
                raise RateLimitExceeded(_decode_body(response))

            if 500 <= status < 600:
                if has_retry:
                    delay_ms = calculate_backoff(attempt, config)
                    self.logger.info(f"Server error {status} on {path}; retrying in {delay_ms}ms")
                    self.metrics.counter("mailchimp.retry", tags={"reason": "server_error"})
                    await self._wait(delay_ms)
                    continue
                raise ServerError(status, _decode_body(response))

            if not response.is_success:
                raise ApiError(status, _decode_body(response))

            if not response.content:
                return {}
            return response.json()

        if last_error is not None:
            raise last_error
        raise RuntimeError("Request failed after retries")

    async def get(self, path: str) -> Any:
        return await self.request("GET", path)

    async def post(self, path: str, body: Any) -> Any:
        return await self.request("POST", path, body)

    async def put(self, path: str, body: Any) -> Any:
        return await self.request("PUT", path, body)

    async def patch(self, path: str, body: Any) -> Any:
        return await self.request("PATCH", path, body)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)
