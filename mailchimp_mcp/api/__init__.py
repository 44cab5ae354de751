"""
Mailchimp Marketing API access.

    from mailchimp_mcp.api import MailchimpClient

    async with MailchimpClient(api_key, "us21") as client:
        lists = await client.get("/lists")

Transient failures (429, 5xx, network errors) are retried with exponential
backoff; other error responses raise ApiError immediately.
"""

from .backoff import DEFAULT_RETRY_CONFIG, RetryConfig, calculate_backoff
from .client import MailchimpClient, build_base_url
from .errors import ApiError, NetworkError, RateLimitExceeded, ServerError, sanitize_error

__all__ = [
    # Client
    "MailchimpClient",
    "build_base_url",
    # Retry
    "RetryConfig",
    "DEFAULT_RETRY_CONFIG",
    "calculate_backoff",
    # Errors
    "ApiError",
    "RateLimitExceeded",
    "ServerError",
    "NetworkError",
    "sanitize_error",
]
