"""
Environment-driven configuration.

Variables are read from the process environment after ``load_dotenv()`` so a
local ``.env`` file works the same as exported variables.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple
from urllib.parse import urlsplit

from dotenv import load_dotenv

VALID_SERVER_PREFIXES = tuple(f"us{i}" for i in range(1, 22))
DEFAULT_SERVER_PREFIX = "us21"
DEFAULT_PORT = 3000
DEFAULT_HOST = "127.0.0.1"
LOCALHOST_NAMES = ("localhost", "127.0.0.1", "::1")

TRANSPORT_STDIO = "stdio"
TRANSPORT_SSE = "sse"
_TRANSPORT_ALIASES = {
    "stdio": TRANSPORT_STDIO,
    "sse": TRANSPORT_SSE,
    "http": TRANSPORT_SSE,
}


class ConfigurationError(Exception):
    """Required configuration is missing or unusable; the server cannot start."""


def resolve_server_prefix(value: Optional[str]) -> str:
    """
    Validate the data-center prefix against the known list.

    The prefix becomes part of the API hostname, so anything outside the
    allow-list falls back to the default instead of reaching arbitrary hosts.
    """
    if value and value.strip().lower() in VALID_SERVER_PREFIXES:
        return value.strip().lower()
    return DEFAULT_SERVER_PREFIX


def resolve_transport(value: Optional[str]) -> str:
    mode = (value or TRANSPORT_STDIO).strip().lower()
    if mode not in _TRANSPORT_ALIASES:
        raise ConfigurationError(
            f"Invalid TRANSPORT_MODE: {value}. Use 'stdio' or 'sse'."
        )
    return _TRANSPORT_ALIASES[mode]


def parse_origins(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(o.strip().rstrip("/") for o in value.split(",") if o.strip())


def is_origin_allowed(origin: Optional[str], allowed: Tuple[str, ...] = ()) -> bool:
    """
    Check a browser Origin header against the CORS allow-list.

    With no explicit list only loopback hosts are accepted, on any port. The
    hostname is parsed and compared exactly, so ``http://localhost.evil.com``
    and ``http://127.0.0.1.nip.io`` are rejected. Explicit entries must match
    scheme, host and port.
    """
    if not origin:
        return False
    try:
        parts = urlsplit(origin)
        port = parts.port
    except ValueError:
        return False
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return False
    if parts.path not in ("", "/") or parts.query or parts.fragment or parts.username:
        return False

    if not allowed:
        return parts.hostname in LOCALHOST_NAMES

    for entry in allowed:
        try:
            expected = urlsplit(entry)
            expected_port = expected.port
        except ValueError:
            continue
        if (
            expected.scheme == parts.scheme
            and expected.hostname == parts.hostname
            and expected_port == port
        ):
            return True
    return False


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    """Server configuration resolved from the environment."""
    api_key: str
    server_prefix: str = DEFAULT_SERVER_PREFIX
    readonly: bool = True
    mask_pii: bool = False
    transport: str = TRANSPORT_STDIO
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    cors_origins: Tuple[str, ...] = field(default_factory=tuple)
    log_level: str = "INFO"

    @property
    def write_enabled(self) -> bool:
        return not self.readonly

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        """
        Build the configuration.

        Args:
            environ: Mapping to read from. When omitted, ``.env`` is loaded
                and ``os.environ`` is used.

        Raises:
            ConfigurationError: MAILCHIMP_API_KEY is missing, or TRANSPORT_MODE
                or PORT is invalid
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        api_key = (environ.get("MAILCHIMP_API_KEY") or "").strip()
        if not api_key:
            raise ConfigurationError("MAILCHIMP_API_KEY environment variable is required")

        port_value = environ.get("PORT")
        try:
            port = int(port_value) if port_value else DEFAULT_PORT
        except ValueError:
            raise ConfigurationError(f"Invalid PORT: {port_value}")

        return cls(
            api_key=api_key,
            server_prefix=resolve_server_prefix(environ.get("MAILCHIMP_SERVER_PREFIX")),
            # Writes stay disabled unless explicitly turned on.
            readonly=(environ.get("MAILCHIMP_READONLY", "").strip().lower() != "false"),
            mask_pii=_flag(environ.get("MAILCHIMP_MASK_PII")),
            transport=resolve_transport(environ.get("TRANSPORT_MODE")),
            host=environ.get("HOST") or DEFAULT_HOST,
            port=port,
            cors_origins=parse_origins(environ.get("CORS_ORIGINS")),
            log_level=environ.get("LOG_LEVEL") or "INFO",
        )
