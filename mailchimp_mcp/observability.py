"""
Logging and metrics for the Mailchimp MCP server.

Logs go to stderr: in stdio mode stdout carries the MCP protocol and any
stray write there corrupts the stream.

Metrics live in an explicitly constructed MetricsCollector that is passed to
the API client and the router, so each server (and each test) owns its own
numbers.
"""

import logging
import re
import sys
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
REDACTED = "[REDACTED]"

SENSITIVE_FIELDS = ("api_key", "apikey", "authorization", "password", "token", "secret")

_BASIC_AUTH_RE = re.compile(r"(Basic\s+)[A-Za-z0-9+/=]+")


class RedactingFilter(logging.Filter):
    """Scrub credentials from log records before they are emitted."""

    def filter(self, record: logging.LogRecord) -> bool:
        for attr in list(vars(record)):
            if attr.lower() in SENSITIVE_FIELDS:
                setattr(record, attr, REDACTED)
        if isinstance(record.msg, str):
            record.msg = _BASIC_AUTH_RE.sub(rf"\g<1>{REDACTED}", record.msg)
        return True


def configure_logging(level: str = "INFO", stream=None) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Level name, e.g. "DEBUG" or "INFO"
        stream: Output stream (default: stderr)

    Returns:
        The ``mailchimp_mcp`` logger
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RedactingFilter())

    logger = logging.getLogger("mailchimp_mcp")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    logger.propagate = False
    return logger


@dataclass
class HistogramValue:
    """Running aggregate for one histogram key."""
    count: int
    sum: float
    min: float
    max: float
    last: float
    timestamp: float

    def record(self, value: float) -> None:
        self.count += 1
        self.sum += value
        self.min = min(self.min, value)
        self.max = max(self.max, value)
        self.last = value
        self.timestamp = time.time()

    def to_dict(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "sum": self.sum,
            "min": self.min,
            "max": self.max,
            "avg": self.sum / self.count,
            "last": self.last,
        }


class MetricsCollector:
    """
    In-memory counters, gauges and histograms.

    Keys carry their tags sorted by name: ``name{method=GET,status=200}``.
    """

    def __init__(self):
        self._counters: Dict[str, float] = {}
        self._gauges: Dict[str, float] = {}
        self._histograms: Dict[str, HistogramValue] = {}

    def counter(self, name: str, value: float = 1, tags: Optional[Dict[str, Any]] = None) -> None:
        """Increment a counter."""
        key = self._build_key(name, tags)
        self._counters[key] = self._counters.get(key, 0) + value

    def gauge(self, name: str, value: float, tags: Optional[Dict[str, Any]] = None) -> None:
        """Set a gauge to an absolute value."""
        self._gauges[self._build_key(name, tags)] = value

    def histogram(self, name: str, value: float, tags: Optional[Dict[str, Any]] = None) -> None:
        """Record one observation (durations, sizes)."""
        key = self._build_key(name, tags)
        current = self._histograms.get(key)
        if current is None:
            self._histograms[key] = HistogramValue(
                count=1, sum=value, min=value, max=value, last=value, timestamp=time.time()
            )
        else:
            current.record(value)

    def snapshot(self) -> Dict[str, Any]:
        """Return a JSON-serialisable copy of every metric."""
        return {
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
            "histograms": {k: v.to_dict() for k, v in self._histograms.items()},
        }

    def reset(self) -> None:
        self._counters.clear()
        self._gauges.clear()
        self._histograms.clear()

    @asynccontextmanager
    async def measure(self, name: str, tags: Optional[Dict[str, Any]] = None) -> AsyncIterator[None]:
        """
        Time the enclosed block in milliseconds.

        The observation is tagged ``status=success`` or ``status=error``;
        exceptions propagate unchanged.
        """
        start = time.monotonic()
        status = "success"
        try:
            yield
        except BaseException:
            status = "error"
            raise
        finally:
            elapsed_ms = (time.monotonic() - start) * 1000
            self.histogram(name, elapsed_ms, {**(tags or {}), "status": status})

    @staticmethod
    def _build_key(name: str, tags: Optional[Dict[str, Any]]) -> str:
        if not tags:
            return name
        tag_string = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name}{{{tag_string}}}"
