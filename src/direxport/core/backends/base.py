"""
Backend base classes and data structures.

Defines the interface contract for HTTP transports used to talk to the
directory API and the delivery endpoint.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import orjson


@dataclass
class RequestSpec:
    """Specification for an HTTP request."""

    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    content: bytes | None = None
    timeout: float | None = None

    # Metadata for logging/debugging
    operation: str | None = None


@dataclass
class ApiResponse:
    """Result of a successful (2xx) request."""

    url: str
    status_code: int
    body: bytes
    headers: dict[str, str]

    # Timing
    elapsed_ms: float
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        """Check if request was successful (2xx status)."""
        return 200 <= self.status_code < 300

    @property
    def content_length(self) -> int:
        """Get content length in bytes."""
        return len(self.body)

    def json(self) -> Any:
        """Decode the body as JSON."""
        if not self.body:
            return None
        return orjson.loads(self.body)


class Backend(ABC):
    """Abstract base class for HTTP backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier."""
        pass

    @abstractmethod
    async def request(self, request: RequestSpec) -> ApiResponse:
        """Issue a request and return the response.

        Args:
            request: Request specification

        Returns:
            ApiResponse for a 2xx reply

        Raises:
            HttpStatusError: On a non-2xx reply
            httpx.TransportError: On timeouts and connection failures
        """
        pass

    async def close(self) -> None:
        """Clean up backend resources."""
        pass

    async def __aenter__(self) -> "Backend":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
