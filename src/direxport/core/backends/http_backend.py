"""
HTTP Backend implementation using httpx.

Provides async HTTP requests with:
- Persistent connection pooling
- Bounded per-request timeouts
- Non-2xx responses raised as HttpStatusError (with Retry-After parsed)

Retries are not done here; callers wrap requests in a RetryExecutor.
"""

from __future__ import annotations

from datetime import datetime, timezone

import httpx

from direxport import __app_name__, __version__
from direxport.core.fetch.errors import HttpStatusError

from .base import ApiResponse, Backend, RequestSpec

DEFAULT_TIMEOUT = 30.0

# Longest error body echoed into an exception message
ERROR_BODY_PREVIEW = 300


class HttpBackend(Backend):
    """HTTP backend using httpx for async requests."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        default_headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize HTTP backend.

        Args:
            timeout: Default request timeout in seconds
            default_headers: Default headers for all requests
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.timeout = timeout
        self.default_headers = {
            "User-Agent": f"{__app_name__}/{__version__}",
            "Accept": "application/json",
            **(default_headers or {}),
        }
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return "http"

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=self.default_headers,
                transport=self._transport,
                limits=httpx.Limits(
                    max_connections=10,
                    max_keepalive_connections=5,
                ),
            )
        return self._client

    def _check_status(self, response: httpx.Response) -> None:
        """Raise HttpStatusError for any non-2xx response."""
        if response.is_success:
            return

        retry_seconds = None
        retry_after = response.headers.get("Retry-After")
        if retry_after:
            try:
                retry_seconds = float(retry_after)
            except ValueError:
                pass

        preview = response.text[:ERROR_BODY_PREVIEW] if response.content else ""
        raise HttpStatusError(
            f"HTTP {response.status_code} from {response.request.method} {response.url}"
            + (f": {preview}" if preview else ""),
            status_code=response.status_code,
            url=str(response.url),
            retry_after=retry_seconds,
        )

    async def request(self, request: RequestSpec) -> ApiResponse:
        """Issue a single request.

        Args:
            request: Request specification

        Returns:
            ApiResponse with the body and headers
        """
        client = await self._ensure_client()
        start_time = datetime.now(timezone.utc)

        response = await client.request(
            request.method.upper(),
            request.url,
            headers=request.headers,
            params=request.params or None,
            content=request.content,
            timeout=request.timeout if request.timeout is not None else httpx.USE_CLIENT_DEFAULT,
        )

        elapsed_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

        self._check_status(response)

        return ApiResponse(
            url=str(response.url),
            status_code=response.status_code,
            body=response.content,
            headers=dict(response.headers),
            elapsed_ms=elapsed_ms,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
