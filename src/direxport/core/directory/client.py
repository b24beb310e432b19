"""
Directory API client.

Turns one JSON response from the directory into a Page: the record list
plus the continuation link, if any.
"""

from __future__ import annotations

from typing import Any

from direxport.core.backends.base import Backend, RequestSpec
from direxport.core.fetch.paging import Page

DEFAULT_RECORDS_KEY = "value"
DEFAULT_NEXT_LINK_KEY = "@odata.nextLink"


class DirectoryClient:
    """Fetches single pages from a paginated JSON directory API.

    Attributes:
        backend: HTTP transport
        records_key: Response key holding the record list
        next_link_key: Response key holding the continuation URL
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        backend: Backend,
        records_key: str = DEFAULT_RECORDS_KEY,
        next_link_key: str = DEFAULT_NEXT_LINK_KEY,
        timeout: float | None = None,
    ):
        self.backend = backend
        self.records_key = records_key
        self.next_link_key = next_link_key
        self.timeout = timeout

    async def fetch_page(self, url: str, headers: dict[str, str]) -> Page:
        """Fetch one page.

        Raises:
            HttpStatusError: On a non-2xx response
            ValueError: If the body is not a JSON object with a list of objects
        """
        response = await self.backend.request(
            RequestSpec(url=url, headers=headers, timeout=self.timeout, operation="fetch_page")
        )
        return self.parse_page(response.json())

    def parse_page(self, payload: Any) -> Page:
        if not isinstance(payload, dict):
            raise ValueError(f"Expected a JSON object page, got {type(payload).__name__}")

        records = payload.get(self.records_key, [])
        if not isinstance(records, list):
            raise ValueError(f"'{self.records_key}' is not a list")
        if not all(isinstance(record, dict) for record in records):
            raise ValueError(f"'{self.records_key}' holds entries that are not JSON objects")

        return Page(records=records, next_url=payload.get(self.next_link_key) or None)
