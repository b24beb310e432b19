"""
Paginated collection walking.

PagedFetcher follows continuation links lazily, retrieving each page under
the RetryExecutor. It stops when a page carries no continuation link and
propagates the first terminal failure to its caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, AsyncIterator, Protocol

if TYPE_CHECKING:
    from direxport.core.auth.source import TokenSource
    from direxport.core.fetch.retries import RetryExecutor, RetryPolicy


@dataclass
class Page:
    """One page of a paginated collection."""

    records: list[dict[str, Any]] = field(default_factory=list)
    next_url: str | None = None
    page_number: int = 1

    @property
    def has_next(self) -> bool:
        """Check if there's a next page."""
        return bool(self.next_url)

    def __len__(self) -> int:
        return len(self.records)


class PageSource(Protocol):
    """Retrieves a single page from the remote directory."""

    async def fetch_page(self, url: str, headers: dict[str, str]) -> Page:
        ...


class PagedFetcher:
    """Walks a paginated remote collection.

    Not resumable: restarting means calling ``fetch`` again with the
    original URL. No delay is inserted between pages.

    Attributes:
        calls: Remote page requests issued, retries included
        pages: Pages successfully retrieved
    """

    def __init__(
        self,
        source: PageSource,
        executor: RetryExecutor,
        policy: RetryPolicy,
        tokens: TokenSource,
        resource: str,
    ):
        self.source = source
        self.executor = executor
        self.policy = policy
        self.tokens = tokens
        self.resource = resource
        self.calls = 0
        self.pages = 0

    async def fetch(self, initial_url: str, operation: str = "fetch_page") -> AsyncIterator[Page]:
        """Yield pages until one carries no continuation link.

        A page with zero records but a continuation link is still followed.

        Args:
            initial_url: URL of the first page
            operation: Name prefix for faults and telemetry

        Yields:
            Page for each retrieved page, in order

        Raises:
            TerminalFailure: On token or page retrieval failure
        """
        url: str | None = initial_url
        page_num = 0

        while url:
            page_num += 1
            headers = await self.tokens.authorization(self.resource)

            result = await self.executor.execute(
                lambda: self._fetch_once(url, headers),
                self.policy,
                f"{operation}:{page_num}",
            )
            page = result.unwrap()
            page.page_number = page_num
            self.pages += 1

            yield page

            url = page.next_url

    async def _fetch_once(self, url: str, headers: dict[str, str]) -> Page:
        self.calls += 1
        return await self.source.fetch_page(url, headers)
