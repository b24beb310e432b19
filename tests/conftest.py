"""Shared fixtures: in-memory directory, scripted channel, recording observer."""

from __future__ import annotations

from typing import Any, Callable
from urllib.parse import urlsplit

import pytest

from direxport.core.auth import StaticTokenProvider, TokenSource
from direxport.core.config import AppConfig, parse_app_config
from direxport.core.delivery import DeliveryAck
from direxport.core.fetch import Page, RetryExecutor, RetryPolicy
from direxport.core.telemetry import TelemetryEvent

BASE_URL = "https://graph.test/v1.0"


class SleepRecorder:
    """Stands in for asyncio.sleep; records requested delays, never waits."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class RecordingObserver:
    def __init__(self) -> None:
        self.events: list[tuple[TelemetryEvent, dict[str, Any]]] = []

    def emit(self, event: TelemetryEvent, properties: dict[str, Any]) -> None:
        self.events.append((event, properties))

    def of(self, event: TelemetryEvent) -> list[dict[str, Any]]:
        return [props for name, props in self.events if name is event]


class FakeDirectory:
    """PageSource serving scripted responses.

    Responses are registered per full URL or per URL path. Each request
    consumes the next scripted response; the last one repeats. A scripted
    exception is raised instead of returned.
    """

    def __init__(self) -> None:
        self.responses: dict[str, list[Page | Exception]] = {}
        self.requests: list[tuple[str, dict[str, str]]] = []

    def add(self, key: str, *responses: Page | Exception) -> None:
        self.responses[key] = list(responses)

    def add_collection(self, path: str, *record_pages: list[dict[str, Any]]) -> None:
        """Register a collection served as consecutive linked pages."""
        first = f"{BASE_URL}/{path}"
        keys = [urlsplit(first).path] + [
            f"{first}?$skiptoken={n}" for n in range(2, len(record_pages) + 1)
        ]
        for index, records in enumerate(record_pages):
            next_url = keys[index + 1] if index + 1 < len(keys) else None
            self.add(keys[index], Page(records=records, next_url=next_url))

    def requests_for(self, fragment: str) -> list[str]:
        return [url for url, _ in self.requests if fragment in url]

    async def fetch_page(self, url: str, headers: dict[str, str]) -> Page:
        self.requests.append((url, headers))

        key = url if url in self.responses else urlsplit(url).path
        if key not in self.responses:
            raise AssertionError(f"unexpected directory request: {url}")

        queue = self.responses[key]
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        return Page(records=list(response.records), next_url=response.next_url)


class FakeChannel:
    """DeliveryChannel recording each batch.

    ``script`` is consumed one entry per send (an exception to raise, or
    None to accept). ``fail_when`` inspects the body and may return an
    exception to raise for it.
    """

    uri = "https://ingest.test/export/messages"

    def __init__(self) -> None:
        self.sent: list[tuple[dict[str, str], bytes]] = []
        self.attempts = 0
        self.script: list[Exception | None] = []
        self.fail_when: Callable[[bytes], Exception | None] | None = None

    async def send(self, headers: dict[str, str], body: bytes) -> DeliveryAck:
        self.attempts += 1
        if self.script:
            failure = self.script.pop(0)
            if failure is not None:
                raise failure
        if self.fail_when is not None:
            failure = self.fail_when(body)
            if failure is not None:
                raise failure
        self.sent.append((headers, body))
        return DeliveryAck(status_code=201, bytes_sent=len(body))


def make_users(count: int, prefix: str = "u") -> list[dict[str, Any]]:
    return [
        {"id": f"{prefix}{i}", "displayName": f"User {i}", "userPrincipalName": f"{prefix}{i}@example.test"}
        for i in range(count)
    ]


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def executor(observer: RecordingObserver, sleep: SleepRecorder) -> RetryExecutor:
    return RetryExecutor(observer, export_id="test-export", sleep=sleep)


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=30.0, jitter=False)


@pytest.fixture
def tokens(executor: RetryExecutor, policy: RetryPolicy) -> TokenSource:
    return TokenSource(StaticTokenProvider("test-token"), executor, policy)


@pytest.fixture
def make_config() -> Callable[..., AppConfig]:
    """Build an AppConfig for tests; keyword overrides are merged per section."""

    def factory(**sections: dict[str, Any]) -> AppConfig:
        no_jitter = {"jitter": False, "base_delay": 1.0, "max_delay": 30.0}
        data: dict[str, Any] = {
            "directory": {"base_url": BASE_URL, "page_size": 999},
            "delivery": {"namespace": "contoso-ns", "channel_name": "directory-export"},
            "auth": {"static_token": "test-token"},
            "retry": {
                "token": {"max_attempts": 3, **no_jitter},
                "fetch": {"max_attempts": 3, **no_jitter},
                "publish": {"max_attempts": 3, **no_jitter},
            },
            "memberships": {"inter_call_delay_seconds": 0.0},
            "logging": {"rich_console": False},
        }
        for name, values in sections.items():
            data[name] = {**data.get(name, {}), **values}
        return parse_app_config(data)

    return factory
