"""
Delivery channel to the message-ingestion endpoint.

The endpoint URI is derived from two configuration values, the namespace
and the channel name. Provisioning the channel is someone else's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from direxport.core.backends.base import Backend, RequestSpec

EVENT_HUB_HOST_SUFFIX = "servicebus.windows.net"
CONTENT_TYPE = "application/json"


@dataclass(frozen=True)
class DeliveryAck:
    """Acknowledgement of an accepted batch."""

    status_code: int
    bytes_sent: int
    elapsed_ms: float = 0.0


class DeliveryChannel(Protocol):
    """Sends one serialized batch to the ingestion endpoint."""

    @property
    def uri(self) -> str:
        ...

    async def send(self, headers: dict[str, str], body: bytes) -> DeliveryAck:
        ...


def event_hub_uri(namespace: str, channel_name: str) -> str:
    """Build the send URI for an event hub."""
    if not namespace or not channel_name:
        raise ValueError("namespace and channel_name are required")
    host = namespace if "." in namespace else f"{namespace}.{EVENT_HUB_HOST_SUFFIX}"
    return f"https://{host}/{channel_name}/messages"


class EventHubChannel:
    """Posts JSON batches to an event hub over its REST interface."""

    def __init__(
        self,
        backend: Backend,
        namespace: str,
        channel_name: str,
        timeout: float | None = None,
    ):
        self.backend = backend
        self.namespace = namespace
        self.channel_name = channel_name
        self.timeout = timeout
        self._uri = event_hub_uri(namespace, channel_name)

    @property
    def uri(self) -> str:
        return self._uri

    async def send(self, headers: dict[str, str], body: bytes) -> DeliveryAck:
        """Send one batch.

        Raises:
            HttpStatusError: If the endpoint rejects the batch
        """
        response = await self.backend.request(
            RequestSpec(
                url=self._uri,
                method="POST",
                headers={**headers, "Content-Type": CONTENT_TYPE},
                content=body,
                timeout=self.timeout,
                operation="send_batch",
            )
        )
        return DeliveryAck(
            status_code=response.status_code,
            bytes_sent=len(body),
            elapsed_ms=response.elapsed_ms,
        )
