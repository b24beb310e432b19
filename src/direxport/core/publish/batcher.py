"""
Size-bounded batch publishing.

Records are serialized once, packed in order into chunks whose JSON array
encoding stays strictly below the byte ceiling, and each chunk is sent
independently under the RetryExecutor. A terminal failure stops the
publish; chunks already sent stay sent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Sequence

import orjson

from direxport.core.fetch.errors import (
    FaultCategory,
    FaultRecord,
    OversizedRecordError,
)
from direxport.core.logging import get_logger

if TYPE_CHECKING:
    from direxport.core.auth.source import TokenSource
    from direxport.core.delivery.channel import DeliveryChannel
    from direxport.core.fetch.retries import RetryExecutor, RetryPolicy

logger = get_logger("publish")

# 900 KiB, below the 1 MB ingestion message cap
DEFAULT_MAX_BATCH_BYTES = 900 * 1024

# Bytes for the enclosing "[" and "]"
ARRAY_OVERHEAD = 2


class OversizePolicy(str, Enum):
    """What to do with a record too large for any chunk."""

    SEND = "send"  # ship it alone in an oversized chunk
    REJECT = "reject"  # fail the publish before anything is sent


@dataclass
class Chunk:
    """An ordered batch of serialized records sent in one delivery call."""

    items: list[bytes] = field(default_factory=list)
    oversized: bool = False

    @property
    def size(self) -> int:
        """Serialized size of the JSON array in bytes."""
        return serialized_size(self.items)

    def body(self) -> bytes:
        return b"[" + b",".join(self.items) + b"]"

    def __len__(self) -> int:
        return len(self.items)


def serialized_size(items: Sequence[bytes]) -> int:
    """Byte size of ``items`` encoded as a JSON array."""
    if not items:
        return ARRAY_OVERHEAD
    return ARRAY_OVERHEAD + sum(len(item) for item in items) + len(items) - 1


def partition_records(
    records: Sequence[dict[str, Any]],
    size_limit: int,
    oversize_policy: OversizePolicy = OversizePolicy.SEND,
) -> list[Chunk]:
    """Split records into ordered chunks each strictly below ``size_limit``.

    A record joins the current chunk unless that would reach or exceed the
    limit, in which case the chunk is sealed and a new one started.

    Raises:
        OversizedRecordError: A record alone reaches the limit and the
            policy is REJECT
    """
    if size_limit <= ARRAY_OVERHEAD:
        raise ValueError(f"size_limit must be greater than {ARRAY_OVERHEAD}")

    chunks: list[Chunk] = []
    current: list[bytes] = []
    current_size = ARRAY_OVERHEAD

    for record in records:
        item = orjson.dumps(record)
        added = len(item) + (1 if current else 0)

        if current and current_size + added >= size_limit:
            chunks.append(Chunk(current))
            current = []
            current_size = ARRAY_OVERHEAD
            added = len(item)

        if ARRAY_OVERHEAD + len(item) >= size_limit:
            if oversize_policy is OversizePolicy.REJECT:
                raise OversizedRecordError(ARRAY_OVERHEAD + len(item), size_limit)
            logger.warning(
                "Record of %d bytes exceeds the %d byte limit, sending it alone",
                ARRAY_OVERHEAD + len(item),
                size_limit,
            )
            chunks.append(Chunk([item], oversized=True))
            continue

        current.append(item)
        current_size += added

    if current:
        chunks.append(Chunk(current))

    return chunks


@dataclass
class PublishSummary:
    """Outcome of one publish call."""

    chunks_sent: int = 0
    chunks_total: int = 0
    records_sent: int = 0
    bytes_sent: int = 0
    fault: FaultRecord | None = None

    @property
    def success(self) -> bool:
        return self.fault is None and self.chunks_sent == self.chunks_total


class BatchPublisher:
    """Partitions records into chunks and sends each one.

    A fresh token is acquired for every chunk.

    Attributes:
        batches_sent: Chunks delivered over the publisher's lifetime
    """

    def __init__(
        self,
        channel: DeliveryChannel,
        executor: RetryExecutor,
        policy: RetryPolicy,
        tokens: TokenSource,
        resource: str,
        size_limit: int = DEFAULT_MAX_BATCH_BYTES,
        oversize_policy: OversizePolicy = OversizePolicy.SEND,
    ):
        self.channel = channel
        self.executor = executor
        self.policy = policy
        self.tokens = tokens
        self.resource = resource
        self.size_limit = size_limit
        self.oversize_policy = oversize_policy
        self.batches_sent = 0

    async def publish(
        self,
        records: Sequence[dict[str, Any]],
        size_limit: int | None = None,
        operation: str = "publish",
    ) -> PublishSummary:
        """Send ``records`` as size-bounded chunks.

        Args:
            records: Envelopes to send, in order
            size_limit: Override for the configured byte ceiling
            operation: Name prefix for faults and telemetry

        Returns:
            PublishSummary; ``fault`` is set if a chunk failed terminally
        """
        limit = size_limit or self.size_limit

        try:
            chunks = partition_records(records, limit, self.oversize_policy)
        except OversizedRecordError as e:
            fault = FaultRecord(
                category=FaultCategory.UNKNOWN,
                message=str(e),
                operation=f"{operation}:partition",
            )
            logger.error("Rejected publish: %s", e, extra={"operation": fault.operation})
            return PublishSummary(fault=fault)

        summary = PublishSummary(chunks_total=len(chunks))

        for index, chunk in enumerate(chunks, start=1):
            chunk_operation = f"{operation}:chunk{index}"

            auth = await self.tokens.acquire(self.resource)
            if not auth.ok:
                summary.fault = auth.fault
                return summary

            body = chunk.body()
            result = await self.executor.execute(
                lambda: self.channel.send(auth.value, body),
                self.policy,
                chunk_operation,
            )
            if not result.ok:
                summary.fault = result.fault
                logger.error(
                    "Publish aborted at chunk %d/%d after %d sent",
                    index,
                    len(chunks),
                    summary.chunks_sent,
                    extra={"operation": chunk_operation},
                )
                return summary

            summary.chunks_sent += 1
            summary.records_sent += len(chunk)
            summary.bytes_sent += len(body)
            self.batches_sent += 1

        return summary
