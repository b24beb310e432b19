"""Envelope building and size-bounded batch publishing."""

from .batcher import (
    DEFAULT_MAX_BATCH_BYTES,
    BatchPublisher,
    Chunk,
    OversizePolicy,
    PublishSummary,
    partition_records,
    serialized_size,
)
from .envelope import SourceType, build_envelopes

__all__ = [
    "DEFAULT_MAX_BATCH_BYTES",
    "BatchPublisher",
    "Chunk",
    "OversizePolicy",
    "PublishSummary",
    "partition_records",
    "serialized_size",
    "SourceType",
    "build_envelopes",
]
