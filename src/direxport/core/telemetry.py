"""
Pipeline telemetry.

The pipeline reports structured events through a single observer passed in
by reference. Observers are fire-and-forget: a failing observer is logged
and otherwise ignored.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol

from direxport.core.logging import get_logger

logger = get_logger("telemetry")


class TelemetryEvent(str, Enum):
    """Structured telemetry event names."""

    RETRY_ATTEMPTED = "RetryAttempted"
    STAGE_COMPLETED = "StageCompleted"
    RUN_COMPLETED = "RunCompleted"
    RUN_FAILED = "RunFailed"
    GROUP_MEMBERSHIP_FAILED = "GroupMembershipFailed"


class TelemetryObserver(Protocol):
    """Receives structured pipeline events."""

    def emit(self, event: TelemetryEvent, properties: dict[str, Any]) -> None:
        ...


class NullTelemetryObserver:
    """Observer that discards every event."""

    def emit(self, event: TelemetryEvent, properties: dict[str, Any]) -> None:
        pass


class LoggingTelemetryObserver:
    """Observer that writes each event as a structured log record."""

    LEVELS = {
        TelemetryEvent.RETRY_ATTEMPTED: logging.WARNING,
        TelemetryEvent.RUN_FAILED: logging.ERROR,
        TelemetryEvent.GROUP_MEMBERSHIP_FAILED: logging.WARNING,
    }

    def __init__(self, target: logging.Logger | None = None):
        self.logger = target or logger

    def emit(self, event: TelemetryEvent, properties: dict[str, Any]) -> None:
        level = self.LEVELS.get(event, logging.INFO)
        self.logger.log(
            level,
            "%s %s",
            event.value,
            " ".join(f"{key}={value}" for key, value in properties.items()),
            extra={"event": event.value, "properties": properties},
        )


def emit(observer: TelemetryObserver, event: TelemetryEvent, **properties: Any) -> None:
    """Send an event to an observer without letting it fail the caller."""
    try:
        observer.emit(event, properties)
    except Exception:
        logger.warning("Telemetry observer failed on %s", event.value, exc_info=True)
