"""
Retry execution with tenacity.

Runs a unit of remote work under a RetryPolicy, classifying each failure
and backing off exponentially (with optional jitter) between attempts.
Callers get an explicit Result instead of a raised exception.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from direxport.core.fetch.errors import (
    FaultCategory,
    FaultRecord,
    TerminalFailure,
    classify,
    classify_fault,
    should_retry,
)
from direxport.core.logging import get_logger
from direxport.core.telemetry import (
    NullTelemetryObserver,
    TelemetryEvent,
    TelemetryObserver,
    emit,
)

logger = get_logger("fetch.retries")

T = TypeVar("T")


# Default retry configuration
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 30.0  # seconds


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration for one call site.

    Attributes:
        max_attempts: Total attempts including the first (3 means 2 retries)
        base_delay: Delay before the first retry, in seconds
        max_delay: Cap on the exponential delay, in seconds
        jitter: Add a random extra wait in [0, delay/2]
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")

    def backoff(self, attempt: int) -> float:
        """Un-jittered delay after a failed ``attempt`` (1-indexed)."""
        return min(self.max_delay, self.base_delay * 2 ** (attempt - 1))


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a retried operation: a value or a terminal fault."""

    value: T | None = None
    fault: FaultRecord | None = None
    cause: BaseException | None = field(default=None, compare=False, repr=False)

    @property
    def ok(self) -> bool:
        return self.fault is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, fault: FaultRecord, cause: BaseException | None = None) -> "Result[T]":
        return cls(fault=fault, cause=cause)

    def unwrap(self) -> T:
        """Return the value or raise TerminalFailure carrying the fault."""
        if self.fault is not None:
            raise TerminalFailure(self.fault, self.cause) from self.cause
        return self.value  # type: ignore[return-value]


class RetryExecutor:
    """Runs zero-argument async operations under a RetryPolicy.

    Every failed attempt that is followed by a retry is reported to the
    telemetry observer as a RetryAttempted event.
    """

    def __init__(
        self,
        observer: TelemetryObserver | None = None,
        *,
        export_id: str | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        jitter_source: Callable[[float, float], float] = random.uniform,
    ):
        """Initialize the executor.

        Args:
            observer: Telemetry sink for retry events
            export_id: Correlation id stamped onto telemetry
            sleep: Coroutine used for backoff waits
            jitter_source: Random number source for jitter
        """
        self.observer = observer or NullTelemetryObserver()
        self.export_id = export_id
        self._sleep = sleep
        self._jitter_source = jitter_source

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        operation_name: str,
    ) -> Result[T]:
        """Run ``operation`` until it succeeds or fails terminally.

        Args:
            operation: Zero-argument coroutine function
            policy: Retry policy for this call site
            operation_name: Name used in faults and telemetry

        Returns:
            Result holding the value, or the FaultRecord of the last failure
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(policy.max_attempts),
                wait=self._wait_strategy(policy),
                retry=retry_if_exception(lambda exc: should_retry(classify(exc))),
                before_sleep=lambda state: self._report_retry(state, operation_name),
                sleep=self._sleep,
                reraise=True,
            ):
                with attempt:
                    return Result.success(await operation())
        except Exception as exc:
            fault = classify_fault(exc, operation_name)
            logger.error(
                "%s failed terminally: %s",
                operation_name,
                fault.message,
                extra={
                    "operation": operation_name,
                    "category": fault.category.value,
                    "export_id": self.export_id,
                },
            )
            return Result.failure(fault, exc)

        # stop_after_attempt(>=1) always runs at least once
        raise RuntimeError(f"{operation_name} made no attempts")

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: RetryPolicy,
        operation_name: str,
    ) -> T:
        """Like execute, but raise TerminalFailure instead of returning it."""
        result = await self.execute(operation, policy, operation_name)
        return result.unwrap()

    def _wait_strategy(self, policy: RetryPolicy) -> Callable[[RetryCallState], float]:
        exponential = wait_exponential(multiplier=policy.base_delay, max=policy.max_delay)
        previous = 0.0

        def wait(retry_state: RetryCallState) -> float:
            nonlocal previous
            delay = exponential(retry_state)

            # Honor a rate limiter's Retry-After, within the policy cap
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            retry_after = getattr(exc, "retry_after", None)
            if isinstance(retry_after, (int, float)) and classify(exc) is FaultCategory.RATE_LIMIT:
                delay = max(delay, min(float(retry_after), policy.max_delay))

            # Backoff within one execute call never shrinks
            delay = max(delay, previous)
            previous = delay

            if policy.jitter and delay > 0:
                delay += self._jitter_source(0, delay / 2)
            return delay

        return wait

    def _report_retry(self, retry_state: RetryCallState, operation_name: str) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        category = classify(exc).value if exc is not None else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0

        logger.warning(
            "Retrying %s after attempt %d (%s), waiting %.2fs",
            operation_name,
            retry_state.attempt_number,
            category,
            delay,
            extra={
                "operation": operation_name,
                "attempt": retry_state.attempt_number,
                "category": category,
                "delay": delay,
                "export_id": self.export_id,
            },
        )
        emit(
            self.observer,
            TelemetryEvent.RETRY_ATTEMPTED,
            export_id=self.export_id,
            operation=operation_name,
            attempt=retry_state.attempt_number,
            category=category,
            delay=delay,
        )
