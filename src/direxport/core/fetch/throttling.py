"""
Inter-call throttling.

A fixed pause between successive calls against a rate-limited upstream.
This is deliberately separate from retry backoff: it is a tunable constant,
not a computed delay.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable


@dataclass
class InterCallDelay:
    """Enforces a minimum spacing between calls.

    The first call never waits. Later calls wait only for whatever part of
    ``seconds`` has not already elapsed since the previous call.
    """

    seconds: float = 0.0
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    clock: Callable[[], float] = time.monotonic

    def __post_init__(self) -> None:
        if self.seconds < 0:
            raise ValueError("seconds must be >= 0")
        self._last_call: float | None = None

    async def wait(self) -> float:
        """Wait until the next call is allowed.

        Returns:
            Seconds actually waited
        """
        waited = 0.0
        if self.seconds > 0 and self._last_call is not None:
            elapsed = self.clock() - self._last_call
            if elapsed < self.seconds:
                waited = self.seconds - elapsed
                await self.sleep(waited)

        self._last_call = self.clock()
        return waited

    def reset(self) -> None:
        """Forget the previous call."""
        self._last_call = None
