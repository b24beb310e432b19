"""InterCallDelay tests."""

from __future__ import annotations

import pytest

from direxport.core.fetch.throttling import InterCallDelay


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_first_call_never_waits(sleep) -> None:
    delay = InterCallDelay(2.0, sleep=sleep, clock=FakeClock())

    assert await delay.wait() == 0.0
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_waits_for_remaining_interval(sleep) -> None:
    clock = FakeClock()
    delay = InterCallDelay(2.0, sleep=sleep, clock=clock)

    await delay.wait()
    clock.now += 0.5
    waited = await delay.wait()

    assert waited == pytest.approx(1.5)
    assert sleep.delays == [pytest.approx(1.5)]


@pytest.mark.asyncio
async def test_no_wait_when_interval_already_elapsed(sleep) -> None:
    clock = FakeClock()
    delay = InterCallDelay(1.0, sleep=sleep, clock=clock)

    await delay.wait()
    clock.now += 3.0
    await delay.wait()

    assert sleep.delays == []


@pytest.mark.asyncio
async def test_zero_delay_disables_throttling(sleep) -> None:
    delay = InterCallDelay(0.0, sleep=sleep)

    for _ in range(3):
        await delay.wait()

    assert sleep.delays == []


@pytest.mark.asyncio
async def test_reset_forgets_previous_call(sleep) -> None:
    delay = InterCallDelay(5.0, sleep=sleep, clock=FakeClock())

    await delay.wait()
    delay.reset()
    await delay.wait()

    assert sleep.delays == []


def test_negative_delay_rejected() -> None:
    with pytest.raises(ValueError):
        InterCallDelay(-1.0)
