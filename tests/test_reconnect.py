import asyncio

import pytest

from bridge.reconnect import Reconnector
from fakes import FakeSleep


class Flaky:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1
        if self.calls <= self.failures:
            raise OSError("refused")


@pytest.mark.asyncio
async def test_backoff_sequence_saturates_on_last_delay():
    sleep = FakeSleep()
    attempt = Flaky(failures=7)
    machine = Reconnector(attempt, delays=(1, 2, 5, 10, 30), sleep=sleep)

    machine.start()
    await machine.wait()

    assert sleep.delays == [1, 2, 5, 10, 30, 30, 30, 30]
    assert attempt.calls == 8
    assert machine.backoff_index == 0


@pytest.mark.asyncio
async def test_restore_runs_after_success_and_failure_is_swallowed():
    order = []

    async def attempt():
        order.append("attempt")

    async def restore():
        order.append("restore")
        raise RuntimeError("place gone")

    machine = Reconnector(attempt, restore, delays=(1,), sleep=FakeSleep())
    machine.start()
    await machine.wait()

    assert order == ["attempt", "restore"]


@pytest.mark.asyncio
async def test_halt_cancels_scheduled_attempt_permanently():
    attempt = Flaky(failures=0)
    gate = asyncio.Event()

    async def slow_sleep(delay):
        await gate.wait()

    machine = Reconnector(attempt, delays=(1,), sleep=slow_sleep)
    machine.start()
    await asyncio.sleep(0)
    await machine.stop()
    gate.set()

    assert attempt.calls == 0
    assert machine.halted
    machine.start()
    assert not machine.running


@pytest.mark.asyncio
async def test_start_while_running_rearms_instead_of_duplicating():
    sleep = FakeSleep()
    machine = None
    calls = []

    async def attempt():
        calls.append("attempt")

    async def restore():
        # connection dropped again while restoring
        if len(calls) == 1:
            machine.start()

    machine = Reconnector(attempt, restore, delays=(1,), sleep=sleep)
    machine.start()
    machine.start()
    await machine.wait()

    assert calls == ["attempt", "attempt"]


def test_empty_delays_rejected():
    with pytest.raises(ValueError):
        Reconnector(Flaky(0), delays=())
