from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, Sequence

from shared.log import get_logger

logger = get_logger(__name__)

DEFAULT_RECONNECT_DELAYS = (1.0, 2.0, 5.0, 10.0, 30.0)

Sleep = Callable[[float], Awaitable[None]]


class Reconnector:
    """
    Backoff driver that reopens a dropped connection.

    Delays come from a fixed ordered sequence; once exhausted the last
    delay repeats. ``attempt`` performs one open + session-announcement
    wait and raises on failure. ``restore`` runs after a successful
    attempt and before recovery is declared; its failures are logged.
    ``sleep`` is injectable so tests observe the schedule without waiting.

    halt() cancels any scheduled attempt and stops the machine for good.
    """

    def __init__(
        self,
        attempt: Callable[[], Awaitable[object]],
        restore: Optional[Callable[[], Awaitable[None]]] = None,
        *,
        delays: Sequence[float] = DEFAULT_RECONNECT_DELAYS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if not delays:
            raise ValueError("delays must not be empty")
        self.delays = tuple(delays)
        self._attempt = attempt
        self._restore = restore
        self._sleep = sleep
        self._index = 0
        self._attempts = 0
        self._halted = False
        self._wanted = False
        self._task: Optional[asyncio.Task] = None

    @property
    def halted(self) -> bool:
        return self._halted

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def backoff_index(self) -> int:
        return self._index

    def next_delay(self) -> float:
        return self.delays[min(self._index, len(self.delays) - 1)]

    def start(self) -> None:
        """Engage after an unplanned disconnect; no-op once halted"""
        if self._halted:
            return
        self._wanted = True
        if not self.running:
            self._task = asyncio.create_task(self._run())

    def halt(self) -> Optional[asyncio.Task]:
        self._halted = True
        self._wanted = False
        task, self._task = self._task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            return task
        return None

    async def stop(self) -> None:
        """Halt and wait for a cancelled attempt to release its socket"""
        task = self.halt()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def wait(self) -> None:
        """Wait until the current recovery cycle finishes"""
        task = self._task
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def _run(self) -> None:
        # A drop during restoration re-arms the loop rather than starting a second task
        while self._wanted and not self._halted:
            self._wanted = False
            await self._recover()

    async def _recover(self) -> None:
        while not self._halted:
            delay = self.next_delay()
            self._attempts += 1
            logger.info("Reconnecting in %gs (attempt %d)", delay, self._attempts)
            await self._sleep(delay)
            if self._halted:
                return
            try:
                await self._attempt()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._index = min(self._index + 1, len(self.delays) - 1)
                logger.warning("Reconnect attempt %d failed: %s", self._attempts, e)
                continue

            self._index = 0
            self._attempts = 0
            if self._restore is not None:
                try:
                    await self._restore()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.warning("Failed to restore session state after reconnect: %s", e)
            logger.info("Reconnected successfully")
            return
