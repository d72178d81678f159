"""Periodic refresh trigger."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicRefresher:
    """Calls ``trigger`` every ``interval_seconds`` until stopped.

    Ticks are awaited one after the other; overlapping with manual requests
    is left to the refresh's own single-flight guard.
    """

    def __init__(
        self,
        trigger: Callable[[], Awaitable[object]],
        interval_seconds: float,
        run_immediately: bool = True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._trigger = trigger
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self.ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="periodic-refresh")

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        if not self.run_immediately:
            await self._sleep(self.interval_seconds)
        while True:
            self.ticks += 1
            try:
                await self._trigger()
            except Exception:
                logger.exception("Scheduled refresh failed")
            await self._sleep(self.interval_seconds)
