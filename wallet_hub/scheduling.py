"""Cancellable periodic tasks on the running event loop."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run ``func`` every ``interval`` seconds until cancelled.

    Errors raised by ``func`` are logged and the loop keeps going.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[[], Awaitable[None]],
        run_immediately: bool = False,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self._func = func
        self._run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "PeriodicTask":
        if self.running:
            return self
        self._task = asyncio.create_task(self._run(), name=self.name)
        return self

    async def _tick(self) -> None:
        try:
            await self._func()
        except Exception as e:
            logger.error("Periodic task %s failed: %s", self.name, e)

    async def _run(self) -> None:
        if self._run_immediately:
            await self._tick()
        while True:
            await asyncio.sleep(self.interval)
            await self._tick()

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("Cancelled periodic task %s", self.name)
        self._task = None


def schedule_periodic(
    name: str,
    interval: float,
    func: Callable[[], Awaitable[None]],
    *,
    run_immediately: bool = False,
) -> PeriodicTask:
    """Create and start a :class:`PeriodicTask`, returning its handle."""
    return PeriodicTask(name, interval, func, run_immediately=run_immediately).start()
