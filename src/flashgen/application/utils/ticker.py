"""Cancellable periodic ticker scoped with ``async with``."""

import asyncio
import contextlib
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Ticker:
    """
    Calls ``on_tick(n)`` every ``interval`` seconds, ``n`` counting from 1.

    Use as an async context manager: the ticker starts on enter and is
    cancelled on every exit path, including exceptions and cancellation.
    """

    def __init__(self, interval: float, on_tick: Callable[[int], None]):
        self.interval = interval
        self.on_tick = on_tick
        self.ticks = 0
        self._task: asyncio.Task | None = None

    async def __aenter__(self) -> "Ticker":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self.ticks = 0
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            self.ticks += 1
            try:
                self.on_tick(self.ticks)
            except Exception as e:
                logger.error(f"Ticker callback failed: {e}")
