"""Trailing-edge debounce on top of the running asyncio loop."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class Debounced:
    """
    Wraps ``func`` so that it runs ``delay`` seconds after the last call.

    Only the arguments of the most recent call are used. Calls must be made
    from inside a running event loop.
    """

    def __init__(self, func: Callable[..., Any], delay: float):
        self.func = func
        self.delay = delay
        self._handle: asyncio.TimerHandle | None = None
        self._pending: tuple[tuple, dict] | None = None

    def __call__(self, *args, **kwargs) -> None:
        self.cancel()
        self._pending = (args, kwargs)
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def cancel(self) -> None:
        """Drop the scheduled call, if any."""
        if self._handle is not None:
            self._handle.cancel()
        self._handle = None
        self._pending = None

    def flush(self) -> None:
        """Run the scheduled call now instead of waiting for the delay."""
        if self._handle is not None:
            self._handle.cancel()
            self._fire()

    def _fire(self) -> None:
        pending = self._pending
        self._handle = None
        self._pending = None
        if pending is None:
            return
        args, kwargs = pending
        try:
            self.func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Debounced call to {getattr(self.func, '__name__', self.func)} failed: {e}")


def debounce(func: Callable[..., Any], delay: float) -> Debounced:
    return Debounced(func, delay)
