"""Delayed and periodic callbacks on the asyncio loop.

Timers and the connection supervisor never touch the event loop directly;
they schedule work through a ``Scheduler`` and keep only the returned
``Handle`` so they can cancel it later.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine
from typing import Any, Protocol

LOGGER = logging.getLogger("Scheduler")


class Handle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], Any]) -> Handle: ...

    def call_every(self, interval: float, callback: Callable[[], Any]) -> Handle: ...

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> None: ...


class PeriodicHandle:
    """Re-arms ``callback`` every ``interval`` seconds until cancelled."""

    def __init__(
        self, loop: asyncio.AbstractEventLoop, interval: float, callback: Callable[[], Any]
    ) -> None:
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None
        self._cancelled = False
        self._arm()

    def _arm(self) -> None:
        self._handle = self._loop.call_later(self._interval, self._run)

    def _run(self) -> None:
        if self._cancelled:
            return
        try:
            self._callback()
        except Exception as e:
            LOGGER.exception(f"Periodic callback failed: {e}")
        # The callback may have cancelled us
        if not self._cancelled:
            self._arm()

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AsyncioScheduler:
    """Scheduler backed by the running event loop and a monotonic clock."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._tasks: set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        return self.loop.call_later(delay, callback)

    def call_every(self, interval: float, callback: Callable[[], Any]) -> PeriodicHandle:
        return PeriodicHandle(self.loop, interval, callback)

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        """Run a coroutine in the background, keeping a reference until it finishes."""
        task = self.loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

