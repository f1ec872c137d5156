"""
Test doubles: a manual clock scheduler and a fake chat transport, so tests
never touch the network or the real clock.
"""

import asyncio
import heapq
import itertools
from unittest.mock import AsyncMock

from timerbot.core.transport import Badges, ChatMessage


class ManualHandle:
    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose clock only moves when a test calls ``advance``."""

    def __init__(self, start: float = 1000.0) -> None:
        self.current = start
        self._queue: list = []
        self._seq = itertools.count()
        self.spawned: list = []

    def now(self) -> float:
        return self.current

    def call_later(self, delay, callback):
        handle = ManualHandle()
        heapq.heappush(self._queue, (self.current + delay, next(self._seq), handle, callback, None))
        return handle

    def call_every(self, interval, callback):
        handle = ManualHandle()
        heapq.heappush(
            self._queue, (self.current + interval, next(self._seq), handle, callback, interval)
        )
        return handle

    def spawn(self, coro) -> None:
        self.spawned.append(asyncio.ensure_future(coro))

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due callbacks in order."""
        target = self.current + seconds
        while self._queue and self._queue[0][0] <= target:
            when, _, handle, callback, interval = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self.current = when
            callback()
            if interval is not None and not handle.cancelled:
                heapq.heappush(
                    self._queue, (when + interval, next(self._seq), handle, callback, interval)
                )
        self.current = target

    @property
    def pending(self) -> int:
        return sum(1 for entry in self._queue if not entry[2].cancelled)

    async def settle(self) -> None:
        """Let spawned coroutines run to completion."""
        while self.spawned:
            batch, self.spawned = self.spawned, []
            await asyncio.gather(*batch)


class FakeTransport:
    """Chat transport double that records outbound calls."""

    def __init__(self) -> None:
        self.on_connected = None
        self.on_disconnected = None
        self.on_message = None
        self.connect = AsyncMock()
        self.say = AsyncMock()
        self.disconnect = AsyncMock()

    @property
    def said(self) -> list[str]:
        return [call.args[1] for call in self.say.await_args_list]


def chat(
    text: str,
    username: str = "bob",
    *,
    id: str | None = None,
    broadcaster: bool = False,
    moderator: bool = False,
    is_self: bool = False,
    channel: str = "#somestreamer",
) -> ChatMessage:
    return ChatMessage(
        channel=channel,
        username=username,
        text=text,
        id=id,
        badges=Badges(broadcaster=broadcaster, moderator=moderator),
        is_self=is_self,
    )
