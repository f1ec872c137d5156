"""Keeps the chat session alive: connect, retry, and reconnect after drops."""

from __future__ import annotations

import enum
import logging
import time
from collections.abc import Callable

from timerbot.core.scheduler import Handle, Scheduler
from timerbot.core.transport import ChatTransport, TransportError

LOGGER = logging.getLogger("ConnectionSupervisor")

STARTUP_DELAY = 2.0
RETRY_DELAY = 5.0
RECONNECT_DELAY = 5.0
SETTLE_DELAY = 1.0
MAX_ATTEMPTS = 3


class ConnectionPhase(enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionSupervisor:
    """Owns the connection state for the one chat session.

    ``connect()`` only starts a login; the session counts as connected when
    the transport reports it through ``handle_connected``. Failed attempts
    retry after ``RETRY_DELAY`` until ``MAX_ATTEMPTS`` is reached. A
    successful login leaves the counter alone; only a disconnect resets it
    before trying again.
    """

    def __init__(
        self,
        transport: ChatTransport,
        scheduler: Scheduler,
        on_online: Callable[[], None] | None = None,
    ) -> None:
        self.transport = transport
        self.scheduler = scheduler
        self.on_online = on_online

        self.phase = ConnectionPhase.DISCONNECTED
        self.attempts = 0
        self.started_at = time.time()

        self._pending: Handle | None = None
        self._stopped = False

    @property
    def connected(self) -> bool:
        return self.phase is ConnectionPhase.CONNECTED

    @property
    def uptime_seconds(self) -> int:
        return int(time.time() - self.started_at)

    def start(self, delay: float = STARTUP_DELAY) -> None:
        """Schedule the first connection attempt."""
        self._stopped = False
        self._schedule(delay, self._connect_soon)

    def stop(self) -> None:
        """Cancel pending retries and stop reconnecting."""
        self._stopped = True
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    async def connect(self) -> None:
        if self._stopped:
            return

        if self.connected:
            LOGGER.warning("Already connected to Twitch")
            return

        if self.attempts >= MAX_ATTEMPTS:
            LOGGER.error("Max connection attempts reached")
            return

        self.attempts += 1
        self.phase = ConnectionPhase.CONNECTING
        LOGGER.info(f"Connecting to Twitch (attempt {self.attempts})...")

        try:
            await self.transport.connect()
        except TransportError as e:
            LOGGER.error(f"Failed to connect: {e}")
            self.phase = ConnectionPhase.DISCONNECTED
            self._schedule(RETRY_DELAY, self._connect_soon)

    async def handle_connected(self, address: str, port: int) -> None:
        if self.connected:
            LOGGER.debug(f"Duplicate connected event from {address}:{port}, ignoring")
            return

        self.phase = ConnectionPhase.CONNECTED
        LOGGER.info(f"Connected to {address}:{port}")
        if self._pending is not None:
            # The transport recovered on its own before our reconnect fired
            self._pending.cancel()
            self._pending = None
        self.scheduler.call_later(SETTLE_DELAY, self._announce_online)

    async def handle_disconnected(self, reason: str) -> None:
        LOGGER.warning(f"Disconnected: {reason}")
        self.phase = ConnectionPhase.DISCONNECTED
        self._schedule(RECONNECT_DELAY, self._reconnect_after_drop)

    # ------------------------------------------------------------------
    # Scheduled callbacks
    # ------------------------------------------------------------------

    def _schedule(self, delay: float, callback: Callable[[], None]) -> None:
        if self._stopped:
            return
        if self._pending is not None:
            self._pending.cancel()
        self._pending = self.scheduler.call_later(delay, callback)

    def _connect_soon(self) -> None:
        self._pending = None
        self.scheduler.spawn(self.connect())

    def _reconnect_after_drop(self) -> None:
        self._pending = None
        self.attempts = 0
        self.scheduler.spawn(self.connect())

    def _announce_online(self) -> None:
        # A drop inside the settle window cancels the announcement
        if self.connected and self.on_online is not None:
            self.on_online()
