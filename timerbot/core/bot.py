"""Timer bot: owns the timers, the dedup window and the connection state."""

from __future__ import annotations

import logging

from timerbot.components.commands import CommandDispatcher, DedupWindow
from timerbot.components.timers import TimerRegistry
from timerbot.core.config import TimerBotSettings
from timerbot.core.guards import describe_permissions
from timerbot.core.scheduler import AsyncioScheduler, Scheduler
from timerbot.core.supervisor import ConnectionSupervisor
from timerbot.core.transport import ChatMessage, ChatTransport, TransportError, TwitchTransport

LOGGER: logging.Logger = logging.getLogger("Bot")

ONLINE_MESSAGE = "🤖 Timer bot is online! Authorized users can use !10min, !pause, !resume, etc."


class TimerBot:
    """Single service object wiring transport events to the timer engine.

    Every component gets its state from here; nothing lives at module level.
    """

    def __init__(
        self,
        settings: TimerBotSettings,
        *,
        transport: ChatTransport | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.settings = settings
        self.bot_username = settings.twitch_bot_username
        self.channel = settings.twitch_channel
        self.permissions = settings.permission_config()

        self.scheduler: Scheduler = scheduler or AsyncioScheduler()
        self.transport: ChatTransport = transport or TwitchTransport(
            settings.twitch_bot_username,
            settings.twitch_oauth_token,
            settings.twitch_channel,
        )

        self.supervisor = ConnectionSupervisor(
            self.transport, self.scheduler, on_online=self._announce_online
        )
        self.timers = TimerRegistry(self.scheduler, self.notify)
        self.dedup = DedupWindow()
        self.dispatcher = CommandDispatcher(
            self.timers,
            self.permissions,
            self.notify,
            is_connected=lambda: self.supervisor.connected,
            dedup=self.dedup,
        )

        self.transport.on_connected = self.event_connected
        self.transport.on_disconnected = self.event_disconnected
        self.transport.on_message = self.event_message

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def connected(self) -> bool:
        return self.supervisor.connected

    @property
    def uptime_seconds(self) -> int:
        return self.supervisor.uptime_seconds

    @property
    def active_timer_count(self) -> int:
        return len(self.timers)

    @property
    def permission_summary(self) -> str:
        return describe_permissions(self.permissions)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        LOGGER.info("Bot starting up...")
        LOGGER.info(f"Channel: {self.channel}")
        self.supervisor.start()

    async def shutdown(self) -> None:
        LOGGER.info("Shutting down gracefully...")
        self.timers.shutdown_all()
        self.supervisor.stop()

        if self.connected:
            try:
                await self.transport.disconnect()
            except TransportError as e:
                LOGGER.warning(f"Error while disconnecting: {e}")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    async def event_connected(self, address: str, port: int) -> None:
        first = not self.supervisor.connected
        await self.supervisor.handle_connected(address, port)
        if first:
            LOGGER.info(f"Joined channel: {self.channel}")
            LOGGER.info(f"Permission configuration: {self.permission_summary}")

    async def event_disconnected(self, reason: str) -> None:
        await self.supervisor.handle_disconnected(reason)

    async def event_message(self, payload: ChatMessage) -> None:
        await self.dispatcher.handle(payload)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def notify(self, channel: str, text: str) -> None:
        """Fire-and-forget send; dropped while offline, failures only logged."""
        if not self.connected:
            LOGGER.debug(f"Offline, dropping message for {channel}: {text}")
            return
        self.scheduler.spawn(self._say(channel, text))

    async def _say(self, channel: str, text: str) -> None:
        try:
            await self.transport.say(channel, text)
        except TransportError as e:
            LOGGER.error(f"Failed to send message: {e}")

    def _announce_online(self) -> None:
        self.notify(self.channel, ONLINE_MESSAGE)
