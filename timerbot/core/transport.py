"""Twitch chat transport backed by a twitchio IRC client."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

import aiohttp
import twitchio
from twitchio.errors import AuthenticationError, TwitchIOException

from timerbot.core.config import TWITCH_IRC_HOST, TWITCH_IRC_PORT

LOGGER = logging.getLogger("TwitchTransport")


# ============================================
# Errors
# ============================================


class TransportError(Exception):
    """Base class for chat transport failures."""


class ConnectError(TransportError):
    """Connecting or logging in to chat failed."""


class NotConnectedError(TransportError):
    """Operation needs a live connection."""


class SendError(TransportError):
    """Writing a chat message failed."""


# ============================================
# Events
# ============================================


@dataclass(frozen=True)
class Badges:
    broadcaster: bool = False
    moderator: bool = False


@dataclass(frozen=True)
class ChatMessage:
    channel: str
    username: str
    text: str
    id: str | None = None
    badges: Badges = field(default_factory=Badges)
    is_self: bool = False


ConnectedHandler = Callable[[str, int], Awaitable[None]]
DisconnectedHandler = Callable[[str], Awaitable[None]]
MessageHandler = Callable[[ChatMessage], Awaitable[None]]


class ChatTransport(Protocol):
    on_connected: ConnectedHandler | None
    on_disconnected: DisconnectedHandler | None
    on_message: MessageHandler | None

    async def connect(self) -> None: ...

    async def say(self, channel: str, text: str) -> None: ...

    async def disconnect(self) -> None: ...


# ============================================
# twitchio client
# ============================================


class TwitchChatClient(twitchio.Client):
    """twitchio client that hands every event to its ``TwitchTransport``."""

    def __init__(self, transport: TwitchTransport) -> None:
        super().__init__(token=transport.token, initial_channels=[transport.channel])
        self.transport = transport

    async def event_ready(self) -> None:
        await self.transport.handle_ready()

    async def event_message(self, message: Any) -> None:
        await self.transport.handle_message(message)

    async def event_reconnect(self) -> None:
        await self.transport.handle_reconnect()

    async def event_error(self, error: Exception, data: str | None = None) -> None:
        LOGGER.error(f"twitchio error: {error}", exc_info=error)


ClientFactory = Callable[["TwitchTransport"], Any]


# ============================================
# Transport
# ============================================


class TwitchTransport:
    """One Twitch chat session for one channel.

    twitchio owns the socket, the login and PING/PONG. This adapter turns its
    events into the ``on_*`` handlers and its failures into ``TransportError``.
    ``connect()`` returns once twitchio reports ready and raises
    ``ConnectError`` otherwise; it never retries on its own.

    When Twitch asks for a reconnect, ``on_disconnected`` fires and twitchio
    logs in again on the same client, which fires ``on_connected`` once more.
    """

    def __init__(
        self,
        username: str,
        token: str,
        channel: str,
        *,
        connect_timeout: float = 10.0,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self.username = username.lower()
        self.token = token if token.startswith("oauth:") else f"oauth:{token}"
        self.channel = channel.lstrip("#").lower()
        self.connect_timeout = connect_timeout
        self.client_factory: ClientFactory = client_factory or TwitchChatClient

        self.on_connected: ConnectedHandler | None = None
        self.on_disconnected: DisconnectedHandler | None = None
        self.on_message: MessageHandler | None = None

        self._client: Any = None
        self._ready = asyncio.Event()
        self._live = False

    @property
    def is_connected(self) -> bool:
        return self._client is not None and self._live

    async def connect(self) -> None:
        if self.is_connected:
            LOGGER.debug("connect() called on a live session, ignoring")
            return

        # A client that is still around is mid-reconnect inside twitchio
        fresh = self._client is None
        if fresh:
            self._ready.clear()
            self._client = self.client_factory(self)
        client = self._client

        try:
            await asyncio.wait_for(self._login(client, fresh), timeout=self.connect_timeout)
        except AuthenticationError as e:
            LOGGER.error(f"Twitch rejected the login: {e}")
            await self._discard(client)
            raise ConnectError(f"Twitch rejected the login: {e}") from e
        except asyncio.TimeoutError as e:
            await self._discard(client)
            raise ConnectError("Timed out waiting for Twitch chat to become ready") from e
        except (TwitchIOException, aiohttp.ClientError, OSError) as e:
            await self._discard(client)
            raise ConnectError(f"Could not reach Twitch chat: {e}") from e

    async def say(self, channel: str, text: str) -> None:
        if not self.is_connected:
            raise NotConnectedError("Not connected to Twitch chat")

        name = channel.lstrip("#").lower()
        target = self._client.get_channel(name)
        if target is None:
            raise SendError(f"Not joined to #{name}")
        try:
            await target.send(text)
        except (TwitchIOException, aiohttp.ClientError, ConnectionError) as e:
            raise SendError(f"Failed to send message: {e}") from e

    async def disconnect(self) -> None:
        client, self._client = self._client, None
        was_live, self._live = self._live, False
        self._ready.clear()

        try:
            if client is not None:
                await client.close()
        except (TwitchIOException, aiohttp.ClientError, OSError) as e:
            raise TransportError(f"Error while closing the session: {e}") from e
        finally:
            if was_live:
                await self._emit_disconnected("Disconnected")

    # ------------------------------------------------------------------
    # twitchio events
    # ------------------------------------------------------------------

    async def handle_ready(self) -> None:
        self._live = True
        self._ready.set()
        LOGGER.info(f"Logged in as {self.username}, joined #{self.channel}")

        if self.on_connected is None:
            return
        try:
            await self.on_connected(TWITCH_IRC_HOST, TWITCH_IRC_PORT)
        except Exception as e:
            LOGGER.exception(f"Connected handler failed: {e}")

    async def handle_reconnect(self) -> None:
        LOGGER.warning("Twitch requested a reconnect")
        if not self._live:
            return
        self._live = False
        self._ready.clear()
        await self._emit_disconnected("Twitch requested a reconnect")

    async def handle_message(self, message: Any) -> None:
        if self.on_message is None:
            return

        payload = self.to_chat_message(message)
        if payload is None:
            return
        try:
            await self.on_message(payload)
        except Exception as e:
            LOGGER.exception(f"Message handler failed: {e}")

    def to_chat_message(self, message: Any) -> ChatMessage | None:
        """Map a twitchio ``Message`` onto ``ChatMessage``; None if it has no sender."""
        author = message.author
        if message.echo:
            username = self.username
            badges = Badges()
        elif author is None:
            return None
        else:
            username = author.name
            badges = Badges(
                broadcaster=bool(author.is_broadcaster), moderator=bool(author.is_mod)
            )

        tags = message.tags or {}
        return ChatMessage(
            channel=f"#{message.channel.name}",
            username=username,
            text=message.content or "",
            id=tags.get("id") or None,
            badges=badges,
            is_self=message.echo or username.lower() == self.username,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _login(self, client: Any, fresh: bool) -> None:
        if fresh:
            await client.connect()
        await self._ready.wait()

    async def _emit_disconnected(self, reason: str) -> None:
        if self.on_disconnected is None:
            return
        try:
            await self.on_disconnected(reason)
        except Exception as e:
            LOGGER.exception(f"Disconnected handler failed: {e}")

    async def _discard(self, client: Any) -> None:
        if self._client is client:
            self._client = None
        self._live = False
        self._ready.clear()
        try:
            await client.close()
        except (TwitchIOException, aiohttp.ClientError, OSError) as e:
            LOGGER.warning(f"Error while closing the failed session: {e}")
