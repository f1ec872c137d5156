"""
Unit tests for TwitchTransport.

The twitchio client is replaced through ``client_factory`` with a fake that
fires the same events twitchio would (ready, message, reconnect), so the
connect, timeout, auth-failure, reconnect and disconnect paths all run end
to end without the network.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock

import aiohttp
import pytest
from twitchio.errors import AuthenticationError

from timerbot.core.supervisor import RETRY_DELAY, ConnectionPhase, ConnectionSupervisor
from timerbot.core.transport import (
    Badges,
    ConnectError,
    NotConnectedError,
    SendError,
    TransportError,
    TwitchChatClient,
    TwitchTransport,
)


class FakeChannel:
    def __init__(self, name):
        self.name = name
        self.send = AsyncMock()


class FakeTwitchClient:
    """Stands in for ``twitchio.Client``; reports ready right after connect."""

    def __init__(self, transport, *, ready=True, connect_error=None):
        self.transport = transport
        self.ready = ready
        self.connect_error = connect_error
        self.connect_calls = 0
        self.closed = False
        self.channels = {transport.channel: FakeChannel(transport.channel)}

    async def connect(self):
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        if self.ready:
            asyncio.get_running_loop().create_task(self.transport.handle_ready())

    async def close(self):
        self.closed = True

    def get_channel(self, name):
        return self.channels.get(name)


class ClientFactory:
    """Builds fake clients and keeps every one it made."""

    def __init__(self, **options):
        self.options = options
        self.made = []

    def __call__(self, transport):
        client = FakeTwitchClient(transport, **self.options)
        self.made.append(client)
        return client


def make_transport(factory=None, timeout=0.05):
    transport = TwitchTransport(
        "TimerBot",
        "secret",
        "#SomeStreamer",
        connect_timeout=timeout,
        client_factory=factory or ClientFactory(),
    )
    transport.on_connected = AsyncMock()
    transport.on_disconnected = AsyncMock()
    transport.on_message = AsyncMock()
    return transport


def twitch_message(
    content,
    name="bob",
    *,
    tags=None,
    echo=False,
    broadcaster=False,
    mod=False,
    channel="somestreamer",
):
    author = None
    if not echo:
        author = SimpleNamespace(name=name, is_broadcaster=broadcaster, is_mod=mod)
    return SimpleNamespace(
        content=content,
        author=author,
        tags=tags if tags is not None else {"id": "abc-123"},
        echo=echo,
        channel=SimpleNamespace(name=channel),
    )


class TestCredentials:
    def test_normalizes_credentials(self):
        transport = TwitchTransport("TimerBot", "secret", "#SomeStreamer")
        assert transport.username == "timerbot"
        assert transport.token == "oauth:secret"
        assert transport.channel == "somestreamer"

        assert TwitchTransport("a", "oauth:x", "c").token == "oauth:x"


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_waits_for_ready(self):
        factory = ClientFactory()
        transport = make_transport(factory)

        await transport.connect()

        assert transport.is_connected
        assert factory.made[0].connect_calls == 1
        transport.on_connected.assert_awaited_once_with("irc-ws.chat.twitch.tv", 443)

    @pytest.mark.asyncio
    async def test_connect_on_live_session_is_noop(self):
        factory = ClientFactory()
        transport = make_transport(factory)
        await transport.connect()

        await transport.connect()

        assert len(factory.made) == 1
        assert factory.made[0].connect_calls == 1

    @pytest.mark.asyncio
    async def test_ready_timeout_raises_and_closes(self):
        factory = ClientFactory(ready=False)
        transport = make_transport(factory)

        with pytest.raises(ConnectError, match="Timed out"):
            await transport.connect()

        assert factory.made[0].closed
        assert not transport.is_connected
        transport.on_connected.assert_not_awaited()
        transport.on_disconnected.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejected_token_raises_connect_error(self):
        factory = ClientFactory(connect_error=AuthenticationError("Invalid token"))
        transport = make_transport(factory)

        with pytest.raises(ConnectError, match="rejected the login"):
            await transport.connect()

        assert factory.made[0].closed
        transport.on_disconnected.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_network_error_raises_connect_error(self):
        factory = ClientFactory(connect_error=aiohttp.ClientConnectionError("refused"))
        transport = make_transport(factory)

        with pytest.raises(ConnectError, match="Could not reach"):
            await transport.connect()

        assert factory.made[0].closed

    @pytest.mark.asyncio
    async def test_failed_attempt_starts_fresh_client_next_time(self):
        factory = ClientFactory(ready=False)
        transport = make_transport(factory)
        with pytest.raises(ConnectError):
            await transport.connect()

        factory.options = {}
        await transport.connect()

        assert len(factory.made) == 2
        assert transport.is_connected


class TestReconnect:
    @pytest.mark.asyncio
    async def test_reconnect_request_reports_drop_once(self):
        transport = make_transport()
        await transport.connect()

        await transport.handle_reconnect()
        await transport.handle_reconnect()

        assert not transport.is_connected
        transport.on_disconnected.assert_awaited_once_with("Twitch requested a reconnect")

    @pytest.mark.asyncio
    async def test_reconnect_before_ready_reports_nothing(self):
        transport = make_transport()
        await transport.handle_reconnect()
        transport.on_disconnected.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connect_during_recovery_reuses_client(self):
        factory = ClientFactory()
        transport = make_transport(factory, timeout=1)
        await transport.connect()
        await transport.handle_reconnect()

        pending = asyncio.create_task(transport.connect())
        await asyncio.sleep(0)
        await transport.handle_ready()
        await pending

        assert len(factory.made) == 1
        assert factory.made[0].connect_calls == 1
        assert transport.is_connected
        assert transport.on_connected.await_count == 2


class TestDisconnect:
    @pytest.mark.asyncio
    async def test_disconnect_closes_and_reports(self):
        factory = ClientFactory()
        transport = make_transport(factory)
        await transport.connect()

        await transport.disconnect()

        assert factory.made[0].closed
        assert not transport.is_connected
        transport.on_disconnected.assert_awaited_once_with("Disconnected")

    @pytest.mark.asyncio
    async def test_disconnect_without_session_is_quiet(self):
        transport = make_transport()
        await transport.disconnect()
        transport.on_disconnected.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_failure_still_reports_drop(self):
        factory = ClientFactory()
        transport = make_transport(factory)
        await transport.connect()
        factory.made[0].close = AsyncMock(side_effect=OSError("socket gone"))

        with pytest.raises(TransportError):
            await transport.disconnect()

        transport.on_disconnected.assert_awaited_once()


class TestMessages:
    @pytest.mark.asyncio
    async def test_message_becomes_chat_message(self):
        transport = make_transport()

        await transport.handle_message(twitch_message("!10min", "Bob", mod=True))

        message = transport.on_message.await_args.args[0]
        assert message.channel == "#somestreamer"
        assert message.username == "Bob"
        assert message.text == "!10min"
        assert message.id == "abc-123"
        assert message.badges == Badges(broadcaster=False, moderator=True)
        assert message.is_self is False

    @pytest.mark.asyncio
    async def test_broadcaster_badge(self):
        transport = make_transport()
        await transport.handle_message(twitch_message("!10min", "somestreamer", broadcaster=True))
        message = transport.on_message.await_args.args[0]
        assert message.badges == Badges(broadcaster=True, moderator=False)

    @pytest.mark.asyncio
    async def test_echo_is_flagged_as_self(self):
        transport = make_transport()

        await transport.handle_message(twitch_message("hi", echo=True, tags={}))

        message = transport.on_message.await_args.args[0]
        assert message.is_self is True
        assert message.username == "timerbot"
        assert message.id is None

    @pytest.mark.asyncio
    async def test_bot_account_from_elsewhere_is_self(self):
        transport = make_transport()
        await transport.handle_message(twitch_message("hi", "TimerBot"))
        assert transport.on_message.await_args.args[0].is_self is True

    @pytest.mark.asyncio
    async def test_message_without_author_dropped(self):
        transport = make_transport()
        message = twitch_message("hi")
        message.author = None

        await transport.handle_message(message)

        transport.on_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_handler_errors_are_contained(self):
        transport = make_transport()
        transport.on_message.side_effect = RuntimeError("boom")

        await transport.handle_message(twitch_message("!10min"))

    @pytest.mark.asyncio
    async def test_client_forwards_events(self):
        transport = make_transport()
        client = SimpleNamespace(transport=transport)

        await TwitchChatClient.event_message(client, twitch_message("!timers"))
        await TwitchChatClient.event_ready(client)

        transport.on_message.assert_awaited_once()
        transport.on_connected.assert_awaited_once()


class TestSay:
    @pytest.mark.asyncio
    async def test_say_sends_to_joined_channel(self):
        factory = ClientFactory()
        transport = make_transport(factory)
        await transport.connect()

        await transport.say("#SomeStreamer", "hello there")

        factory.made[0].channels["somestreamer"].send.assert_awaited_once_with("hello there")

    @pytest.mark.asyncio
    async def test_say_requires_connection(self):
        transport = make_transport()
        with pytest.raises(NotConnectedError):
            await transport.say("somestreamer", "hello")

    @pytest.mark.asyncio
    async def test_say_to_unjoined_channel(self):
        transport = make_transport()
        await transport.connect()
        with pytest.raises(SendError, match="Not joined"):
            await transport.say("#elsewhere", "hello")

    @pytest.mark.asyncio
    async def test_say_wraps_socket_errors(self):
        factory = ClientFactory()
        transport = make_transport(factory)
        await transport.connect()
        factory.made[0].channels["somestreamer"].send.side_effect = ConnectionResetError("gone")

        with pytest.raises(SendError):
            await transport.say("somestreamer", "hello")


class TestWithSupervisor:
    @pytest.mark.asyncio
    async def test_timeouts_feed_the_retry_schedule(self, scheduler):
        factory = ClientFactory(ready=False)
        transport = make_transport(factory, timeout=0.01)
        supervisor = ConnectionSupervisor(transport, scheduler)

        await supervisor.connect()

        assert supervisor.phase is ConnectionPhase.DISCONNECTED
        assert supervisor.attempts == 1
        assert scheduler.pending == 1

        scheduler.advance(RETRY_DELAY)
        await scheduler.settle()
        assert supervisor.attempts == 2
        assert len(factory.made) == 2

    @pytest.mark.asyncio
    async def test_ready_marks_supervisor_connected(self, scheduler):
        transport = make_transport()
        supervisor = ConnectionSupervisor(transport, scheduler)
        transport.on_connected = supervisor.handle_connected
        transport.on_disconnected = supervisor.handle_disconnected

        await supervisor.connect()
        assert supervisor.connected

        await transport.handle_reconnect()
        assert not supervisor.connected
