import pytest

from timerbot.core.config import TimerBotSettings

from tests.helpers import FakeTransport, ManualScheduler


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def settings():
    return TimerBotSettings(
        _env_file=None,
        twitch_bot_username="timerbot",
        twitch_oauth_token="oauth:secret",
        twitch_channel="#SomeStreamer",
    )


@pytest.fixture
def messages():
    """Collected (channel, text) pairs from a notify callback."""
    return []


@pytest.fixture
def notify(messages):
    def _notify(channel: str, text: str) -> None:
        messages.append((channel, text))

    return _notify
