"""Core modules for the timer bot."""

from .config import TWITCH_IRC_HOST, TimerBotSettings, get_settings, validate_settings
from .guards import PermissionConfig, describe_permissions, is_authorized
from .logging import setup_logging
from .scheduler import AsyncioScheduler, Scheduler
from .supervisor import ConnectionPhase, ConnectionSupervisor
from .transport import (
    Badges,
    ChatMessage,
    ConnectError,
    NotConnectedError,
    SendError,
    TransportError,
    TwitchTransport,
)

__all__ = [
    # Settings
    "TimerBotSettings",
    "get_settings",
    "validate_settings",
    "TWITCH_IRC_HOST",
    # Setup functions
    "setup_logging",
    # Permissions
    "PermissionConfig",
    "is_authorized",
    "describe_permissions",
    # Scheduling
    "Scheduler",
    "AsyncioScheduler",
    # Connection
    "ConnectionPhase",
    "ConnectionSupervisor",
    # Transport
    "Badges",
    "ChatMessage",
    "TwitchTransport",
    "TransportError",
    "ConnectError",
    "NotConnectedError",
    "SendError",
]
