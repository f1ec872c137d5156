"""Chat command parsing and dispatch for the timer commands."""

from __future__ import annotations

import enum
import logging
import re
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

from timerbot.components.timers import Notify, TimerRegistry
from timerbot.core.guards import PermissionConfig, is_authorized
from timerbot.core.transport import ChatMessage

LOGGER = logging.getLogger("CommandDispatcher")

_TIMER_PATTERN = re.compile(r"!([0-9]+)min([0-9]+)?")

# One week; longer timers are treated as ordinary chat
MAX_TIMER_MINUTES = 7 * 24 * 60

DEDUP_CAPACITY = 100


class CommandKind(enum.Enum):
    START = "start"
    STOP = "stop"
    PAUSE = "pause"
    RESUME = "resume"
    STATUS = "status"

    @property
    def needs_permission(self) -> bool:
        return self is not CommandKind.STATUS

    @property
    def announces_denial(self) -> bool:
        # !stoptimer is refused silently
        return self in (CommandKind.START, CommandKind.PAUSE, CommandKind.RESUME)


_KEYWORDS = {
    "!stoptimer": CommandKind.STOP,
    "!pause": CommandKind.PAUSE,
    "!resume": CommandKind.RESUME,
    "!timers": CommandKind.STATUS,
}


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    minutes: int = 0
    interval_minutes: int = 1


def parse_command(text: str) -> Command | None:
    """Classify a chat line, or return None when it is not a timer command.

    Usage: !10min, !15min2, !stoptimer, !pause, !resume, !timers
    """
    match = _TIMER_PATTERN.fullmatch(text)
    if match:
        minutes = int(match.group(1))
        interval = int(match.group(2)) if match.group(2) else 1
        if not 1 <= minutes <= MAX_TIMER_MINUTES or not 1 <= interval <= MAX_TIMER_MINUTES:
            return None
        return Command(CommandKind.START, minutes=minutes, interval_minutes=interval)

    kind = _KEYWORDS.get(text.lower())
    if kind is None:
        return None
    return Command(kind)


class DedupWindow:
    """Remembers the last ``capacity`` message ids, evicting the oldest first."""

    def __init__(self, capacity: int = DEDUP_CAPACITY) -> None:
        self.capacity = capacity
        self._seen: OrderedDict[str, None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._seen

    def add(self, message_id: str) -> bool:
        """Record ``message_id``; False if it was already seen."""
        if message_id in self._seen:
            return False
        self._seen[message_id] = None
        while len(self._seen) > self.capacity:
            self._seen.popitem(last=False)
        return True


class CommandDispatcher:
    """Turns inbound chat messages into registry calls.

    Self messages and repeated message ids are dropped first, then the
    command is parsed, permission-checked and routed. Nothing is routed
    while the bot is offline.
    """

    def __init__(
        self,
        registry: TimerRegistry,
        permissions: PermissionConfig,
        notify: Notify,
        is_connected: Callable[[], bool],
        dedup: DedupWindow | None = None,
    ) -> None:
        self.registry = registry
        self.permissions = permissions
        self.notify = notify
        self.is_connected = is_connected
        self.dedup = dedup if dedup is not None else DedupWindow()

    async def handle(self, message: ChatMessage) -> Command | None:
        """Process one message. Returns the command that was routed, if any."""
        if message.is_self:
            return None

        if message.id:
            if not self.dedup.add(message.id):
                LOGGER.debug(f"Skipping duplicate message {message.id}")
                return None

        command = parse_command(message.text)
        if command is None:
            return None

        username = message.username
        if command.kind.needs_permission and not is_authorized(
            username, message.badges, self.permissions
        ):
            if command.kind.announces_denial:
                self.notify(
                    message.channel,
                    f"{username}, sorry! Only authorized users can use timer commands.",
                )
            return None

        if not self.is_connected():
            LOGGER.debug(f"Offline, ignoring {command.kind.value} from {username}")
            return None

        LOGGER.debug(f"[{username}#{message.channel}]: {message.text}")
        self._route(command, username, message.channel)
        return command

    def _route(self, command: Command, username: str, channel: str) -> None:
        kind = command.kind
        if kind is CommandKind.START:
            self.registry.start_timer(username, command.minutes, command.interval_minutes, channel)
        elif kind is CommandKind.PAUSE:
            self.registry.pause_timer(username, channel)
        elif kind is CommandKind.RESUME:
            self.registry.resume_timer(username, channel)
        elif kind is CommandKind.STOP:
            self.registry.stop_timers(username, channel)
        elif kind is CommandKind.STATUS:
            self.registry.report_status(username, channel)
