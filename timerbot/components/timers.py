"""Per-user countdown timers and the registry that owns them."""

from __future__ import annotations

import enum
import logging
import math
import time
from collections.abc import Callable
from typing import NamedTuple

from timerbot.core.scheduler import Handle, Scheduler

LOGGER = logging.getLogger("TimerRegistry")

# Seconds between progress checks
TICK_SECONDS = 1.0
# Updates may fire this early so they don't slip a whole tick late
UPDATE_BUFFER_SECONDS = 0.5

Notify = Callable[[str, str], None]


class TimerPhase(enum.Enum):
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


class TimerStatus(NamedTuple):
    remaining_minutes: int
    paused: bool
    total_minutes: int


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}{'' if value == 1 else 's'}"


def format_remaining(seconds: float) -> str:
    """Render remaining time as whole minutes, or seconds under a minute.

    Seconds are rounded up first, so 59.4s reads "1 minute", 61s reads
    "2 minutes" and 0.2s reads "1 second".
    """
    whole = max(math.ceil(seconds), 0)
    if whole >= 60:
        return _plural(math.ceil(whole / 60), "minute")
    return _plural(whole, "second")


class Timer:
    """One countdown owned by a chat user.

    The timer never touches the event loop itself; it asks the scheduler for
    a periodic ``tick`` and keeps only the handle so it can cancel it.
    """

    def __init__(
        self,
        registry: TimerRegistry,
        owner: str,
        minutes: int,
        interval_minutes: int,
        channel: str,
    ) -> None:
        self.registry = registry
        self.owner = owner
        self.total_minutes = minutes
        self.interval_minutes = interval_minutes
        self.channel = channel
        self.id = f"{owner}_{int(time.time() * 1000)}"

        now = registry.scheduler.now()
        self.started_at = now
        self.last_update = now
        self.paused_total = 0.0
        self.paused_at: float | None = None
        self.phase = TimerPhase.RUNNING

        self._handle: Handle | None = None
        self._start_ticking()

    @property
    def is_paused(self) -> bool:
        return self.phase is TimerPhase.PAUSED

    @property
    def total_seconds(self) -> float:
        return self.total_minutes * 60.0

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60.0

    def elapsed(self, now: float) -> float:
        """Seconds of running time, excluding every paused stretch."""
        elapsed = now - self.started_at - self.paused_total
        if self.paused_at is not None:
            elapsed -= now - self.paused_at
        return elapsed

    def remaining(self, now: float) -> float:
        return self.total_seconds - self.elapsed(now)

    def _start_ticking(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        scheduler = self.registry.scheduler
        self._handle = scheduler.call_every(TICK_SECONDS, lambda: self.tick(scheduler.now()))

    def _stop_ticking(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def tick(self, now: float) -> None:
        if self.phase is not TimerPhase.RUNNING:
            return

        remaining = self.remaining(now)

        if remaining <= 0:
            self.phase = TimerPhase.COMPLETED
            self.registry.notify(
                self.channel,
                f"⏰ @{self.owner} your {self.total_minutes}-minute timer is complete! "
                "You can now resume your requests and can expect an answer to your questions. 🎉",
            )
            LOGGER.info(f"Timer {self.id} completed")
            self.cleanup()
            return

        if now - self.last_update >= self.interval_seconds - UPDATE_BUFFER_SECONDS:
            self.registry.notify(
                self.channel,
                f"⏱️ @{self.owner}: {format_remaining(remaining)} remaining! "
                "Please enjoy the trigger and wait with an answer to your questions "
                "or with new requests.",
            )
            self.last_update = now

    def pause(self, now: float) -> bool:
        if self.phase is not TimerPhase.RUNNING:
            return False

        self.phase = TimerPhase.PAUSED
        self.paused_at = now
        self._stop_ticking()
        return True

    def resume(self, now: float) -> bool:
        if self.phase is not TimerPhase.PAUSED or self.paused_at is None:
            return False

        self.paused_total += now - self.paused_at
        self.paused_at = None
        self.phase = TimerPhase.RUNNING
        self._start_ticking()
        return True

    def status(self, now: float) -> TimerStatus:
        return TimerStatus(
            remaining_minutes=math.ceil(self.remaining(now) / 60),
            paused=self.is_paused,
            total_minutes=self.total_minutes,
        )

    def cleanup(self) -> None:
        """Stop ticking and leave the registry. Safe to call more than once."""
        self._stop_ticking()
        if self.phase is not TimerPhase.COMPLETED:
            self.phase = TimerPhase.COMPLETED
        self.registry.discard(self)

    def __repr__(self) -> str:
        return (
            f"<Timer id={self.id!r} owner={self.owner!r} total={self.total_minutes}m "
            f"every={self.interval_minutes}m phase={self.phase.value}>"
        )


class TimerRegistry:
    """Owns every live timer, at most one per owner."""

    def __init__(self, scheduler: Scheduler, notify: Notify) -> None:
        self.scheduler = scheduler
        self.notify = notify
        # owner → timer
        self._timers: dict[str, Timer] = {}

    def __len__(self) -> int:
        return len(self._timers)

    def __contains__(self, owner: object) -> bool:
        return owner in self._timers

    def get(self, owner: str) -> Timer | None:
        return self._timers.get(owner)

    def discard(self, timer: Timer) -> None:
        """Forget ``timer`` if it is still the one registered for its owner."""
        if self._timers.get(timer.owner) is timer:
            del self._timers[timer.owner]
            LOGGER.debug(f"Removed timer {timer.id}")

    def start_timer(self, owner: str, minutes: int, interval_minutes: int, channel: str) -> Timer:
        timer = Timer(self, owner, minutes, interval_minutes, channel)

        existing = self._timers.get(owner)
        if existing is not None:
            LOGGER.info(f"Replacing timer {existing.id} for {owner}")
            existing.cleanup()

        self._timers[owner] = timer
        LOGGER.info(f"Started {timer!r}")

        self.notify(
            channel,
            f"💋⏱️ {owner} started a {minutes}-minute Trigger timer! "
            f"Updates every {interval_minutes} minute(s). "
            "Please enjoy and lean back, and wait with your new requests. 🌜✨",
        )
        return timer

    def pause_timer(self, owner: str, channel: str) -> bool:
        timer = self._timers.get(owner)
        now = self.scheduler.now()

        if timer is not None and timer.pause(now):
            status = timer.status(now)
            LOGGER.info(f"Paused timer {timer.id} at {status.remaining_minutes}m remaining")
            self.notify(
                channel,
                f"⏸️ {owner} paused timer with {status.remaining_minutes} minutes remaining.",
            )
            return True

        self.notify(channel, f"{owner}, you don't have an active timer to pause.")
        return False

    def resume_timer(self, owner: str, channel: str) -> bool:
        timer = self._timers.get(owner)
        now = self.scheduler.now()

        if timer is not None and timer.resume(now):
            status = timer.status(now)
            LOGGER.info(f"Resumed timer {timer.id} at {status.remaining_minutes}m remaining")
            self.notify(
                channel,
                f"▶️ {owner} resumed timer with {status.remaining_minutes} minutes remaining. "
                "Please wait with new requests or answers to your questions, and enjoy.",
            )
            return True

        self.notify(channel, f"{owner}, you don't have a paused timer to resume.")
        return False

    def stop_timers(self, owner: str, channel: str) -> int:
        owned = [t for t in self._timers.values() if t.owner == owner]
        for timer in owned:
            timer.cleanup()

        if owned:
            LOGGER.info(f"Stopped {len(owned)} timer(s) for {owner}")
            self.notify(channel, f"⏹️ Stopped {len(owned)} timer(s) for {owner}")
        else:
            self.notify(channel, f"{owner}, you don't have any active timers.")
        return len(owned)

    def status_for(self, owner: str) -> list[TimerStatus]:
        now = self.scheduler.now()
        return [t.status(now) for t in self._timers.values() if t.owner == owner]

    def report_status(self, owner: str, channel: str) -> list[TimerStatus]:
        statuses = self.status_for(owner)
        if statuses:
            parts = [
                f"{s.remaining_minutes}min{' (PAUSED)' if s.paused else ''}" for s in statuses
            ]
            self.notify(channel, f"{owner}, your timers: {', '.join(parts)}")
        else:
            self.notify(channel, f"{owner}, you have no active timers. Start one with !10min")
        return statuses

    def shutdown_all(self) -> int:
        timers = list(self._timers.values())
        for timer in timers:
            timer.cleanup()
        if timers:
            LOGGER.info(f"Cancelled {len(timers)} active timer(s)")
        return len(timers)
