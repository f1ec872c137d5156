"""Permission gate for timer commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

LOGGER = logging.getLogger("PermissionGate")


class _HasRoles(Protocol):
    broadcaster: bool
    moderator: bool


@dataclass(frozen=True)
class PermissionConfig:
    """Who may start, pause, resume and stop timers.

    ``allowed_users`` holds lower-cased logins. With an empty list and
    ``allow_mods_and_broadcaster`` off, everyone is allowed.
    """

    allowed_users: tuple[str, ...] = ()
    allow_mods_and_broadcaster: bool = True

    @property
    def open_to_everyone(self) -> bool:
        return not self.allowed_users and not self.allow_mods_and_broadcaster


def is_authorized(username: str, badges: _HasRoles, config: PermissionConfig) -> bool:
    """Check if a chatter may use the timer commands. First match wins."""
    name = username.lower()

    if badges.broadcaster:
        LOGGER.info(f"{name} is the broadcaster - permission granted")
        return True

    if config.allow_mods_and_broadcaster and badges.moderator:
        LOGGER.info(f"{name} is a moderator - permission granted")
        return True

    if config.allowed_users and name in config.allowed_users:
        LOGGER.info(f"{name} is in the allowed users list - permission granted")
        return True

    # No list and no role checking: open mode
    if config.open_to_everyone:
        LOGGER.debug(f"{name} allowed - timer commands are open to everyone")
        return True

    LOGGER.info(f"{name} does not have permission to use timer commands")
    return False


def describe_permissions(config: PermissionConfig) -> str:
    """One-line summary for the status page and startup log."""
    if config.allowed_users:
        return f"Allowed users: {', '.join(config.allowed_users)}"
    if config.allow_mods_and_broadcaster:
        return "Allowed: Channel owner and moderators"
    return "Allowed: Everyone"
