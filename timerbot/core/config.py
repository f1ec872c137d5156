"""Timer bot configuration"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from timerbot.core.guards import PermissionConfig

logger = logging.getLogger(__name__)

# === Path Configuration ===
PROJECT_DIR = Path(__file__).resolve().parents[2]

# === Twitch chat ===
# Endpoint twitchio logs in to; reported with every connected event
TWITCH_IRC_HOST = "irc-ws.chat.twitch.tv"
TWITCH_IRC_PORT = 443


class TimerBotSettings(BaseSettings):
    """Timer bot settings"""

    model_config = SettingsConfigDict(
        env_file=PROJECT_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Twitch identity
    twitch_bot_username: str = Field(..., description="Bot account login name")
    twitch_oauth_token: str = Field(..., description="Bot chat OAuth token")
    twitch_channel: str = Field(..., description="Channel the bot joins")

    # Permissions
    allowed_users: str = Field(
        default="", description="Comma-separated usernames allowed to use timer commands"
    )
    allow_mods_and_broadcaster: bool = Field(
        default=True, description="Let moderators and the broadcaster use timer commands"
    )

    # Status server
    host: str = Field(default="0.0.0.0", description="Status server bind address")
    port: int = Field(default=3000, description="Status server port")

    # Environment
    log_level: str = Field(default="INFO", description="Logging level")

    @field_validator("twitch_channel")
    @classmethod
    def normalize_channel(cls, v: str) -> str:
        """Strip a leading '#' and lowercase the channel name"""
        return v.strip().lstrip("#").lower()

    @field_validator("allow_mods_and_broadcaster", mode="before")
    @classmethod
    def parse_mod_flag(cls, v: object) -> bool:
        """Anything except an explicit 'false' keeps mods and broadcaster allowed"""
        if isinstance(v, str):
            return v.strip().lower() != "false"
        return bool(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @property
    def allowed_user_list(self) -> list[str]:
        return [u.strip().lower() for u in self.allowed_users.split(",") if u.strip()]

    def permission_config(self) -> PermissionConfig:
        return PermissionConfig(
            allowed_users=tuple(self.allowed_user_list),
            allow_mods_and_broadcaster=self.allow_mods_and_broadcaster,
        )


@lru_cache
def get_settings() -> TimerBotSettings:
    """Get cached settings instance"""
    return TimerBotSettings()  # type: ignore[call-arg]


def validate_settings() -> TimerBotSettings:
    """
    Load settings and fail loudly on missing or invalid values.

    Logs the pydantic validation error through the "Bot" logger and
    re-raises it as ValueError so the entry point can exit cleanly.
    """
    try:
        settings = get_settings()
    except Exception as e:
        bot_logger = logging.getLogger("Bot")
        bot_logger.error(f"Environment validation failed: {e}")
        raise ValueError(str(e)) from e

    logger.info("All required environment variables validated successfully")
    return settings
