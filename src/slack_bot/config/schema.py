"""Pydantic models for configuration schema."""

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..utils.logging import LogFormat, LogLevel
from ..utils.secret import Secret

DEFAULT_DISPLAY_NAME = "SlackBot"


class BotConfig(BaseModel):
    """Immutable runtime configuration for a SlackBot.

    Tokens may be left empty here; SlackBot.authenticate() rejects a
    configuration without both of them.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    display_name: str = DEFAULT_DISPLAY_NAME
    username: str = ""
    icon_emoji: str = ""
    app_level_token: Secret = Secret("")
    bot_token: Secret = Secret("")
    auto_join: bool = False
    join_channels: tuple[str, ...] = ()
    log_level: LogLevel = LogLevel.INFO
    log_file: str = "stderr"
    log_format: LogFormat = LogFormat.JSON
    debug: bool = False
    enable_reply: bool = False
    enable_reaction: bool = False

    @field_validator("join_channels", mode="before")
    @classmethod
    def strip_channel_prefix(cls, v: object) -> object:
        """Accept "#general" as well as "general"."""
        if isinstance(v, (list, tuple)):
            return tuple(c.lstrip("#") if isinstance(c, str) else c for c in v)
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        """Accept lower-case level names."""
        if isinstance(v, str):
            return v.upper()
        return v

    @property
    def effective_log_level(self) -> LogLevel:
        """Debug mode always logs at DEBUG."""
        return LogLevel.DEBUG if self.debug else self.log_level


class BotSettings(BaseSettings):
    """Credentials taken from the environment (or a .env file).

    Reads SLACK_BOT_TOKEN and SLACK_APP_LEVEL_TOKEN.
    """

    bot_token: Secret = Secret("")
    app_level_token: Secret = Secret("")

    model_config = SettingsConfigDict(
        env_prefix="SLACK_",
        env_file=".env",
        extra="ignore",
    )
