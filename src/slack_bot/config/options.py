"""Option functions for building a BotConfig.

Each ``with_*`` function returns an option that sets exactly one field.
``build_config`` applies options in call order over the defaults, so a
repeated option simply overrides the earlier one.

Example:
    config = build_config(
        with_display_name("Example"),
        with_bot_token(os.environ["SLACK_BOT_TOKEN"]),
        with_app_level_token(os.environ["SLACK_APP_LEVEL_TOKEN"]),
        with_log_level("DEBUG"),
    )
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from ..utils.logging import LogFormat, LogLevel
from ..utils.secret import Secret
from .schema import BotConfig

Option = Callable[[dict[str, Any]], None]


def _set(field: str, value: Any) -> Option:
    def apply(draft: dict[str, Any]) -> None:
        draft[field] = value

    apply.__qualname__ = f"with_{field}"
    return apply


def _secret(value: Secret | str) -> Secret:
    return value if isinstance(value, Secret) else Secret(value)


def with_display_name(name: str) -> Option:
    """Application name bound to every log record."""
    return _set("display_name", name)


def with_username(username: str) -> Option:
    """Username override used when posting messages."""
    return _set("username", username)


def with_icon_emoji(icon_emoji: str) -> Option:
    """Icon emoji override used when posting messages."""
    return _set("icon_emoji", icon_emoji)


def with_app_level_token(token: Secret | str) -> Option:
    """App-level token (xapp-) used for the Socket Mode connection."""
    return _set("app_level_token", _secret(token))


def with_bot_token(token: Secret | str) -> Option:
    """Bot token (xoxb-) used for Web API calls."""
    return _set("bot_token", _secret(token))


def with_auto_join(enabled: bool = True) -> Option:
    return _set("auto_join", enabled)


def with_join_channels(*names: str) -> Option:
    """Channel names joined at startup when auto-join is enabled."""
    return _set("join_channels", tuple(names))


def with_log_level(level: LogLevel | str) -> Option:
    return _set("log_level", level)


def with_log_file(sink: str) -> Option:
    """Log sink: "stdout", "stderr", "discard" or a file path."""
    return _set("log_file", sink)


def with_log_format(log_format: LogFormat | str) -> Option:
    return _set("log_format", log_format)


def with_debug(enabled: bool = True) -> Option:
    return _set("debug", enabled)


def with_enable_reply(enabled: bool = True) -> Option:
    return _set("enable_reply", enabled)


def with_enable_reaction(enabled: bool = True) -> Option:
    return _set("enable_reaction", enabled)


def build_config(*options: Option, base: BotConfig | None = None) -> BotConfig:
    """Apply options in order over ``base`` (or the defaults).

    No cross-field validation happens here.

    Args:
        *options: Option functions returned by the ``with_*`` helpers
        base: Starting configuration; defaults to ``BotConfig()``

    Returns:
        A new frozen BotConfig

    Raises:
        pydantic.ValidationError: If an option set a value of the wrong type
    """
    draft = dict((base or BotConfig()).model_dump())
    for option in options:
        option(draft)
    return BotConfig.model_validate(draft)


def apply_options(config: BotConfig, options: Iterable[Option]) -> BotConfig:
    """Shorthand for ``build_config(*options, base=config)``."""
    return build_config(*options, base=config)
