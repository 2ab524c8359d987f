"""Configuration building, loading and validation."""

from .loader import load_config
from .options import (
    Option,
    apply_options,
    build_config,
    with_app_level_token,
    with_auto_join,
    with_bot_token,
    with_debug,
    with_display_name,
    with_enable_reaction,
    with_enable_reply,
    with_icon_emoji,
    with_join_channels,
    with_log_file,
    with_log_format,
    with_log_level,
    with_username,
)
from .schema import BotConfig, BotSettings

__all__ = [
    # Loader
    "load_config",
    # Schema
    "BotConfig",
    "BotSettings",
    # Builder
    "Option",
    "apply_options",
    "build_config",
    "with_app_level_token",
    "with_auto_join",
    "with_bot_token",
    "with_debug",
    "with_display_name",
    "with_enable_reaction",
    "with_enable_reply",
    "with_icon_emoji",
    "with_join_channels",
    "with_log_file",
    "with_log_format",
    "with_log_level",
    "with_username",
]
