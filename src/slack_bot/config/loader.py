"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path

import yaml

from .options import Option, apply_options, with_app_level_token, with_bot_token
from .schema import BotConfig, BotSettings


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    Args:
        text: Text containing ${VAR_NAME} patterns

    Returns:
        Text with environment variables substituted

    Raises:
        ValueError: If a referenced environment variable is not found
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(f"Environment variable {var_name} not found")
        return value

    return re.sub(r"\$\{([^}]+)\}", replacer, text)


def load_config(path: Path | None = None) -> BotConfig:
    """
    Load configuration from a YAML file, falling back to the environment for tokens.

    Tokens missing from the file are taken from SLACK_BOT_TOKEN and
    SLACK_APP_LEVEL_TOKEN. With ``path=None`` the configuration comes from
    the environment alone.

    Args:
        path: Path to YAML configuration file, or None

    Returns:
        Validated BotConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If environment variables are missing or config is invalid
        ValidationError: If config doesn't match schema
    """
    config = BotConfig()
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with path.open() as f:
            raw_yaml = f.read()

        config_dict = yaml.safe_load(substitute_env_vars(raw_yaml)) or {}
        if not isinstance(config_dict, dict):
            raise ValueError(f"Configuration root must be a mapping: {path}")

        config = BotConfig.model_validate(config_dict)

    return apply_options(config, _env_token_options(config))


def _env_token_options(config: BotConfig) -> list[Option]:
    settings = BotSettings()
    options: list[Option] = []
    if not config.bot_token and settings.bot_token:
        options.append(with_bot_token(settings.bot_token))
    if not config.app_level_token and settings.app_level_token:
        options.append(with_app_level_token(settings.app_level_token))
    return options
