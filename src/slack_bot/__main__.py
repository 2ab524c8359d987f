"""Entry point for running the example Slack bot.

This module provides the main entry point for slack-bot.
It handles:
- Configuration loading (YAML file and/or environment)
- Logging setup with secret sanitization
- Handler registration for the example bot
- Bot lifecycle management
- Signal handling for graceful shutdown
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

import structlog

from slack_bot._version import __version__
from slack_bot.config.schema import BotConfig
from slack_bot.core.bot import SlackBot
from slack_bot.core.errors import SlackBotError
from slack_bot.models.events import MessageEvent, SlashCommand

log = structlog.get_logger()

EXAMPLE_COMMANDS = ("/example1", "/example2")


def setup_logging(debug: bool = False, log_format: str = "console") -> None:
    """Configure structured logging for the command line.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
    """
    from slack_bot.utils.logging import LogFormat, LogLevel, configure_logging

    level = LogLevel.DEBUG if debug else LogLevel.INFO
    configure_logging(level=level, log_format=LogFormat(log_format.lower()))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="slack-bot",
        description="Example Slack bot running over Socket Mode",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: environment only)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse config and validate without starting the bot",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    parser.add_argument(
        "--health-check",
        action="store_true",
        help="Authenticate against Slack and exit",
    )

    parser.add_argument(
        "--silent-commands",
        action="store_true",
        help="Acknowledge slash commands without echoing them into the channel",
    )

    return parser.parse_args(argv)


class ExampleBot:
    """Logs messages, optionally reacts/replies, and answers the example commands."""

    def __init__(self, config: BotConfig) -> None:
        self.config = config

    async def on_message(self, message: MessageEvent, bot: SlackBot) -> None:
        if message.user == bot.user_id or (message.bot_id and message.bot_id == bot.bot_id):
            # ignore self activity
            return
        if message.subtype:
            return

        log.info("message", channel=message.channel, user=message.user, text=message.text)

        if self.config.enable_reaction:
            await bot.add_reaction(message.channel, message.ts, "eyes")
        if self.config.enable_reply:
            await bot.reply(message, f"You said: {message.text}")

    async def on_command(self, command: SlashCommand, bot: SlackBot) -> None:
        log.info("slash_command", command=command.command, text=command.text)
        if self.config.enable_reply:
            await bot.post_ephemeral_message(
                command.channel_id,
                command.user_id,
                f"{command.command} received: {command.text or '(no arguments)'}",
            )

    def register(self, bot: SlackBot) -> None:
        bot.add_message_handler(self.on_message)
        for name in EXAMPLE_COMMANDS:
            bot.add_slash_command_handler(name, self.on_command)


def _install_signal_handlers(bot: SlackBot) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, bot.stop)
        log.debug("signal_handler_registered", signal=sig.name)


async def run_bot(
    config_path: Path | None,
    dry_run: bool = False,
    health_check: bool = False,
    silent_commands: bool = False,
    debug: bool = False,
) -> int:
    """Run the example bot.

    Args:
        config_path: Path to configuration file, or None for environment only
        dry_run: If True, only validate config without starting
        health_check: If True, authenticate and exit
        silent_commands: Use the silent ack policy for slash commands
        debug: Force debug mode on

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    log.info("starting_slack_bot", version=__version__, config_path=str(config_path))

    try:
        from slack_bot.config.loader import load_config
        from slack_bot.config.options import apply_options, with_debug

        config = load_config(config_path)
        if debug:
            config = apply_options(config, [with_debug()])
        log.info("configuration_loaded", display_name=config.display_name)

        if dry_run:
            log.info("dry_run_mode_config_valid")
            return 0

        bot = SlackBot(config)

        if health_check:
            identity = await bot.authenticate()
            log.info("health_check_passed", bot_id=identity.bot_id, team_id=identity.team_id)
            return 0

        if silent_commands:
            from slack_bot.core.ack import silent_ack_policy

            bot.set_ack_policy(silent_ack_policy)

        ExampleBot(config).register(bot)
        _install_signal_handlers(bot)
        await bot.run()
        return 0

    except FileNotFoundError as e:
        log.error("configuration_file_not_found", path=str(config_path), error=str(e))
        return 1
    except ValueError as e:
        log.error("configuration_invalid", error=str(e))
        return 1
    except SlackBotError as e:
        log.error("slack_bot_error", error=str(e), error_type=type(e).__name__)
        return 1
    except Exception as e:
        log.exception("fatal_error", error=str(e))
        return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(debug=args.debug, log_format=args.format)

    try:
        return asyncio.run(
            run_bot(
                args.config,
                dry_run=args.dry_run,
                health_check=args.health_check,
                silent_commands=args.silent_commands,
                debug=args.debug,
            )
        )
    except KeyboardInterrupt:
        log.info("shutting_down_gracefully")
        return 0


if __name__ == "__main__":
    sys.exit(main())
