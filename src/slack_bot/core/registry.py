"""Registry of message and slash command handlers.

Handlers are registered before SlackBot.run() and only read afterwards.
Registration mistakes (a missing handler, an empty or duplicate command
name) raise ConfigurationError immediately and leave the registry untouched.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from structlog.typing import FilteringBoundLogger

from slack_bot.core.errors import ConfigurationError
from slack_bot.models.events import MessageEvent, SlashCommand

if TYPE_CHECKING:
    from slack_bot.core.bot import SlackBot

MessageHandler = Callable[[MessageEvent, "SlackBot"], Awaitable[Any] | Any]
SlashCommandHandler = Callable[[SlashCommand, "SlackBot"], Awaitable[Any] | Any]


class HandlerRegistry:
    """Ordered message handlers plus a unique-key map of command handlers.

    Example:
        registry = HandlerRegistry()
        registry.add_message_handler(on_message)
        registry.add_slash_command_handler("/deploy", on_deploy)
        await registry.dispatch(event, bot, log)
    """

    def __init__(self) -> None:
        self._message_handlers: list[MessageHandler] = []
        self._command_handlers: dict[str, SlashCommandHandler] = {}

    @property
    def message_handlers(self) -> tuple[MessageHandler, ...]:
        return tuple(self._message_handlers)

    @property
    def command_names(self) -> tuple[str, ...]:
        return tuple(self._command_handlers)

    @property
    def is_empty(self) -> bool:
        return not self._message_handlers and not self._command_handlers

    def add_message_handler(self, handler: MessageHandler) -> None:
        """Append a handler invoked for every message event.

        Raises:
            ConfigurationError: If handler is None or not callable
        """
        if handler is None or not callable(handler):
            raise ConfigurationError(f"message handler must be callable, got {handler!r}")
        self._message_handlers.append(handler)

    def add_slash_command_handler(self, name: str, handler: SlashCommandHandler) -> None:
        """Register the single handler for a slash command name (e.g. "/deploy").

        Raises:
            ConfigurationError: If the name is empty, the handler is None or
                not callable, or the name already has a handler
        """
        if not name:
            raise ConfigurationError("slash command name must not be empty")
        if handler is None or not callable(handler):
            raise ConfigurationError(f"handler for {name} must be callable, got {handler!r}")
        if name in self._command_handlers:
            raise ConfigurationError(f"slash command handler already registered: {name}")
        self._command_handlers[name] = handler

    def command_handler(self, name: str) -> SlashCommandHandler | None:
        return self._command_handlers.get(name)

    async def dispatch(
        self,
        event: MessageEvent | SlashCommand,
        bot: SlackBot,
        log: FilteringBoundLogger,
    ) -> int:
        """Invoke the handlers registered for ``event``.

        Handler exceptions are logged and never propagate; every message
        handler runs even if an earlier one failed.

        Returns:
            Number of handlers invoked
        """
        if isinstance(event, MessageEvent):
            for handler in self._message_handlers:
                await self._invoke(handler, event, bot, log, "message_handler_failed")
            return len(self._message_handlers)

        handler = self._command_handlers.get(event.command)
        if handler is None:
            log.debug("slash_command_not_routed", command=event.command)
            return 0
        await self._invoke(handler, event, bot, log, "slash_command_handler_failed")
        return 1

    @staticmethod
    async def _invoke(
        handler: Callable[[Any, SlackBot], Any],
        event: MessageEvent | SlashCommand,
        bot: SlackBot,
        log: FilteringBoundLogger,
        failure_event: str,
    ) -> None:
        try:
            result = handler(event, bot)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            log.exception(
                failure_event,
                handler=getattr(handler, "__qualname__", repr(handler)),
                error=str(e),
            )
