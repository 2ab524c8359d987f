"""Event dispatch coordinator.

This module implements SlackBot, which owns the Socket Mode connection and
turns inbound frames into handler calls:
- Authenticates and optionally auto-joins configured channels
- Classifies each frame and acknowledges envelopes before dispatching
- Hands unwrapped events to a single dispatch consumer over a bounded queue
- Stops all tasks together on stop(), cancellation, or connection close,
  letting a handler that is already running finish
"""

from __future__ import annotations

import asyncio
from collections import Counter
from enum import StrEnum

import structlog
from slack_sdk.web.async_client import AsyncWebClient
from structlog.typing import FilteringBoundLogger

from slack_bot.config.schema import BotConfig
from slack_bot.core.ack import AckPolicy, default_ack_policy
from slack_bot.core.errors import (
    ConfigurationError,
    EventHandlerNotConfiguredError,
    SlackBotError,
    TransportError,
)
from slack_bot.core.operations import CONVERSATIONS_PAGE_SIZE, SlackOperations
from slack_bot.core.registry import HandlerRegistry, MessageHandler, SlashCommandHandler
from slack_bot.interfaces.transport import Transport
from slack_bot.models.events import (
    ConnectionLifecycle,
    EventsAPIPayload,
    Identity,
    InboundEvent,
    LifecycleKind,
    MessageEvent,
    SlashCommand,
    SlashCommandPayload,
    parse_frame,
    requires_ack,
)
from slack_bot.utils.logging import close_logger, create_logger, library_logger

# Capacity of the queue between the receive loop and the dispatch consumer
EVENT_QUEUE_SIZE = 10


class BotState(StrEnum):
    """Coordinator lifecycle."""

    CREATED = "created"
    AUTHENTICATING = "authenticating"
    JOINING = "joining"
    CONNECTED = "connected"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


_STARTED_STATES = frozenset(
    {BotState.CONNECTED, BotState.RUNNING, BotState.SHUTTING_DOWN, BotState.TERMINATED}
)


class SlackBot(SlackOperations):
    """Socket Mode bot runtime.

    Register handlers, then await run(). Handlers receive the event and the
    bot, and may call any outbound operation on it.

    Example:
        bot = SlackBot(build_config(with_bot_token(...), with_app_level_token(...)))

        async def on_message(message: MessageEvent, bot: SlackBot) -> None:
            if message.user != bot.user_id:
                await bot.reply(message, "hello")

        bot.add_message_handler(on_message)
        bot.add_slash_command_handler("/deploy", on_deploy)
        await bot.run()  # Blocks until stop() or the connection closes
    """

    def __init__(
        self,
        config: BotConfig,
        logger: FilteringBoundLogger | None = None,
        web_client: AsyncWebClient | None = None,
        transport: Transport | None = None,
        ack_policy: AckPolicy | None = None,
    ) -> None:
        """Initialize the bot.

        Args:
            config: Runtime configuration
            logger: Structured logger; built from the config's log settings if omitted
            web_client: Web API client; created lazily from the bot token if omitted
            transport: Event connection; a SocketModeTransport is created lazily if omitted
            ack_policy: Decides the acknowledgement payload; default_ack_policy if omitted
        """
        self._owns_log = logger is None
        if logger is None:
            logger = create_logger(
                config.display_name,
                level=config.effective_log_level,
                sink=config.log_file,
                log_format=config.log_format,
            )
        super().__init__(config, logger, web_client)

        self._registry = HandlerRegistry()
        self._ack_policy: AckPolicy = ack_policy or default_ack_policy
        self._transport = transport

        self._state = BotState.CREATED
        self._queue: asyncio.Queue[MessageEvent | SlashCommand] | None = None
        self._shutdown_event: asyncio.Event | None = None
        self._running_handler: asyncio.Task[None] | None = None
        self._stats: Counter[str] = Counter()

    @property
    def state(self) -> BotState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state in (BotState.CONNECTED, BotState.RUNNING)

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    @property
    def stats(self) -> dict[str, int]:
        """Return frame and dispatch counters."""
        return {
            "frames_received": self._stats["frames_received"],
            "acks_sent": self._stats["acks_sent"],
            "events_dispatched": self._stats["events_dispatched"],
            "events_dropped": self._stats["events_dropped"],
        }

    @property
    def transport(self) -> Transport:
        """Return the event transport, creating the Socket Mode one on first use."""
        if self._transport is None:
            # Import here to avoid loading aiohttp until a connection is needed
            from slack_bot.adapters.transport.socket_mode import SocketModeTransport

            self._transport = SocketModeTransport(
                app_token=self._config.app_level_token,
                web_client=self.web_client,
                log=self._log,
                sdk_logger=library_logger(
                    f"slack_bot.{self._config.display_name}.sock",
                    self._log,
                    prefix="sock: ",
                    debug=self._config.debug,
                ),
                trace_enabled=self._config.debug,
            )
        return self._transport

    def add_message_handler(self, handler: MessageHandler) -> None:
        """Register a handler for every message event, after those already registered.

        Raises:
            ConfigurationError: If handler is None, or the bot is already running
        """
        self._ensure_not_started()
        self._registry.add_message_handler(handler)

    def add_slash_command_handler(self, name: str, handler: SlashCommandHandler) -> None:
        """Register the handler for one slash command name.

        Raises:
            ConfigurationError: If the name is empty or taken, the handler is
                None, or the bot is already running
        """
        self._ensure_not_started()
        self._registry.add_slash_command_handler(name, handler)

    def set_ack_policy(self, policy: AckPolicy | None) -> None:
        """Replace the acknowledgement policy; None restores the default."""
        self._ensure_not_started()
        self._ack_policy = policy or default_ack_policy

    async def authenticate(self) -> Identity:
        if self._state is BotState.CREATED:
            self._state = BotState.AUTHENTICATING
        return await super().authenticate()

    async def auto_join(self) -> list[str]:
        """Join every configured channel found on the first conversation page.

        Only one conversations.list page (CONVERSATIONS_PAGE_SIZE non-archived
        conversations) is read.

        A failed join is logged and skipped; the remaining channels are
        still attempted.

        Returns:
            Names of the channels joined

        Raises:
            PlatformAPIError: If the conversation list cannot be fetched
        """
        if not self._config.auto_join:
            return []

        self._state = BotState.JOINING
        identity = self._require_identity()
        channels = await self.list_conversations(
            exclude_archived=True,
            limit=CONVERSATIONS_PAGE_SIZE,
            max_pages=1,
            team_id=identity.team_id,
        )

        joined: list[str] = []
        for channel in channels:
            name = channel.get("name")
            if name not in self._config.join_channels:
                continue
            self._log.info("joining_conversation", channel=name)
            try:
                await self.join_conversation(channel["id"])
            except Exception as e:
                self._log.warning("join_conversation_failed", channel=name, error=str(e))
                continue
            joined.append(name)

        self._log.info("auto_join_complete", joined=joined)
        return joined

    async def run(self) -> None:
        """Authenticate, auto-join, connect, and process events until shutdown.

        Returns when stop() is called, or when the transport closes and the
        events already queued have been dispatched. Cancelling the task
        running this coroutine shuts down the same way and re-raises
        CancelledError. On stop() or cancellation a handler that is already
        running is awaited, not interrupted; queued events are discarded.

        Raises:
            EventHandlerNotConfiguredError: If no handler is registered
            ConfigurationError: If a token is missing
            PlatformAPIError: If authentication or the channel listing fails
            TransportError: If the connection cannot be opened
        """
        if self._registry.is_empty:
            raise EventHandlerNotConfiguredError("No message or slash command handler registered")
        if self._state not in (BotState.CREATED, BotState.AUTHENTICATING, BotState.JOINING):
            raise SlackBotError(f"Bot cannot run from state {self._state}")

        if self._identity is None:
            await self.authenticate()
        await self.auto_join()

        self._queue = asyncio.Queue(maxsize=EVENT_QUEUE_SIZE)
        self._shutdown_event = asyncio.Event()
        transport = self.transport
        tasks: list[asyncio.Task[None]] = []
        errors: list[BaseException] = []

        try:
            await transport.connect()
            self._state = BotState.CONNECTED
            self._log.info(
                "bot_started",
                message_handlers=len(self._registry.message_handlers),
                slash_commands=list(self._registry.command_names),
            )

            tasks = [
                asyncio.create_task(self._receive_loop(transport), name="slack_bot_receive"),
                asyncio.create_task(self._dispatch_loop(), name="slack_bot_dispatch"),
                asyncio.create_task(self._wait_for_shutdown(), name="slack_bot_shutdown"),
            ]
            self._state = BotState.RUNNING

            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            errors = [
                exc
                for task in done
                if not task.cancelled() and (exc := task.exception()) is not None
            ]
        finally:
            self._state = BotState.SHUTTING_DOWN
            try:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                await self._wait_for_running_handler()
            finally:
                self._discard_queued_events()
                await transport.close()
                self._state = BotState.TERMINATED
                self._log.info("bot_stopped", **self.stats)
                if self._owns_log:
                    close_logger(self._log)

        if errors:
            raise errors[0]

    def stop(self) -> None:
        """Ask a running bot to shut down.

        run() returns once the handler in progress, if any, has finished.
        """
        if self._shutdown_event is not None and self._state is not BotState.TERMINATED:
            self._log.info("bot_stopping")
            self._shutdown_event.set()

    async def _wait_for_shutdown(self) -> None:
        assert self._shutdown_event is not None
        await self._shutdown_event.wait()

    async def _receive_loop(self, transport: Transport) -> None:
        """Read frames, acknowledge, and enqueue dispatchable events in order."""
        assert self._queue is not None
        while True:
            frame = await transport.receive()
            if frame is None:
                self._log.info("connection_closed", pending=self._queue.qsize())
                # Let already acknowledged events reach their handlers
                await self._queue.join()
                return

            self._stats["frames_received"] += 1
            event = parse_frame(frame)
            if requires_ack(event):
                await self._acknowledge(transport, event)

            unwrapped = self._unwrap(event)
            if unwrapped is not None:
                # Blocks while the dispatch consumer is behind
                await self._queue.put(unwrapped)

    async def _acknowledge(self, transport: Transport, event: InboundEvent) -> None:
        envelope_id = event.envelope_id
        assert envelope_id is not None
        try:
            payload = self._ack_policy(event)
        except Exception as e:
            self._log.exception("ack_policy_failed", envelope_id=envelope_id, error=str(e))
            payload = None

        try:
            await transport.ack(envelope_id, payload)
        except TransportError as e:
            self._log.warning("ack_failed", envelope_id=envelope_id, error=str(e))
            return
        self._stats["acks_sent"] += 1

    def _unwrap(self, event: InboundEvent) -> MessageEvent | SlashCommand | None:
        """Return the dispatchable event, logging everything that is not one."""
        if isinstance(event, EventsAPIPayload):
            if event.retry_attempt:
                self._log.debug(
                    "events_api_retry",
                    envelope_id=event.envelope_id,
                    retry_attempt=event.retry_attempt,
                    retry_reason=event.retry_reason,
                )
            message = MessageEvent.from_payload(event)
            if message is None:
                self._stats["events_dropped"] += 1
                self._log.debug(
                    "events_api_event_ignored",
                    envelope_id=event.envelope_id,
                    event_type=event.event_type,
                )
                return None
            self._log.debug("events_api_message", channel=message.channel, ts=message.ts)
            return message

        if isinstance(event, SlashCommandPayload):
            command = SlashCommand.from_payload(event)
            if command is None:
                self._stats["events_dropped"] += 1
                self._log.debug("slash_command_malformed", envelope_id=event.envelope_id)
                return None
            self._log.debug("slash_command", command=command.command, text=command.text)
            return command

        if isinstance(event, ConnectionLifecycle):
            self._log_lifecycle(event)
            return None

        self._stats["events_dropped"] += 1
        self._log.warning(
            "unhandled_socket_event",
            frame_type=event.frame_type,
            envelope_id=event.envelope_id,
        )
        return None

    def _log_lifecycle(self, event: ConnectionLifecycle) -> None:
        if event.kind == LifecycleKind.CONNECTING:
            self._log.info("connecting")
        elif event.kind == LifecycleKind.CONNECTED:
            self._log.info("connected")
        elif event.kind == LifecycleKind.HELLO:
            self._log.info("hello", num_connections=event.detail.get("num_connections"))
        elif event.kind == LifecycleKind.DISCONNECTED:
            self._log.warning("disconnected", reason=event.detail.get("reason"))
        else:
            self._log.warning("connection_error", error=event.detail.get("error"))

    async def _dispatch_loop(self) -> None:
        """Single consumer: dispatch queued events one at a time, in order.

        Each event runs in its own task behind asyncio.shield, so cancelling
        this loop during shutdown stops it from taking new events but leaves
        the handler that is already running alone.
        """
        assert self._queue is not None
        while True:
            event = await self._queue.get()
            self._running_handler = asyncio.create_task(
                self._dispatch(event), name="slack_bot_handler"
            )
            try:
                await asyncio.shield(self._running_handler)
            finally:
                self._queue.task_done()

    async def _dispatch(self, event: MessageEvent | SlashCommand) -> None:
        with structlog.contextvars.bound_contextvars(event_kind=type(event).__name__):
            await self._registry.dispatch(event, self, self._log)
        self._stats["events_dispatched"] += 1

    async def _wait_for_running_handler(self) -> None:
        handler = self._running_handler
        if handler is None or handler.done():
            return
        self._log.info("waiting_for_running_handler")
        # asyncio.wait never cancels what it waits on
        await asyncio.wait([handler])

    def _discard_queued_events(self) -> None:
        """Drop events that were acknowledged but never reached a handler."""
        if self._queue is None:
            return
        discarded = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            discarded += 1
        if discarded:
            self._stats["events_dropped"] += discarded
            self._log.warning("queued_events_discarded", count=discarded)

    def _ensure_not_started(self) -> None:
        if self._state in _STARTED_STATES:
            raise ConfigurationError("Handlers and policies must be set before run()")
