"""Socket Mode transport using slack_sdk's aiohttp client.

This module implements the Transport protocol on top of
``slack_sdk.socket_mode.aiohttp.SocketModeClient``.

Features:
- Every websocket text frame is decoded and queued in arrival order
- Lifecycle frames (connecting, connected, disconnect, connection_error)
  are synthesized so the coordinator can log them
- Reconnection and keep-alive stay with slack_sdk
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from aiohttp import WSMessage
from slack_sdk.socket_mode.aiohttp import SocketModeClient
from slack_sdk.socket_mode.response import SocketModeResponse
from slack_sdk.web.async_client import AsyncWebClient
from structlog.typing import FilteringBoundLogger

from ...core.errors import TransportError
from ...models.events import LifecycleKind
from ...utils.secret import Secret


class SocketModeTransport:
    """Transport implementation backed by Slack Socket Mode.

    The underlying SocketModeClient is created lazily on connect(), at most
    once, because it schedules tasks on the running event loop.

    Example:
        transport = SocketModeTransport(app_token, web_client, log)
        await transport.connect()
        while (frame := await transport.receive()) is not None:
            ...
        await transport.close()
    """

    def __init__(
        self,
        app_token: Secret,
        web_client: AsyncWebClient,
        log: FilteringBoundLogger,
        sdk_logger: logging.Logger | None = None,
        trace_enabled: bool = False,
    ) -> None:
        """Initialize the transport.

        Args:
            app_token: App-level token (xapp-) with connections:write
            web_client: Web API client used to open the connection
            log: Structured logger for transport events
            sdk_logger: Stdlib logger handed to slack_sdk
            trace_enabled: Enable slack_sdk's verbose connection tracing
        """
        self._app_token = app_token
        self._web_client = web_client
        self._log = log
        self._sdk_logger = sdk_logger
        self._trace_enabled = trace_enabled

        self._client: SocketModeClient | None = None
        self._frames: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()
        self._closed = False

    @property
    def client(self) -> SocketModeClient:
        """Return the Socket Mode client, creating it on first use."""
        if self._client is None:
            self._client = SocketModeClient(
                app_token=self._app_token.get_secret_value(),
                web_client=self._web_client,
                logger=self._sdk_logger,
                trace_enabled=self._trace_enabled,
                on_message_listeners=[self._on_ws_message],
                on_error_listeners=[self._on_ws_error],
                on_close_listeners=[self._on_ws_close],
            )
        return self._client

    async def connect(self) -> None:
        """Open the Socket Mode connection.

        Raises:
            TransportError: If the connection cannot be established.
        """
        if self._closed:
            raise TransportError("Transport is closed")

        await self._frames.put({"type": LifecycleKind.CONNECTING.value})
        try:
            await self.client.connect()
        except Exception as e:
            self._log.error("socket_mode_connection_failed", error=str(e))
            raise TransportError(f"Failed to connect to Slack: {e}") from e
        await self._frames.put({"type": LifecycleKind.CONNECTED.value})

    async def receive(self) -> dict[str, Any] | None:
        """Wait for the next frame; None once the transport is closed."""
        if self._closed and self._frames.empty():
            return None
        return await self._frames.get()

    async def ack(self, envelope_id: str, payload: dict[str, Any] | None = None) -> None:
        """Send a Socket Mode acknowledgement.

        Raises:
            TransportError: If sending fails.
        """
        response = SocketModeResponse(envelope_id=envelope_id, payload=payload)
        try:
            await self.client.send_socket_mode_response(response)
        except Exception as e:
            raise TransportError(f"Failed to acknowledge {envelope_id}: {e}") from e

    async def close(self) -> None:
        """Close the connection and wake up any pending receive()."""
        if self._closed:
            return
        self._closed = True
        self._frames.put_nowait(None)

        if self._client is not None:
            try:
                await self._client.close()
            except Exception as e:
                self._log.warning("socket_mode_close_error", error=str(e))
        self._log.debug("socket_mode_closed")

    async def _on_ws_message(self, message: WSMessage) -> None:
        try:
            frame = json.loads(message.data)
        except (TypeError, ValueError) as e:
            self._log.debug("socket_mode_frame_undecodable", error=str(e))
            return
        if isinstance(frame, dict):
            await self._frames.put(frame)

    async def _on_ws_error(self, message: WSMessage) -> None:
        await self._frames.put(
            {"type": LifecycleKind.CONNECTION_ERROR.value, "error": str(message.data)}
        )

    async def _on_ws_close(self, message: WSMessage) -> None:
        await self._frames.put(
            {
                "type": LifecycleKind.DISCONNECTED.value,
                "reason": "socket_closed",
                "code": message.data,
            }
        )
