"""Abstract interface for the duplex event connection."""

from typing import Any, Protocol


class Transport(Protocol):
    """Abstract interface for the connection that delivers event envelopes.

    Implementations own connecting, reconnecting and keep-alive. The
    coordinator only reads frames, acknowledges envelopes, and closes.
    """

    async def connect(self) -> None:
        """
        Open the connection.

        Raises:
            TransportError: If the connection cannot be established
        """
        ...

    async def receive(self) -> dict[str, Any] | None:
        """
        Wait for the next decoded frame.

        Frames are JSON objects with at least a ``type`` key. Lifecycle
        changes (connecting, connected, disconnect, connection_error) are
        delivered as frames too.

        Returns:
            The next frame, or None once the connection is closed for good
        """
        ...

    async def ack(self, envelope_id: str, payload: dict[str, Any] | None = None) -> None:
        """
        Acknowledge an envelope, optionally with a response payload.

        Raises:
            TransportError: If the acknowledgement cannot be sent
        """
        ...

    async def close(self) -> None:
        """
        Close the connection. After this, receive() returns None.
        """
        ...
