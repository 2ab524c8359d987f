"""Concrete implementations of collaborator interfaces."""

from .transport.socket_mode import SocketModeTransport

__all__ = [
    "SocketModeTransport",
]
