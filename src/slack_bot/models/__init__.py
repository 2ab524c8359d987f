"""Data models and transfer objects."""

from .events import (
    ConnectionLifecycle,
    EventsAPIPayload,
    FrameType,
    Identity,
    InboundEvent,
    LifecycleKind,
    MessageEvent,
    SlashCommand,
    SlashCommandPayload,
    Unhandled,
    parse_frame,
    requires_ack,
)

__all__ = [
    # Envelopes
    "FrameType",
    "LifecycleKind",
    "InboundEvent",
    "EventsAPIPayload",
    "SlashCommandPayload",
    "ConnectionLifecycle",
    "Unhandled",
    "parse_frame",
    "requires_ack",
    # Unwrapped events
    "MessageEvent",
    "SlashCommand",
    "Identity",
]
