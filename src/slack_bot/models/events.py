"""Data models for inbound Socket Mode frames and the events unwrapped from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class FrameType(StrEnum):
    """Envelope ``type`` values consumed from the duplex connection."""

    EVENTS_API = "events_api"
    SLASH_COMMANDS = "slash_commands"


class LifecycleKind(StrEnum):
    """Connection state notifications.

    ``hello`` and ``disconnect`` arrive on the wire; the others are
    synthesized by the transport.
    """

    CONNECTING = "connecting"
    CONNECTED = "connected"
    HELLO = "hello"
    DISCONNECTED = "disconnect"
    CONNECTION_ERROR = "connection_error"


@dataclass(frozen=True)
class EventsAPIPayload:
    """An Events API envelope."""

    envelope_id: str | None
    payload: dict[str, Any]
    retry_attempt: int | None = None
    retry_reason: str | None = None

    @property
    def event(self) -> dict[str, Any]:
        inner = self.payload.get("event")
        return inner if isinstance(inner, dict) else {}

    @property
    def event_type(self) -> str | None:
        return self.event.get("type")


@dataclass(frozen=True)
class SlashCommandPayload:
    """A slash command envelope."""

    envelope_id: str | None
    payload: dict[str, Any]


@dataclass(frozen=True)
class ConnectionLifecycle:
    """A connection state notification. Informational only."""

    kind: LifecycleKind
    detail: dict[str, Any] = field(default_factory=dict)
    envelope_id: str | None = None


@dataclass(frozen=True)
class Unhandled:
    """Any envelope kind this runtime does not understand."""

    frame_type: str
    frame: dict[str, Any]
    envelope_id: str | None = None


InboundEvent = EventsAPIPayload | SlashCommandPayload | ConnectionLifecycle | Unhandled

_LIFECYCLE_TYPES = frozenset(kind.value for kind in LifecycleKind)


def requires_ack(event: InboundEvent) -> bool:
    """Envelopes carrying an envelope_id must be acknowledged."""
    return bool(event.envelope_id)


def parse_frame(frame: dict[str, Any]) -> InboundEvent:
    """Classify a raw Socket Mode frame by its declared type.

    Args:
        frame: Decoded JSON frame as received from the transport

    Returns:
        The typed inbound event; unknown types become Unhandled
    """
    frame_type = str(frame.get("type") or "")
    envelope_id = frame.get("envelope_id") or None
    payload = frame.get("payload")

    if frame_type == FrameType.EVENTS_API:
        return EventsAPIPayload(
            envelope_id=envelope_id,
            payload=payload if isinstance(payload, dict) else {},
            retry_attempt=frame.get("retry_attempt"),
            retry_reason=frame.get("retry_reason"),
        )
    if frame_type == FrameType.SLASH_COMMANDS:
        return SlashCommandPayload(
            envelope_id=envelope_id,
            payload=payload if isinstance(payload, dict) else {},
        )
    if frame_type in _LIFECYCLE_TYPES:
        detail = {k: v for k, v in frame.items() if k not in ("type", "envelope_id")}
        return ConnectionLifecycle(
            kind=LifecycleKind(frame_type),
            detail=detail,
            envelope_id=envelope_id,
        )
    return Unhandled(frame_type=frame_type, frame=frame, envelope_id=envelope_id)


@dataclass(frozen=True)
class MessageEvent:
    """A message posted to a conversation the bot can see."""

    text: str
    user: str  # empty for bot-authored messages
    bot_id: str
    channel: str
    ts: str
    thread_ts: str | None = None
    subtype: str | None = None

    # Original event payload
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload: EventsAPIPayload) -> MessageEvent | None:
        """Unwrap a message event, or None if the payload is not one."""
        event = payload.event
        if event.get("type") != "message":
            return None
        channel = event.get("channel")
        ts = event.get("ts")
        if not isinstance(channel, str) or not isinstance(ts, str):
            return None
        return cls(
            text=event.get("text") or "",
            user=event.get("user") or "",
            bot_id=event.get("bot_id") or "",
            channel=channel,
            ts=ts,
            thread_ts=event.get("thread_ts"),
            subtype=event.get("subtype"),
            raw=event,
        )


@dataclass(frozen=True)
class SlashCommand:
    """An invocation of a slash command such as ``/deploy env=prod``."""

    command: str
    text: str
    channel_id: str
    user_id: str
    response_url: str = ""
    trigger_id: str = ""

    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_payload(cls, payload: SlashCommandPayload) -> SlashCommand | None:
        """Unwrap a slash command, or None if the payload lacks a command name."""
        body = payload.payload
        command = body.get("command")
        if not isinstance(command, str) or not command:
            return None
        return cls(
            command=command,
            text=body.get("text") or "",
            channel_id=body.get("channel_id") or "",
            user_id=body.get("user_id") or "",
            response_url=body.get("response_url") or "",
            trigger_id=body.get("trigger_id") or "",
            raw=body,
        )


@dataclass(frozen=True)
class Identity:
    """Who the bot is, as reported by auth.test."""

    bot_id: str
    user_id: str
    team_id: str
    user: str = ""
    team: str = ""
    url: str = ""
