"""Acknowledgement policies for envelopes that require one.

An AckPolicy receives the classified inbound event and returns the payload
to send back with the acknowledgement, or None for a silent ack.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from slack_bot.models.events import InboundEvent, SlashCommandPayload

AckPolicy = Callable[[InboundEvent], dict[str, Any] | None]

# Makes the invoking client echo the command into the channel
IN_CHANNEL_ACK: dict[str, Any] = {"response_type": "in_channel", "text": ""}


def default_ack_policy(event: InboundEvent) -> dict[str, Any] | None:
    """Silent ack for everything except slash commands."""
    if isinstance(event, SlashCommandPayload):
        return dict(IN_CHANNEL_ACK)
    return None


def silent_ack_policy(event: InboundEvent) -> dict[str, Any] | None:
    """Acknowledge without a payload; slash commands are not echoed."""
    return None
