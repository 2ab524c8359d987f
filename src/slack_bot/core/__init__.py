"""Core runtime components.

This module exports:
- SlackBot: Event dispatch coordinator and outbound operations
- HandlerRegistry: Message and slash command handler registry
- Ack policies and the error taxonomy
"""

from slack_bot.core.ack import AckPolicy, IN_CHANNEL_ACK, default_ack_policy, silent_ack_policy
from slack_bot.core.bot import EVENT_QUEUE_SIZE, BotState, SlackBot
from slack_bot.core.errors import (
    ConfigurationError,
    EventHandlerNotConfiguredError,
    NotAuthenticatedError,
    PlatformAPIError,
    SlackBotError,
    TransportError,
    classify_api_error,
)
from slack_bot.core.registry import HandlerRegistry, MessageHandler, SlashCommandHandler

__all__ = [
    "EVENT_QUEUE_SIZE",
    "IN_CHANNEL_ACK",
    "AckPolicy",
    "BotState",
    "ConfigurationError",
    "EventHandlerNotConfiguredError",
    "HandlerRegistry",
    "MessageHandler",
    "NotAuthenticatedError",
    "PlatformAPIError",
    "SlackBot",
    "SlackBotError",
    "SlashCommandHandler",
    "TransportError",
    "classify_api_error",
    "default_ack_policy",
    "silent_ack_policy",
]
