"""Exception taxonomy and the Slack API error classifier.

Every outbound call site routes ``SlackApiError`` through
``classify_api_error``: each diagnostic message in the response metadata is
logged as its own record, and the caller gets a ``PlatformAPIError`` chained
to the original error. Anything else (network failures, timeouts) is not
classified and propagates unchanged.
"""

from __future__ import annotations

from typing import Any

from slack_sdk.errors import SlackApiError
from structlog.typing import FilteringBoundLogger


class SlackBotError(Exception):
    """Base exception for bot runtime errors."""


class PlatformAPIError(SlackBotError):
    """Slack rejected a Web API call.

    Attributes:
        operation: Name of the API method that failed.
        error: Slack's error code (e.g. "channel_not_found").
        messages: Diagnostic messages from ``response_metadata.messages``.
    """

    def __init__(
        self,
        message: str,
        operation: str = "",
        error: str = "",
        messages: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.error = error
        self.messages = messages or []


class TransportError(SlackBotError):
    """The Socket Mode connection failed."""


class ConfigurationError(SlackBotError):
    """Invalid handler registration or missing credentials."""


class EventHandlerNotConfiguredError(SlackBotError):
    """run() was called before any handler was registered."""


class NotAuthenticatedError(SlackBotError):
    """An outbound call was attempted before authentication."""


def response_messages(err: SlackApiError) -> list[str]:
    """Extract ``response_metadata.messages`` from a Slack error response."""
    response: Any = err.response
    try:
        metadata = response.get("response_metadata") or {}
    except AttributeError:
        return []
    messages = metadata.get("messages") if isinstance(metadata, dict) else None
    return [str(m) for m in messages] if isinstance(messages, list) else []


def response_error_code(err: SlackApiError) -> str:
    """Extract Slack's ``error`` code from a Slack error response."""
    try:
        return str(err.response.get("error") or "")
    except AttributeError:
        return ""


def classify_api_error(
    err: BaseException,
    log: FilteringBoundLogger,
    operation: str,
) -> BaseException:
    """Map a Web API failure to the local error taxonomy.

    Args:
        err: The exception raised by the Slack client
        log: Logger receiving one record per diagnostic message
        operation: API method name, included in the error text

    Returns:
        A PlatformAPIError for structured Slack errors (raise it ``from err``),
        otherwise ``err`` itself
    """
    if not isinstance(err, SlackApiError):
        return err

    messages = response_messages(err)
    for message in messages:
        log.error("platform_api_error", operation=operation, message=message)

    return PlatformAPIError(
        f"SlackAPIError: {operation}: {err}",
        operation=operation,
        error=response_error_code(err),
        messages=messages,
    )
