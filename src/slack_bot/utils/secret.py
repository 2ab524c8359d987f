"""Credential wrapper that never renders its value."""

from __future__ import annotations

import pydantic

REDACTED = "[REDACTED]"


class Secret(pydantic.Secret[str]):
    """A string credential that always displays as ``[REDACTED]``.

    ``str()``, ``repr()`` and pydantic JSON serialization all produce the
    redaction marker, regardless of the wrapped value (including the empty
    string). Use ``get_secret_value()`` at the single point where the raw
    token is handed to the Slack client.

    Example:
        token = Secret("xoxb-...")
        str(token)  # "[REDACTED]"
    """

    def _display(self) -> str:
        return REDACTED

    def __bool__(self) -> bool:
        return bool(self.get_secret_value())
