"""Utility functions and helpers.

This module provides various utilities for the bot runtime:
- secret: Credential wrapper that never renders its value
- security: Pattern-based secret redaction
- logging: Structured logging with secret sanitization
"""

from slack_bot.utils.logging import (
    FileSink,
    LibraryLogBridge,
    LogFormat,
    LogLevel,
    close_logger,
    configure_logging,
    create_logger,
    library_logger,
)
from slack_bot.utils.secret import REDACTED, Secret
from slack_bot.utils.security import (
    RedactionError,
    SecretRedactor,
    SecurityError,
)

__all__ = [
    # Logging
    "FileSink",
    "LibraryLogBridge",
    "LogFormat",
    "LogLevel",
    # Secrets
    "REDACTED",
    "RedactionError",
    "Secret",
    "SecretRedactor",
    "SecurityError",
    "close_logger",
    "configure_logging",
    "create_logger",
    "library_logger",
]
