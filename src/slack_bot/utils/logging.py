"""Structured logging configuration with secret sanitization.

This module provides logging for the bot runtime:
- Configurable log levels and output formats (JSON/console)
- Automatic secret sanitization in log output
- Per-bot logger instances with their own sink (stdout, stderr, file, discard)
- A bridge that forwards slack_sdk's stdlib logging into structlog
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from enum import StrEnum
from pathlib import Path
from typing import Any, TextIO, cast

import structlog
from structlog.typing import FilteringBoundLogger

from slack_bot.utils.secret import REDACTED, Secret
from slack_bot.utils.security import SecretRedactor


class LogFormat(StrEnum):
    """Log output format options."""

    JSON = "json"
    CONSOLE = "console"


class LogLevel(StrEnum):
    """Log level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# Sink names understood by create_logger(); anything else is a file path
STDOUT_SINKS = frozenset({"stdout"})
STDERR_SINKS = frozenset({"", "stderr"})
DISCARD_SINKS = frozenset({"discard", "null", "nil", "nop"})

_redactor: SecretRedactor | None = None


def _get_redactor() -> SecretRedactor:
    """Get or create the shared secret redactor."""
    global _redactor
    if _redactor is None:
        _redactor = SecretRedactor(placeholder=REDACTED)
    return _redactor


def sanitize_log_value(value: Any) -> Any:
    """Recursively sanitize secrets from log values.

    Args:
        value: Value to sanitize (can be nested dict/list/str)

    Returns:
        Sanitized value with secrets redacted
    """
    if isinstance(value, Secret):
        return REDACTED
    if isinstance(value, str):
        return _get_redactor().redact(value)
    elif isinstance(value, dict):
        return {k: sanitize_log_value(v) for k, v in value.items()}
    elif isinstance(value, (list, tuple)):
        return type(value)(sanitize_log_value(v) for v in value)
    else:
        return value


def secret_sanitizer(
    logger: Any,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor to sanitize secrets from log entries.

    Args:
        logger: Logger instance (unused)
        method_name: Log method name (unused)
        event_dict: Event dictionary to process

    Returns:
        Sanitized event dictionary
    """
    result = sanitize_log_value(dict(event_dict))
    return cast(MutableMapping[str, Any], result)


def _renderer(log_format: LogFormat) -> Any:
    if log_format == LogFormat.JSON:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True, exception_formatter=structlog.dev.plain_traceback
    )


def _coerce(level: LogLevel | str, log_format: LogFormat | str) -> tuple[LogLevel, LogFormat]:
    if isinstance(level, str):
        level = LogLevel(level.upper())
    if isinstance(log_format, str):
        log_format = LogFormat(log_format.lower())
    return level, log_format


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.JSON,
    file_path: Path | str | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure process-wide structured logging for the command line entry point.

    Library code does not depend on this: each SlackBot carries its own
    logger from create_logger().

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format (json or console)
        file_path: Path to log file (if file logging enabled)
        file_enabled: Whether to enable file logging

    Example:
        # For development (colored console output)
        configure_logging(level="DEBUG", log_format="console")
    """
    level, log_format = _coerce(level, log_format)
    numeric_level = getattr(logging, level.value)

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        secret_sanitizer,  # Always sanitize secrets
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        _renderer(log_format),
    ]

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    handlers.append(console_handler)

    if file_enabled and file_path:
        try:
            file_path = Path(file_path)
            file_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.FileHandler(file_path)
            file_handler.setLevel(numeric_level)
            handlers.append(file_handler)
        except OSError as e:
            # Continue with console only
            console_logger = logging.getLogger("slack_bot.logging")
            console_logger.warning(f"Could not create log file {file_path}: {e}")

    logging.basicConfig(
        format="%(message)s",
        level=numeric_level,
        handlers=handlers,
        force=True,
    )


class FileSink(structlog.WriteLogger):
    """WriteLogger that owns the file it appends to."""

    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self._stream: TextIO = path.open("a", encoding="utf-8")
        super().__init__(self._stream)

    @property
    def closed(self) -> bool:
        return self._stream.closed

    def close(self) -> None:
        if not self._stream.closed:
            self._stream.close()


def _open_sink(sink: str) -> Any:
    if sink in DISCARD_SINKS:
        return structlog.ReturnLogger()
    if sink in STDOUT_SINKS:
        return structlog.WriteLogger(sys.stdout)
    if sink in STDERR_SINKS:
        return structlog.WriteLogger(sys.stderr)

    return FileSink(Path(sink))


def create_logger(
    name: str,
    level: LogLevel | str = LogLevel.INFO,
    sink: str = "stderr",
    log_format: LogFormat | str = LogFormat.JSON,
) -> FilteringBoundLogger:
    """Build a self-contained structlog logger for one bot instance.

    The logger does not touch structlog's global configuration, so several
    bots in one process can log to different sinks at different levels.

    Args:
        name: Application name, bound as ``app_name`` on every record
        level: Minimum level to emit
        sink: "stdout", "stderr", "discard" (or "null"/"nil"/"nop"), or a file path
            opened for appending
        log_format: Output format (json or console)

    Returns:
        A bound logger

    Raises:
        OSError: If the sink is a file path that cannot be opened
    """
    level, log_format = _coerce(level, log_format)
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        secret_sanitizer,
        structlog.processors.format_exc_info,
        _renderer(log_format),
    ]
    logger = structlog.wrap_logger(
        _open_sink(sink),
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level.value)),
    )
    return cast(FilteringBoundLogger, logger.bind(app_name=name))


def close_logger(log: FilteringBoundLogger) -> None:
    """Close the file behind a logger from create_logger(); other sinks are left open."""
    sink = getattr(log, "_logger", None)
    if isinstance(sink, FileSink):
        sink.close()


class LibraryLogBridge(logging.Handler):
    """Forward stdlib log records (from slack_sdk) to a structlog logger.

    Each forwarded record keeps its level and is prefixed so that Web API
    chatter ("api: ") can be told apart from Socket Mode chatter ("sock: ").
    """

    def __init__(self, target: FilteringBoundLogger, prefix: str) -> None:
        super().__init__()
        self._target = target
        self._prefix = prefix

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = record.getMessage()
        except Exception:
            self.handleError(record)
            return
        self._target.log(record.levelno, f"{self._prefix}{message}")


def library_logger(
    name: str,
    target: FilteringBoundLogger,
    prefix: str,
    debug: bool = False,
) -> logging.Logger:
    """Return a stdlib logger for slack_sdk that writes through ``target``.

    Args:
        name: Dotted logger name, unique per bot instance
        target: Structlog logger receiving the records
        prefix: Text prepended to every forwarded message
        debug: Forward debug chatter too; otherwise only warnings and above

    Returns:
        A non-propagating stdlib logger with a single LibraryLogBridge handler
    """
    stdlib_logger = logging.getLogger(name)
    stdlib_logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    stdlib_logger.propagate = False
    for handler in list(stdlib_logger.handlers):
        stdlib_logger.removeHandler(handler)
    stdlib_logger.addHandler(LibraryLogBridge(target, prefix))
    return stdlib_logger
