"""Structured logging for error-autofixer.

Every event passes through ``secret_sanitizer`` before rendering. Values
are redacted (API keys, bearer tokens, ``?key=`` parameters), stripped of
terminal escape codes picked up from build output and cut to
``MAX_LOG_VALUE_LENGTH`` characters, so model responses and source files
only ever appear as previews.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from enum import StrEnum
from functools import cache
from pathlib import Path
from typing import Any, cast

import structlog

from error_autofixer.utils.security import SecretRedactor, strip_control_sequences

SERVICE_NAME = "error-autofixer"
MAX_LOG_VALUE_LENGTH = 2000

# Request lines from these include the endpoint; only shown at DEBUG
HTTP_LOGGERS = ("httpx", "httpcore")


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


@cache
def _redactor() -> SecretRedactor:
    return SecretRedactor(placeholder="[REDACTED]")


@cache
def _service_version() -> str | None:
    try:
        from error_autofixer._version import __version__
    except (ImportError, RuntimeError):
        return None
    return __version__


def sanitize_log_value(value: Any, max_length: int = MAX_LOG_VALUE_LENGTH) -> Any:
    """Make a log value safe to write.

    Strings are redacted, cleaned of control sequences and truncated;
    dicts, lists and tuples are processed recursively. Other values are
    returned unchanged.
    """
    if isinstance(value, str):
        text = strip_control_sequences(_redactor().redact(value))
        if len(text) > max_length:
            return f"{text[:max_length]}... [{len(text) - max_length} more chars]"
        return text
    if isinstance(value, dict):
        return {k: sanitize_log_value(v, max_length) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(sanitize_log_value(v, max_length) for v in value)
    return value


def secret_sanitizer(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Structlog processor applying ``sanitize_log_value`` to every field."""
    return cast(MutableMapping[str, Any], sanitize_log_value(event_dict))


def add_service_context(
    logger: logging.Logger,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Tag entries with the service name and version."""
    event_dict.setdefault("service", SERVICE_NAME)
    version = _service_version()
    if version is not None:
        event_dict.setdefault("version", version)
    return event_dict


def _renderer(log_format: LogFormat) -> Any:
    if log_format == LogFormat.JSON:
        return structlog.processors.JSONRenderer()
    # Colours only when stderr is a terminal; files and pipes stay plain
    return structlog.dev.ConsoleRenderer(
        colors=sys.stderr.isatty(), exception_formatter=structlog.dev.plain_traceback
    )


def _file_handler(file_path: Path, level: int) -> logging.Handler | None:
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(file_path, encoding="utf-8")
    except OSError as e:
        logging.getLogger(__name__).warning("Could not create log file %s: %s", file_path, e)
        return None
    handler.setLevel(level)
    return handler


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    log_format: LogFormat | str = LogFormat.JSON,
    file_path: Path | str | None = None,
    file_enabled: bool = False,
) -> None:
    """Configure structlog over stdlib logging.

    Output goes to stderr (stdout is reserved for command results) and,
    when enabled, to ``file_path``. If the file cannot be created logging
    continues on stderr only.

    Args:
        level: Minimum level
        log_format: ``json`` or ``console``
        file_path: Log file location
        file_enabled: Whether to also write to ``file_path``
    """
    level = LogLevel(level.upper()) if isinstance(level, str) else level
    log_format = LogFormat(log_format.lower()) if isinstance(log_format, str) else log_format
    numeric_level = getattr(logging, level.value)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_service_context,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            secret_sanitizer,
            structlog.processors.UnicodeDecoder(),
            _renderer(log_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)
    handlers: list[logging.Handler] = [console_handler]

    if file_enabled and file_path:
        file_handler = _file_handler(Path(file_path), numeric_level)
        if file_handler is not None:
            handlers.append(file_handler)

    logging.basicConfig(format="%(message)s", level=numeric_level, handlers=handlers, force=True)

    http_level = logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)
