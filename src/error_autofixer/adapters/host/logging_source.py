"""LogSource that bridges the standard ``logging`` module.

Records at ERROR level and above are forwarded to subscribers as
(message, stack trace, severity). Records emitted by error-autofixer itself
are ignored so that its own diagnostics never feed back into the store.
"""

from __future__ import annotations

import logging
import threading
import traceback

import structlog

from ...interfaces.host import LogCallback, Unsubscribe
from ...models.error import Severity

log = structlog.get_logger()

OWN_LOGGER_PREFIX = "error_autofixer"


def record_severity(record: logging.LogRecord) -> Severity:
    """Classify a log record.

    Records carrying exception info are EXCEPTION; records logged with
    ``extra={"assertion": True}`` are ASSERT; everything else is ERROR.
    """
    if getattr(record, "assertion", False):
        return Severity.ASSERT
    if record.exc_info and record.exc_info[0] is not None:
        return Severity.EXCEPTION
    return Severity.ERROR


def record_stack_trace(record: logging.LogRecord) -> str:
    """Format the traceback (or stack info) attached to a record."""
    if record.exc_info and record.exc_info[0] is not None:
        return "".join(traceback.format_exception(*record.exc_info))
    if record.exc_text:
        return record.exc_text
    return record.stack_info or ""


class _ForwardingHandler(logging.Handler):
    def __init__(self, source: LoggingLogSource, level: int) -> None:
        super().__init__(level=level)
        self._source = source

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == OWN_LOGGER_PREFIX or record.name.startswith(OWN_LOGGER_PREFIX + "."):
            return
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            message = str(record.msg)
        self._source.dispatch(message, record_stack_trace(record), record_severity(record))


class LoggingLogSource:
    """Pushes error records of a stdlib logger to subscribers.

    The handler is attached while at least one subscriber exists and
    removed with the last unsubscribe. Callbacks run on the thread that
    emitted the record.

    Example:
        source = LoggingLogSource()
        unsubscribe = source.subscribe(lambda msg, trace, sev: print(sev, msg))
        logging.getLogger("game").error("boom")
        unsubscribe()
    """

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.ERROR) -> None:
        """Initialize the LoggingLogSource.

        Args:
            logger: Logger to observe (root logger if None)
            level: Minimum record level forwarded
        """
        self._logger = logger or logging.getLogger()
        self._handler = _ForwardingHandler(self, level)
        self._callbacks: list[LogCallback] = []
        self._lock = threading.Lock()

    @property
    def is_attached(self) -> bool:
        return self._handler in self._logger.handlers

    def subscribe(self, callback: LogCallback) -> Unsubscribe:
        """Register a callback; returns an idempotent unsubscribe handle."""
        with self._lock:
            self._callbacks.append(callback)
            if not self.is_attached:
                self._logger.addHandler(self._handler)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)
                if not self._callbacks and self.is_attached:
                    self._logger.removeHandler(self._handler)

        return unsubscribe

    def dispatch(self, message: str, stack_trace: str, severity: Severity) -> None:
        """Deliver one entry to every current subscriber."""
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(message, stack_trace, severity)
            except Exception as e:
                log.warning("log_callback_failed", error=str(e))
