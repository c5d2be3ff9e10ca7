"""Abstract interfaces for the host environment.

The host is whatever produces errors: a running process emitting log
records, and a console or build output that can be enumerated on demand.
"""

from collections.abc import Callable
from typing import Protocol

from ..models.error import Severity

LogCallback = Callable[[str, str, Severity], None]
"""Receives (message, stack_trace, severity) for every error-like log entry."""

Unsubscribe = Callable[[], None]


class LogSource(Protocol):
    """Pushes error-like log entries to subscribers.

    Callbacks may be invoked from any thread; consumers are responsible for
    moving the work onto their owner thread.
    """

    def subscribe(self, callback: LogCallback) -> Unsubscribe:
        """
        Register a callback for error-like log entries.

        Args:
            callback: Called once per log entry

        Returns:
            A handle that removes the subscription when called. Calling
            it more than once is a no-op.
        """
        ...


class ConsoleReader(Protocol):
    """Enumerates the error messages currently shown by the host console."""

    def read_error_messages(self) -> set[str]:
        """
        Read the current error-classified console messages.

        Returns:
            Set of message strings (possibly empty)

        Raises:
            ConsoleUnavailableError: If the console cannot be enumerated
        """
        ...


class ConsoleUnavailableError(Exception):
    """The host console cannot be enumerated right now."""
