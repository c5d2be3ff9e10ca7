"""Deduplicating, bounded store of captured errors.

This module implements the ErrorStore class that holds the recent error
history. It:
- Deduplicates events by (message, stack trace)
- Evicts the oldest entry once capacity is exceeded
- Retires compile errors that disappeared from the console after a rebuild
- Notifies observers of captures and list changes
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

import structlog

from error_autofixer.core.error_parser import ErrorParser
from error_autofixer.interfaces.host import Unsubscribe
from error_autofixer.models.analysis import AnalysisResult
from error_autofixer.models.error import CapturedError, Severity, dedupe_key

log = structlog.get_logger()

CapturedCallback = Callable[[CapturedError], None]
ChangedCallback = Callable[[], None]


class ErrorStore:
    """Bounded history of captured errors.

    All mutation is serialized by an internal lock, so live log callbacks
    and console reconciliation may be issued from different call sites.
    Observers are invoked synchronously after the mutation they describe.

    Example:
        store = ErrorStore(ErrorParser(), capacity=100)
        unsubscribe = store.subscribe_changed(view.refresh)
        store.ingest("Assets/Foo.cs(10,3): error CS1002: ; expected")
        store.reconcile(console.read_error_messages())
        unsubscribe()
    """

    DEFAULT_CAPACITY = 100

    def __init__(self, parser: ErrorParser | None = None, capacity: int = DEFAULT_CAPACITY) -> None:
        """Initialize the ErrorStore.

        Args:
            parser: Parser used to extract locations at capture time
            capacity: Maximum number of live entries
        """
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self._parser = parser or ErrorParser()
        self._capacity = capacity
        self._errors: list[CapturedError] = []
        self._keys: set[tuple[str, str]] = set()
        self._lock = threading.RLock()

        self._captured_observers: list[CapturedCallback] = []
        self._changed_observers: list[ChangedCallback] = []

    @property
    def capacity(self) -> int:
        """Maximum number of live entries."""
        return self._capacity

    @property
    def errors(self) -> list[CapturedError]:
        """Snapshot of live entries, oldest first."""
        with self._lock:
            return list(self._errors)

    def __len__(self) -> int:
        with self._lock:
            return len(self._errors)

    def get(self, index: int) -> CapturedError | None:
        """Return the entry at ``index`` (oldest first), or None."""
        with self._lock:
            if 0 <= index < len(self._errors):
                return self._errors[index]
            return None

    def find(self, message: str | None, stack_trace: str | None = "") -> CapturedError | None:
        """Return the live entry for a (message, trace) pair, or None."""
        key = dedupe_key(message, stack_trace)
        with self._lock:
            if key not in self._keys:
                return None
            for error in self._errors:
                if error.dedupe_key == key:
                    return error
            return None

    def contains(self, error: CapturedError) -> bool:
        """Check whether ``error`` itself is still a live entry."""
        with self._lock:
            return any(existing is error for existing in self._errors)

    def ingest(
        self,
        message: str | None,
        stack_trace: str | None = "",
        severity: Severity = Severity.ERROR,
    ) -> CapturedError | None:
        """Record one error event.

        Args:
            message: Raw error message
            stack_trace: Raw stack trace (may be empty)
            severity: Severity classification

        Returns:
            The new entry, or None if an identical event is already live
        """
        with self._lock:
            error = self._ingest_locked(message, stack_trace, severity)

        if error is not None:
            self._notify_captured(error)
        return error

    def reconcile(self, console_messages: Iterable[str]) -> tuple[int, int]:
        """Synchronise with a snapshot of the host console.

        Compile errors whose message is no longer on the console are
        removed; runtime errors are kept. Console messages not yet stored
        are ingested with an empty trace and severity ERROR. Observers of
        list changes are notified once at the end.

        Args:
            console_messages: Error-like messages currently on the console

        Returns:
            (removed, added) counts
        """
        current = set(console_messages)
        added: list[CapturedError] = []

        with self._lock:
            removed = self._remove_resolved_locked(current)
            for message in sorted(current):
                error = self._ingest_locked(message, "", Severity.ERROR)
                if error is not None:
                    added.append(error)

        for error in added:
            self._notify_captured(error)

        log.info("errors_reconciled", removed=removed, added=len(added), total=len(self))
        self._notify_changed()
        return removed, len(added)

    def clear(self) -> None:
        """Drop every entry. No notification is emitted."""
        with self._lock:
            self._errors.clear()
            self._keys.clear()
        log.debug("errors_cleared")

    def mark_analyzed(self, error: CapturedError, result: AnalysisResult) -> bool:
        """Attach an analysis result to a live entry.

        Returns:
            False if the entry was evicted or cleared in the meantime
        """
        with self._lock:
            if not any(existing is error for existing in self._errors):
                log.debug("analysis_target_gone", message=error.summary)
                return False
            error.analysis_result = result
            error.is_analyzed = True
            return True

    def subscribe_captured(self, callback: CapturedCallback) -> Unsubscribe:
        """Register an observer for newly captured errors."""
        return self._subscribe(self._captured_observers, callback)

    def subscribe_changed(self, callback: ChangedCallback) -> Unsubscribe:
        """Register an observer for list changes after reconciliation."""
        return self._subscribe(self._changed_observers, callback)

    def _subscribe(self, observers: list, callback: Callable) -> Unsubscribe:  # type: ignore[type-arg]
        with self._lock:
            observers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in observers:
                    observers.remove(callback)

        return unsubscribe

    def _ingest_locked(
        self,
        message: str | None,
        stack_trace: str | None,
        severity: Severity,
    ) -> CapturedError | None:
        message = message or ""
        stack_trace = stack_trace or ""
        key = dedupe_key(message, stack_trace)
        if key in self._keys:
            return None

        location = self._parser.parse(message, stack_trace)
        error = CapturedError(
            message=message,
            stack_trace=stack_trace,
            severity=severity,
            file_path=location.file_path,
            line_number=location.line_number,
            error_code=location.error_code,
            is_compile_error=location.is_compile_error,
        )
        self._errors.append(error)
        self._keys.add(key)

        while len(self._errors) > self._capacity:
            oldest = self._errors.pop(0)
            self._keys.discard(oldest.dedupe_key)
            log.debug("error_evicted", message=oldest.summary)

        log.debug(
            "error_captured",
            severity=str(severity),
            file_path=error.file_path,
            line=error.line_number,
            compile_error=error.is_compile_error,
        )
        return error

    def _remove_resolved_locked(self, current: set[str]) -> int:
        kept: list[CapturedError] = []
        removed = 0
        for error in self._errors:
            if error.is_compile_error and error.message not in current:
                self._keys.discard(error.dedupe_key)
                removed += 1
            else:
                kept.append(error)
        self._errors = kept
        return removed

    def _notify_captured(self, error: CapturedError) -> None:
        with self._lock:
            observers = list(self._captured_observers)
        for callback in observers:
            try:
                callback(error)
            except Exception as e:
                log.warning("error_observer_failed", error=str(e))

    def _notify_changed(self) -> None:
        with self._lock:
            observers = list(self._changed_observers)
        for callback in observers:
            try:
                callback()
            except Exception as e:
                log.warning("error_observer_failed", error=str(e))
