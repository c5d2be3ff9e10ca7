"""ErrorFixer composition root.

This module implements the ErrorFixer class that owns every stateful
component (error store, result cache, persisted settings, analysis client)
and exposes the operations of the triage pipeline:
- Live capture from a LogSource and reconciliation against the console
- Cached remote analysis with failures reported as values
- Patch preview and application

All store and cache mutation happens on the event loop that called
``start()``. Log callbacks arriving from other threads are handed over to
that loop with ``call_soon_threadsafe``.
"""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Any

import structlog

from error_autofixer.config.schema import FixerConfig
from error_autofixer.core.diff_engine import compute_diff
from error_autofixer.core.error_cache import ErrorCache
from error_autofixer.core.error_parser import ErrorParser
from error_autofixer.core.error_store import ErrorStore
from error_autofixer.core.patcher import FilePatcher
from error_autofixer.core.settings import FixerSettings
from error_autofixer.core.source_reader import SourceReader
from error_autofixer.interfaces.host import ConsoleUnavailableError
from error_autofixer.models.analysis import AnalysisOutcome, AnalysisResult, FailureKind
from error_autofixer.models.diff import DiffLine
from error_autofixer.models.error import CapturedError, Severity
from error_autofixer.models.patch import PatchOutcome
from error_autofixer.utils.async_helpers import (
    MISSING_KEY_MESSAGE,
    AnalysisError,
    ApiError,
    AuthenticationError,
    ConfigurationError,
    MalformedResponseError,
    NetworkError,
    RateLimitError,
    TimeoutError,
)

if TYPE_CHECKING:
    import httpx

    from error_autofixer.interfaces.host import ConsoleReader, LogSource, Unsubscribe
    from error_autofixer.interfaces.llm import AnalysisProvider
    from error_autofixer.interfaces.store import KeyValueStore

log = structlog.get_logger()

CANCELLED_MESSAGE = "Analysis was cancelled."

_FAILURE_KINDS: tuple[tuple[type[Exception], FailureKind], ...] = (
    (ConfigurationError, FailureKind.CONFIGURATION),
    (RateLimitError, FailureKind.RATE_LIMITED),
    (AuthenticationError, FailureKind.INVALID_CREDENTIAL),
    (ApiError, FailureKind.HTTP),
    (NetworkError, FailureKind.NETWORK),
    (TimeoutError, FailureKind.NETWORK),
    (MalformedResponseError, FailureKind.MALFORMED_RESPONSE),
)


def classify_failure(exc: Exception) -> FailureKind:
    """Map an analysis exception to the failure kind reported to callers."""
    for exc_type, kind in _FAILURE_KINDS:
        if isinstance(exc, exc_type):
            return kind
    return FailureKind.HTTP


class ErrorFixer:
    """Context object wiring the triage pipeline together.

    Responsibilities:
    - Subscribe to the log source and feed the error store
    - Reconcile the store with console snapshots on demand and after builds
    - Run analyses (cache, then source, then remote client) concurrently,
      coalescing duplicate requests for the same error
    - Preview and apply patches

    Example:
        fixer = create_fixer(config, console_reader=BuildLogConsoleReader(log_path))
        await fixer.start()
        outcome = await fixer.analyze(fixer.store.errors[0])
        if outcome.success and outcome.result.fixable:
            print(fixer.preview_patch(outcome.result))
        await fixer.stop()
    """

    DEFAULT_SHUTDOWN_TIMEOUT = 30

    def __init__(
        self,
        config: FixerConfig,
        settings: FixerSettings,
        store: ErrorStore,
        cache: ErrorCache,
        client: AnalysisProvider,
        source_reader: SourceReader,
        patcher: FilePatcher,
        log_source: LogSource | None = None,
        console_reader: ConsoleReader | None = None,
    ) -> None:
        """Initialize the ErrorFixer.

        Args:
            config: Application configuration
            settings: Persisted user settings
            store: Captured error store
            cache: Analysis result cache
            client: Remote analysis provider
            source_reader: Reader for referenced source files
            patcher: Patch applier
            log_source: Live log stream (capture disabled if None)
            console_reader: Console snapshot reader (reconciliation skipped if None)
        """
        self._config = config
        self._settings = settings
        self._store = store
        self._cache = cache
        self._client = client
        self._source_reader = source_reader
        self._patcher = patcher
        self._log_source = log_source
        self._console_reader = console_reader

        self._loop: asyncio.AbstractEventLoop | None = None
        self._owner_thread: int | None = None
        self._unsubscribe_log: Unsubscribe | None = None
        self._in_flight: dict[tuple[str, str], asyncio.Task[AnalysisOutcome]] = {}
        self._running = False

    @property
    def config(self) -> FixerConfig:
        return self._config

    @property
    def settings(self) -> FixerSettings:
        return self._settings

    @property
    def store(self) -> ErrorStore:
        return self._store

    @property
    def cache(self) -> ErrorCache:
        return self._cache

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_capturing(self) -> bool:
        """Return True while subscribed to the log source."""
        return self._unsubscribe_log is not None

    @property
    def is_requesting(self) -> bool:
        """Return True while any analysis request is in flight."""
        return bool(self._in_flight)

    async def start(self) -> None:
        """Take ownership of the running loop and begin capturing.

        Capture starts only when auto-capture is enabled. An initial
        reconciliation picks up errors already on the console.
        """
        if self._running:
            log.warning("fixer_already_running")
            return

        self._loop = asyncio.get_running_loop()
        self._owner_thread = threading.get_ident()
        self._running = True

        if self._settings.auto_capture and self._log_source is not None:
            self.start_capture()

        self.reconcile()
        log.info("fixer_started", capturing=self.is_capturing, errors=len(self._store))

    async def stop(self) -> None:
        """Stop capturing, wait for in-flight analyses and close the client."""
        if not self._running:
            log.warning("fixer_not_running")
            return

        log.info("fixer_stopping", active_requests=len(self._in_flight))
        self.stop_capture()
        await self._wait_for_requests()

        try:
            await self._client.close()
        except Exception as e:
            log.warning("client_close_error", error=str(e))

        self._running = False
        self._loop = None
        self._owner_thread = None
        log.info("fixer_stopped")

    def start_capture(self) -> bool:
        """Subscribe to the log source.

        Returns:
            True if capturing (already or now), False without a log source
        """
        if self._unsubscribe_log is not None:
            return True
        if self._log_source is None:
            log.warning("log_source_unavailable")
            return False

        self._unsubscribe_log = self._log_source.subscribe(self._on_log_entry)
        log.info("capture_started")
        return True

    def stop_capture(self) -> None:
        """Unsubscribe from the log source."""
        if self._unsubscribe_log is None:
            return
        self._unsubscribe_log()
        self._unsubscribe_log = None
        log.info("capture_stopped")

    def reconcile(self) -> bool:
        """Synchronise the store with the console.

        If the console cannot be read, nothing is removed.

        Returns:
            True if a snapshot was read and applied
        """
        if self._console_reader is None:
            log.debug("reconcile_skipped", reason="no_console_reader")
            return False

        try:
            messages = self._console_reader.read_error_messages()
        except ConsoleUnavailableError as e:
            log.info("reconcile_skipped", reason="console_unavailable", error=str(e))
            return False
        except Exception as e:
            log.warning("console_read_failed", error=str(e))
            return False

        self._store.reconcile(messages)
        return True

    def notify_build_finished(self) -> None:
        """Schedule a reconciliation after a build completed.

        Safe to call from any thread.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            self.reconcile()
            return
        loop.call_soon_threadsafe(self.reconcile)

    async def analyze(self, error: CapturedError) -> AnalysisOutcome:
        """Diagnose an error.

        Cached results are returned without a network call. A request for
        an error that is already being analyzed joins the running request.

        Args:
            error: Error to analyze

        Returns:
            AnalysisOutcome; failures are reported, never raised
        """
        key = error.dedupe_key
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(self._analyze(error), name=f"analyze_{error.summary[:40]}")
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._forget_request(key, done))
        else:
            log.debug("analysis_request_joined", message=error.summary)

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            log.info("analysis_cancelled", message=error.summary)
            return AnalysisOutcome.failed(FailureKind.CANCELLED, CANCELLED_MESSAGE)

    def diff_for(self, result: AnalysisResult) -> list[DiffLine]:
        """Line diff of a result's patch, numbered from the reported line."""
        if result.patch is None:
            return []
        return compute_diff(result.patch.original, result.patch.fixed, result.line)

    def preview_patch(self, result: AnalysisResult) -> str | None:
        """Unified diff of the file change a patch would make."""
        return self._patcher.preview(result)

    def apply_patch(self, result: AnalysisResult) -> PatchOutcome:
        """Apply a result's patch to its file."""
        outcome = self._patcher.apply_patch(result)
        log.info("patch_outcome", success=outcome.success, file_path=outcome.file_path)
        return outcome

    async def test_credential(self, api_key: str | None = None) -> tuple[bool, str]:
        """Validate ``api_key`` (or the configured key) with one API call."""
        key = api_key or self._settings.api_key
        if not key:
            return False, MISSING_KEY_MESSAGE
        return await self._client.test_credential(key)

    def set_api_key(self, api_key: str | None) -> None:
        """Persist an API key and use it for subsequent analyses."""
        self._settings.set_api_key(api_key)
        self._client.set_api_key(self._settings.api_key)

    def clear_errors(self) -> None:
        self._store.clear()

    def clear_cache(self) -> None:
        self._cache.clear_all()

    def status(self) -> dict[str, Any]:
        """Summary of the current state."""
        errors = self._store.errors
        return {
            "errors": len(errors),
            "compile_errors": sum(1 for error in errors if error.is_compile_error),
            "analyzed": sum(1 for error in errors if error.is_analyzed),
            "cached_results": self._cache.count,
            "capturing": self.is_capturing,
            "requesting": self.is_requesting,
            "api_key_configured": self._settings.has_api_key,
            "model": self._client.model_name,
        }

    async def _analyze(self, error: CapturedError) -> AnalysisOutcome:
        cached = self._cache.get(error.message)
        if cached is not None:
            self._store.mark_analyzed(error, cached)
            log.info("analysis_from_cache", message=error.summary)
            return AnalysisOutcome.ok(cached, from_cache=True)

        source = self._source_reader.source_for(error)

        try:
            result = await self._client.analyze_error(error, source)
        except (AnalysisError, ConfigurationError) as e:
            kind = classify_failure(e)
            log.warning("analysis_failed", failure=kind.value, error_type=type(e).__name__)
            return AnalysisOutcome.failed(kind, str(e))

        self._cache.put(error.message, result)
        self._store.mark_analyzed(error, result)
        return AnalysisOutcome.ok(result)

    def _forget_request(self, key: tuple[str, str], task: asyncio.Task[AnalysisOutcome]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    def _on_log_entry(self, message: str, stack_trace: str, severity: Severity) -> None:
        """LogSource callback; may run on any thread."""
        loop = self._loop
        if loop is None or threading.get_ident() == self._owner_thread:
            self._store.ingest(message, stack_trace, severity)
            return

        try:
            loop.call_soon_threadsafe(self._store.ingest, message, stack_trace, severity)
        except RuntimeError:
            # Loop already closed
            log.debug("log_entry_dropped", reason="loop_closed")

    async def _wait_for_requests(self) -> None:
        """Wait for in-flight analyses with timeout, then cancel the rest."""
        if not self._in_flight:
            return

        tasks = set(self._in_flight.values())
        log.info("waiting_for_requests", count=len(tasks))

        done, pending = await asyncio.wait(tasks, timeout=self.DEFAULT_SHUTDOWN_TIMEOUT)
        if pending:
            log.warning("cancelling_pending_requests", count=len(pending))
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        log.info("requests_completed", completed=len(done), cancelled=len(pending))


def create_fixer(
    config: FixerConfig,
    log_source: LogSource | None = None,
    console_reader: ConsoleReader | None = None,
    kv_store: KeyValueStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ErrorFixer:
    """Factory function to create an ErrorFixer with all dependencies.

    Args:
        config: Application configuration
        log_source: Live log stream, if any
        console_reader: Console snapshot reader, if any
        kv_store: Persistent store (JSON file at ``cache.store_path`` if None)
        transport: httpx transport for the analysis client, for testing

    Returns:
        Configured ErrorFixer instance
    """
    # Import adapters here to avoid circular imports
    from error_autofixer.adapters.llm.gemini import GeminiAdapter
    from error_autofixer.adapters.storage.json_file import JsonFileStore

    if kv_store is None:
        store_path = config.cache.store_path
        if not store_path.is_absolute():
            store_path = config.source.project_root / store_path
        kv_store = JsonFileStore(store_path)

    settings = FixerSettings(kv_store, config)
    parser = ErrorParser()

    client = GeminiAdapter(
        config.gemini,
        api_key=settings.api_key,
        model=settings.model_name,
        transport=transport,
    )

    return ErrorFixer(
        config=config,
        settings=settings,
        store=ErrorStore(parser, capacity=config.capture.max_errors),
        cache=ErrorCache(kv_store, max_entries=config.cache.max_entries),
        client=client,
        source_reader=SourceReader(config.source),
        patcher=FilePatcher(config.source.project_root),
        log_source=log_source,
        console_reader=console_reader,
    )
