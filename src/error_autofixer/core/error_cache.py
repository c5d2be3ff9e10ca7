"""Fingerprint-keyed cache of analysis results.

Identical error messages reuse one diagnosis instead of calling the API
again. Entries are persisted to a KeyValueStore so they survive restarts:

- ``error_autofixer.cache.<fingerprint>``: one AnalysisResult as JSON
- ``error_autofixer.cache_keys``: JSON list of all known fingerprints

The in-memory view is loaded lazily, once per process lifetime.
"""

from __future__ import annotations

import json
import zlib
from collections.abc import Callable
from typing import TYPE_CHECKING

import structlog
from cachetools import Cache
from pydantic import ValidationError

from error_autofixer.models.analysis import AnalysisPayload, AnalysisResult

if TYPE_CHECKING:
    from error_autofixer.interfaces.store import KeyValueStore

log = structlog.get_logger()

CACHE_PREFIX = "error_autofixer.cache."
CACHE_KEYS = "error_autofixer.cache_keys"
DEFAULT_MAX_ENTRIES = 100


def fingerprint(error_message: str) -> str:
    """Fast, non-cryptographic key for an error message.

    Only the message text is hashed, so the same error raised from
    different call sites shares one cached diagnosis. CRC-32 is stable
    across processes, unlike ``hash()``.
    """
    return f"{zlib.crc32(error_message.encode('utf-8')):08X}"


class _EvictingCache(Cache):  # type: ignore[type-arg]
    """cachetools Cache that reports evicted keys.

    ``Cache.popitem`` removes whichever entry the underlying mapping yields
    first; no ordering guarantee is made to callers.
    """

    def __init__(self, maxsize: int, on_evict: Callable[[str], None]) -> None:
        super().__init__(maxsize=maxsize)
        self._on_evict = on_evict

    def popitem(self) -> tuple[str, AnalysisResult]:
        key, value = super().popitem()
        self._on_evict(key)
        return key, value


class ErrorCache:
    """Bounded cache of analysis results keyed by message fingerprint.

    When full, inserting a new key evicts one unspecified existing entry
    from memory and from the store. Persistence failures are logged and
    otherwise ignored; unreadable entries are treated as absent.

    Example:
        cache = ErrorCache(JsonFileStore(path))
        result = cache.get(error.message)
        if result is None:
            result = await client.analyze_error(error, source)
            cache.put(error.message, result)
    """

    def __init__(self, store: KeyValueStore, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        """Initialize the ErrorCache.

        Args:
            store: Persistent key-value store
            max_entries: Maximum number of cached results
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._store = store
        self._max_entries = max_entries
        self._memory = _EvictingCache(max_entries, on_evict=self._on_evict)
        self._loaded = False

    @property
    def max_entries(self) -> int:
        """Configured capacity."""
        return self._max_entries

    @property
    def count(self) -> int:
        """Number of cached results (triggers the lazy load)."""
        return len(self._ensure_loaded())

    def __len__(self) -> int:
        return self.count

    def get(self, error_message: str | None) -> AnalysisResult | None:
        """Look up the cached result for an error message.

        Returns:
            The cached result, or None on a miss or an empty message
        """
        if not error_message:
            return None

        key = fingerprint(error_message)
        result = self._ensure_loaded().get(key)
        log.debug("cache_hit" if result is not None else "cache_miss", key=key)
        return result

    def put(self, error_message: str | None, result: AnalysisResult | None) -> None:
        """Store a result for an error message.

        Empty messages and None results are ignored.
        """
        if not error_message or result is None:
            return

        cache = self._ensure_loaded()
        key = fingerprint(error_message)

        # Evicts through popitem when a new key would exceed capacity
        cache[key] = result
        self._save_entry(key, result)

    def clear_all(self) -> None:
        """Delete every persisted entry and the key index.

        The in-memory view is left empty but counts as loaded.
        """
        for key in set(self._read_key_index()) | set(self._memory.keys()):
            self._delete_entry(key)

        try:
            self._store.delete(CACHE_KEYS)
        except Exception as e:
            log.warning("cache_index_delete_failed", error=str(e))

        # A fresh mapping; clear() would route every key through popitem
        self._memory = _EvictingCache(self._max_entries, on_evict=self._on_evict)
        self._loaded = True
        log.info("cache_cleared")

    def _ensure_loaded(self) -> _EvictingCache:
        """Load persisted entries into memory on first use."""
        if self._loaded:
            return self._memory
        self._loaded = True

        for key in self._read_key_index():
            if len(self._memory) >= self._max_entries:
                log.warning("cache_index_exceeds_capacity", max_entries=self._max_entries)
                break

            result = self._load_entry(key)
            if result is not None:
                self._memory[key] = result

        log.debug("cache_loaded", count=len(self._memory))
        return self._memory

    def _read_key_index(self) -> list[str]:
        try:
            raw = self._store.get(CACHE_KEYS)
            if not raw:
                return []
            keys = json.loads(raw)
        except Exception as e:
            log.warning("cache_index_load_failed", error=str(e))
            return []

        if not isinstance(keys, list):
            log.warning("cache_index_malformed")
            return []
        return [key for key in keys if isinstance(key, str)]

    def _load_entry(self, key: str) -> AnalysisResult | None:
        try:
            raw = self._store.get(CACHE_PREFIX + key)
            if not raw:
                return None
            return AnalysisPayload.model_validate_json(raw).to_result()
        except (ValidationError, ValueError) as e:
            log.warning("cache_entry_corrupt", key=key, error=str(e))
            return None
        except Exception as e:
            log.warning("cache_entry_load_failed", key=key, error=str(e))
            return None

    def _save_entry(self, key: str, result: AnalysisResult) -> None:
        try:
            payload = AnalysisPayload.from_result(result)
            self._store.set(CACHE_PREFIX + key, payload.model_dump_json())
            self._save_key_index()
        except Exception as e:
            log.warning("cache_save_failed", key=key, error=str(e))

    def _save_key_index(self) -> None:
        try:
            self._store.set(CACHE_KEYS, json.dumps(list(self._memory.keys())))
        except Exception as e:
            log.warning("cache_index_save_failed", error=str(e))

    def _delete_entry(self, key: str) -> None:
        try:
            self._store.delete(CACHE_PREFIX + key)
        except Exception as e:
            log.warning("cache_entry_delete_failed", key=key, error=str(e))

    def _on_evict(self, key: str) -> None:
        log.debug("cache_evicted", key=key)
        self._delete_entry(key)
