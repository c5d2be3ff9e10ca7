"""Tests for ErrorCache."""

import json
from unittest.mock import MagicMock

import pytest

from error_autofixer.adapters.storage.memory import MemoryStore
from error_autofixer.core.error_cache import CACHE_KEYS, CACHE_PREFIX, ErrorCache, fingerprint
from error_autofixer.models.analysis import AnalysisResult, Confidence


def _result(diagnosis: str) -> AnalysisResult:
    return AnalysisResult(
        fixable=False,
        confidence=Confidence.MEDIUM,
        diagnosis=diagnosis,
        file=None,
        line=0,
        solution="n/a",
    )


class TestFingerprint:
    """Test the message fingerprint."""

    def test_stable_and_hex(self) -> None:
        """Test that fingerprints are deterministic 8-digit hex."""
        key = fingerprint("NullReferenceException")

        assert key == fingerprint("NullReferenceException")
        assert len(key) == 8
        int(key, 16)

    def test_distinct_messages(self) -> None:
        """Test that different messages get different keys."""
        assert fingerprint("a") != fingerprint("b")


class TestGetPut:
    """Test lookups and insertions."""

    def test_round_trip_with_patch(self, memory_store: MemoryStore, fixable_result: AnalysisResult) -> None:
        """Test that a stored result comes back equal, patch included."""
        cache = ErrorCache(memory_store)

        cache.put("error X", fixable_result)

        assert cache.get("error X") == fixable_result

    def test_round_trip_without_patch(
        self, memory_store: MemoryStore, unfixable_result: AnalysisResult
    ) -> None:
        """Test that an absent patch stays absent."""
        cache = ErrorCache(memory_store)

        cache.put("error Y", unfixable_result)
        result = cache.get("error Y")

        assert result == unfixable_result
        assert result is not None and result.patch is None

    def test_shared_by_identical_messages(
        self, memory_store: MemoryStore, fixable_result: AnalysisResult
    ) -> None:
        """Test that only the message text keys the cache."""
        cache = ErrorCache(memory_store)
        cache.put("X", fixable_result)

        # A second error with the same message but a different trace
        assert cache.get("X") == fixable_result

    def test_miss(self, memory_store: MemoryStore) -> None:
        """Test a missing key."""
        assert ErrorCache(memory_store).get("unknown") is None

    def test_empty_inputs_ignored(self, memory_store: MemoryStore, fixable_result: AnalysisResult) -> None:
        """Test that empty messages and results are not stored."""
        cache = ErrorCache(memory_store)

        cache.put("", fixable_result)
        cache.put("msg", None)

        assert cache.count == 0
        assert cache.get("") is None

    def test_overwrite_same_key(self, memory_store: MemoryStore) -> None:
        """Test that re-putting a key replaces the value without growing."""
        cache = ErrorCache(memory_store)

        cache.put("k", _result("first"))
        cache.put("k", _result("second"))

        assert cache.count == 1
        result = cache.get("k")
        assert result is not None and result.diagnosis == "second"


class TestPersistence:
    """Test persistence across instances."""

    def test_entries_survive_restart(self, memory_store: MemoryStore, fixable_result: AnalysisResult) -> None:
        """Test that a new cache over the same store sees old entries."""
        ErrorCache(memory_store).put("persisted", fixable_result)

        reloaded = ErrorCache(memory_store)

        assert reloaded.count == 1
        assert reloaded.get("persisted") == fixable_result

    def test_key_index_written(self, memory_store: MemoryStore, fixable_result: AnalysisResult) -> None:
        """Test the persisted layout."""
        ErrorCache(memory_store).put("persisted", fixable_result)
        key = fingerprint("persisted")

        assert json.loads(memory_store.get(CACHE_KEYS) or "[]") == [key]
        assert memory_store.contains(CACHE_PREFIX + key)

    def test_lazy_load_happens_once(self, fixable_result: AnalysisResult) -> None:
        """Test that the store is read only on first access."""
        backing = MemoryStore()
        ErrorCache(backing).put("m", fixable_result)
        store = MagicMock(wraps=backing)
        cache = ErrorCache(store)

        cache.get("m")
        calls_after_first = store.get.call_count
        cache.get("m")
        cache.get("other")

        assert calls_after_first == 2  # index + one entry
        assert store.get.call_count == calls_after_first

    def test_corrupt_entry_treated_as_absent(self, memory_store: MemoryStore, fixable_result: AnalysisResult) -> None:
        """Test that an unreadable entry does not break loading."""
        ErrorCache(memory_store).put("good", fixable_result)
        bad_key = fingerprint("bad")
        memory_store.set(CACHE_PREFIX + bad_key, "{not json")
        memory_store.set(CACHE_KEYS, json.dumps([fingerprint("good"), bad_key]))

        cache = ErrorCache(memory_store)

        assert cache.get("bad") is None
        assert cache.get("good") == fixable_result
        assert cache.count == 1

    def test_corrupt_index_treated_as_empty(self, memory_store: MemoryStore) -> None:
        """Test a malformed key index."""
        memory_store.set(CACHE_KEYS, "{{{")

        assert ErrorCache(memory_store).count == 0

    def test_store_write_failure_is_swallowed(self, fixable_result: AnalysisResult) -> None:
        """Test that persistence errors never reach the caller."""
        store = MagicMock()
        store.get.return_value = None
        store.set.side_effect = OSError("disk full")
        cache = ErrorCache(store)

        cache.put("m", fixable_result)

        assert cache.get("m") == fixable_result


class TestEviction:
    """Test capacity handling."""

    def test_capacity_bound(self, memory_store: MemoryStore) -> None:
        """Test that the cache never exceeds max_entries."""
        cache = ErrorCache(memory_store, max_entries=3)

        for i in range(5):
            cache.put(f"message {i}", _result(str(i)))

        assert cache.count == 3
        assert cache.get("message 4") is not None

    def test_evicted_entry_removed_from_store(self, memory_store: MemoryStore) -> None:
        """Test that eviction deletes the persisted entry too.

        Which entry is evicted is unspecified.
        """
        cache = ErrorCache(memory_store, max_entries=2)
        messages = ["one", "two", "three"]
        for message in messages:
            cache.put(message, _result(message))

        persisted = [m for m in messages if memory_store.contains(CACHE_PREFIX + fingerprint(m))]
        index = json.loads(memory_store.get(CACHE_KEYS) or "[]")

        assert len(persisted) == 2
        assert "three" in persisted
        assert sorted(index) == sorted(fingerprint(m) for m in persisted)

    def test_invalid_capacity(self, memory_store: MemoryStore) -> None:
        """Test that capacity must be positive."""
        with pytest.raises(ValueError):
            ErrorCache(memory_store, max_entries=0)


class TestClearAll:
    """Test cache clearing."""

    def test_clear_all(self, memory_store: MemoryStore, fixable_result: AnalysisResult) -> None:
        """Test that every entry and the index are deleted."""
        cache = ErrorCache(memory_store)
        cache.put("a", fixable_result)
        cache.put("b", fixable_result)

        cache.clear_all()

        assert cache.count == 0
        assert len(cache) == 0
        assert memory_store.keys() == []
        assert ErrorCache(memory_store).count == 0

    def test_clear_all_before_load(self, memory_store: MemoryStore, fixable_result: AnalysisResult) -> None:
        """Test clearing persisted entries that were never loaded."""
        ErrorCache(memory_store).put("a", fixable_result)

        ErrorCache(memory_store).clear_all()

        assert memory_store.keys() == []

    def test_clear_all_deletes_each_key_once(self, fixable_result: AnalysisResult) -> None:
        """Test that clearing is not reported as eviction."""
        store = MagicMock(wraps=MemoryStore())
        cache = ErrorCache(store)
        cache.put("a", fixable_result)
        cache.put("b", fixable_result)

        cache.clear_all()

        deleted = [call.args[0] for call in store.delete.call_args_list]
        assert sorted(deleted) == sorted(
            [CACHE_PREFIX + fingerprint("a"), CACHE_PREFIX + fingerprint("b"), CACHE_KEYS]
        )

    def test_usable_after_clear(self, memory_store: MemoryStore, fixable_result: AnalysisResult) -> None:
        """Test that capacity and persistence still work after clearing."""
        cache = ErrorCache(memory_store, max_entries=1)
        cache.put("a", fixable_result)
        cache.clear_all()

        cache.put("b", fixable_result)
        cache.put("c", fixable_result)

        assert cache.count == 1
        assert ErrorCache(memory_store).get("c") == fixable_result
