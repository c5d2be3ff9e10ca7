"""KeyValueStore backed by a single JSON file."""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
import threading
from pathlib import Path

import structlog

log = structlog.get_logger()


class JsonFileStore:
    """Flat string store persisted as one JSON object.

    The file is read on first access. Every write replaces the file
    atomically (temp file in the same directory, then ``os.replace``), so
    a crash never leaves a half-written store behind. A missing file is an
    empty store; an unreadable one is logged and treated as empty.

    Example:
        store = JsonFileStore(Path(".error_autofixer/store.json"))
        store.set("error_autofixer.settings.model", "gemini-2.5-flash")
    """

    def __init__(self, path: Path) -> None:
        """Initialize the JsonFileStore.

        Args:
            path: Location of the JSON file (created on first write)
        """
        self._path = Path(path)
        self._data: dict[str, str] | None = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: str | None = None) -> str | None:
        with self._lock:
            return self._load().get(key, default)

    def set(self, key: str, value: str) -> None:
        """Store a value and rewrite the file.

        The in-memory view changes only once the file was written.

        Raises:
            OSError: If the file cannot be written
        """
        with self._lock:
            data = dict(self._load())
            data[key] = value
            self._write(data)
            self._data = data

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key not in data:
                return
            remaining = {k: v for k, v in data.items() if k != key}
            self._write(remaining)
            self._data = remaining

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._load()

    def keys(self) -> list[str]:
        """Return all stored keys."""
        with self._lock:
            return list(self._load())

    def _load(self) -> dict[str, str]:
        if self._data is not None:
            return self._data

        self._data = {}
        if not self._path.exists():
            return self._data

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            log.warning("store_load_failed", path=str(self._path), error=str(e))
            return self._data

        if not isinstance(raw, dict):
            log.warning("store_malformed", path=str(self._path))
            return self._data

        self._data = {str(k): v for k, v in raw.items() if isinstance(v, str)}
        log.debug("store_loaded", path=str(self._path), keys=len(self._data))
        return self._data

    def _write(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        except Exception:
            with contextlib.suppress(OSError):
                os.unlink(tmp_path)
            raise
