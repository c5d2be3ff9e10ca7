"""Abstract interface for persistent key-value storage."""

from typing import Protocol


class KeyValueStore(Protocol):
    """Flat string store without transactions.

    Used for cache entries, the cache key index and user settings.
    """

    def get(self, key: str, default: str | None = None) -> str | None:
        """Return the value stored under ``key`` or ``default``."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""
        ...

    def contains(self, key: str) -> bool:
        """Return True if ``key`` has a stored value."""
        ...
