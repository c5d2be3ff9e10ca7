"""Protocol definitions for pluggable adapters."""

from .host import ConsoleReader, ConsoleUnavailableError, LogCallback, LogSource, Unsubscribe
from .llm import AnalysisProvider
from .store import KeyValueStore

__all__ = [
    "AnalysisProvider",
    "ConsoleReader",
    "ConsoleUnavailableError",
    "KeyValueStore",
    "LogCallback",
    "LogSource",
    "Unsubscribe",
]
