"""Concrete implementations of provider interfaces."""

from .host.build_log import BuildLogConsoleReader
from .host.logging_source import LoggingLogSource
from .llm.gemini import GeminiAdapter
from .storage.json_file import JsonFileStore
from .storage.memory import MemoryStore

__all__ = [
    "BuildLogConsoleReader",
    "GeminiAdapter",
    "JsonFileStore",
    "LoggingLogSource",
    "MemoryStore",
]
