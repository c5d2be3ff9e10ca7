"""Data models for captured errors."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .analysis import AnalysisResult


class Severity(StrEnum):
    """Severity of a captured log entry."""

    ERROR = "error"
    EXCEPTION = "exception"
    ASSERT = "assert"


@dataclass(frozen=True)
class LocationInfo:
    """Source location extracted from an error message or stack trace."""

    file_path: str | None = None
    line_number: int = 0  # 0 = unknown
    error_code: str | None = None  # Compiler diagnostics only
    is_compile_error: bool = False

    @property
    def has_file_info(self) -> bool:
        """True when a file path was extracted."""
        return self.file_path is not None


@dataclass
class CapturedError:
    """One observed error occurrence.

    Mutated in place when an analysis completes; everything else is fixed
    at capture time.
    """

    message: str
    stack_trace: str = ""
    severity: Severity = Severity.ERROR
    timestamp: datetime = field(default_factory=datetime.now)
    file_path: str | None = None
    line_number: int = 0
    error_code: str | None = None
    is_compile_error: bool = False
    is_analyzed: bool = False
    analysis_result: AnalysisResult | None = None

    @property
    def dedupe_key(self) -> tuple[str, str]:
        """Identity among live entries of an ErrorStore."""
        return dedupe_key(self.message, self.stack_trace)

    @property
    def summary(self) -> str:
        """First line of the message, for listings."""
        return truncate_message(self.message, 120)


def dedupe_key(message: str | None, stack_trace: str | None) -> tuple[str, str]:
    """Build the ErrorStore identity key for a (message, trace) pair."""
    return (message or "", stack_trace or "")


def truncate_message(message: str | None, max_length: int) -> str:
    """Shorten a message to its first line or ``max_length`` characters."""
    if not message:
        return ""
    if len(message) <= max_length:
        return message

    newline_index = message.find("\n")
    if 0 < newline_index < max_length:
        return message[:newline_index] + "..."

    return message[:max_length] + "..."
