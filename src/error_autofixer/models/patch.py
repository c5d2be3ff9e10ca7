"""Data models for patch application."""

from dataclasses import dataclass


@dataclass(frozen=True)
class PatchOutcome:
    """Result of applying (or previewing) a patch."""

    success: bool
    message: str
    file_path: str | None = None  # Resolved absolute path, when known
