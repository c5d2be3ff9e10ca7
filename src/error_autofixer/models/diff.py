"""Data models for line-level diffs."""

from dataclasses import dataclass
from enum import StrEnum


class DiffLineType(StrEnum):
    """Kind of a diff line."""

    CONTEXT = "context"  # Present in both blocks
    REMOVED = "removed"  # Only in the original block
    ADDED = "added"  # Only in the replacement block


@dataclass(frozen=True)
class DiffLine:
    """One line of an edit script."""

    type: DiffLineType
    text: str
    line_number: int | None = None  # Original position, Context/Removed only

    @property
    def prefix(self) -> str:
        """Marker used when rendering the line."""
        if self.type == DiffLineType.REMOVED:
            return "- "
        if self.type == DiffLineType.ADDED:
            return "+ "
        return "  "
