"""Source file access for analysis requests.

This module implements the SourceReader class that reads the file an error
points at, either completely or as a numbered excerpt around the error line.
Paths are resolved against the project root and may not escape it.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog

from error_autofixer.config.schema import SourceConfig
from error_autofixer.models.error import CapturedError
from error_autofixer.utils.async_helpers import PathTraversalError, SourceReadError
from error_autofixer.utils.security import resolve_project_path

log = structlog.get_logger()


@dataclass(frozen=True)
class SourceContext:
    """Source code surrounding an error location."""

    file_exists: bool
    full_source: str | None = None  # None when the file exceeds the size limit
    surrounding_code: str = ""
    error_line: str | None = None
    total_lines: int = 0


class SourceReader:
    """Reads source files referenced by captured errors.

    Example:
        reader = SourceReader(SourceConfig(project_root=Path("/work/game")))
        context = reader.read_context("Assets/Scripts/Player.cs", 42)
        print(context.surrounding_code)
    """

    ERROR_MARKER = ">>>"

    def __init__(self, config: SourceConfig | None = None) -> None:
        """Initialize the SourceReader.

        Args:
            config: Source configuration (project root, limits)
        """
        self._config = config or SourceConfig()
        self._project_root = self._config.project_root

    @property
    def project_root(self) -> Path:
        """Root directory that file paths are resolved against."""
        return self._project_root

    def resolve(self, file_path: str) -> Path:
        """Map a project-relative path to an absolute one.

        Raises:
            PathTraversalError: If the path escapes the project root
        """
        return resolve_project_path(self._project_root, file_path)

    def read_context(self, file_path: str, line_number: int) -> SourceContext:
        """Read a file and extract the code around ``line_number``.

        Args:
            file_path: Project-relative path of the file
            line_number: 1-based line of the error (0 if unknown)

        Returns:
            SourceContext; ``file_exists`` is False if the file is missing
            or outside the project

        Raises:
            SourceReadError: If the file exists but cannot be read
        """
        try:
            full_path = self.resolve(file_path)
        except PathTraversalError as e:
            log.warning("source_path_rejected", file_path=file_path, error=str(e))
            return SourceContext(file_exists=False)

        if not full_path.is_file():
            log.debug("source_file_not_found", file_path=file_path)
            return SourceContext(file_exists=False)

        try:
            size = full_path.stat().st_size
            content = full_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise SourceReadError(f"Failed to read {file_path}: {e}") from e

        lines = content.splitlines()
        full_source = content if size <= self._config.max_file_size else None
        if full_source is None:
            log.info("source_file_too_large", file_path=file_path, size=size)

        line_index = line_number - 1
        error_line = lines[line_index] if 0 <= line_index < len(lines) else None

        return SourceContext(
            file_exists=True,
            full_source=full_source,
            surrounding_code=self._extract_surrounding_code(lines, line_index),
            error_line=error_line,
            total_lines=len(lines),
        )

    def read_full(self, file_path: str) -> str | None:
        """Read a whole file.

        Returns:
            File content, or None if the file is missing, outside the
            project, unreadable or larger than the size limit
        """
        try:
            full_path = self.resolve(file_path)
            if not full_path.is_file():
                return None
            if full_path.stat().st_size > self._config.max_file_size:
                return None
            return full_path.read_text(encoding="utf-8", errors="replace")
        except (OSError, PathTraversalError) as e:
            log.warning("source_read_failed", file_path=file_path, error=str(e))
            return None

    def source_for(self, error: CapturedError) -> str | None:
        """Pick the source text to send along with an error.

        The full file is preferred; large files fall back to the excerpt.
        """
        if not error.file_path:
            return None

        try:
            context = self.read_context(error.file_path, error.line_number)
        except SourceReadError as e:
            log.warning("source_context_unavailable", file_path=error.file_path, error=str(e))
            return None

        if not context.file_exists:
            return None

        return context.full_source or context.surrounding_code or None

    def _extract_surrounding_code(self, lines: list[str], error_index: int) -> str:
        """Number the lines around ``error_index`` and mark the error line."""
        if not lines:
            return ""

        context_lines = self._config.context_lines
        start = max(0, error_index - context_lines)
        end = min(len(lines) - 1, error_index + context_lines)

        parts = []
        for i in range(start, end + 1):
            marker = self.ERROR_MARKER if i == error_index else "   "
            parts.append(f"{marker} {i + 1:4}: {lines[i]}")

        return "\n".join(parts) + "\n" if parts else ""
