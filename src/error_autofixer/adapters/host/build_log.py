"""ConsoleReader over a compiler or build output file."""

from __future__ import annotations

from pathlib import Path

import structlog

from ...core.error_parser import ErrorParser
from ...interfaces.host import ConsoleUnavailableError
from ...utils.security import strip_control_sequences

log = structlog.get_logger()


class BuildLogConsoleReader:
    """Reads the error lines of a build log as the current console state.

    Colour codes and control characters are stripped from every line. A
    line counts as an error when it is a compiler error diagnostic or
    contains ``": error "``. Warnings and other output are ignored.

    Example:
        reader = BuildLogConsoleReader(Path("build.log"))
        store.reconcile(reader.read_error_messages())
    """

    ERROR_MARKER = ": error "

    def __init__(self, path: Path, parser: ErrorParser | None = None) -> None:
        """Initialize the BuildLogConsoleReader.

        Args:
            path: Build output file, rewritten by every build
            parser: Parser used to recognise compiler diagnostics
        """
        self._path = Path(path)
        self._parser = parser or ErrorParser()

    @property
    def path(self) -> Path:
        return self._path

    def read_error_messages(self) -> set[str]:
        """Return the distinct error lines of the build log.

        Raises:
            ConsoleUnavailableError: If the log does not exist or cannot be read
        """
        try:
            content = self._path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError as e:
            raise ConsoleUnavailableError(f"Build log not found: {self._path}") from e
        except OSError as e:
            raise ConsoleUnavailableError(f"Cannot read build log {self._path}: {e}") from e

        lines = (strip_control_sequences(line).strip() for line in content.splitlines())
        errors = {line for line in lines if self.is_error_line(line)}
        log.debug("build_log_read", path=str(self._path), errors=len(errors))
        return errors

    def is_error_line(self, line: str) -> bool:
        """Check whether one line of build output is an error entry."""
        line = line.strip()
        if not line:
            return False
        return self._parser.is_compile_error(line) or self.ERROR_MARKER in line
