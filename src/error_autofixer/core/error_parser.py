"""Parser that extracts source locations from error messages.

This module implements the ErrorParser class. It recognises, in strict
priority order:
- Compiler diagnostics in the message: ``path.ext(line,col): error CODE``
- Runtime trace frames in the stack trace: ``(at path.ext:line)``
- Runtime trace frames in the message itself
- Python traceback frames in the stack trace: ``File "path", line N``

The first match wins. Parsing is a pure function of its inputs.
"""

from __future__ import annotations

import re

import structlog

from error_autofixer.models.error import LocationInfo

log = structlog.get_logger()


class ErrorParser:
    """Parser for error messages and stack traces.

    Responsibilities:
    - Classify an error as a compile error (compiler diagnostic with a code)
    - Extract file path, line number and diagnostic code
    - Never raise on malformed input; unknown input yields no location

    Example:
        parser = ErrorParser()
        info = parser.parse("Assets/Foo.cs(10,3): error CS1002: ; expected", "")
        print(info.file_path, info.line_number, info.error_code)
    """

    COMPILE_ERROR_PATTERN = re.compile(
        r"(.+\.\w+)\((\d+),\d+\):\s*error\s+([A-Za-z]+\d+)"
    )
    COMPILE_WARNING_PATTERN = re.compile(
        r"(.+\.\w+)\((\d+),\d+\):\s*warning\s+([A-Za-z]+\d+)"
    )
    RUNTIME_FRAME_PATTERN = re.compile(r"\(at\s+(.+?\.\w+):(\d+)\)")
    PYTHON_FRAME_PATTERN = re.compile(r'^\s*File "([^"]+)", line (\d+)', re.MULTILINE)

    def parse(self, message: str | None, stack_trace: str | None = None) -> LocationInfo:
        """Extract location info from a message and its stack trace.

        Args:
            message: Raw error message (may be empty)
            stack_trace: Raw stack trace (may be empty)

        Returns:
            LocationInfo; ``has_file_info`` is False when nothing matched
        """
        try:
            return self._parse(message or "", stack_trace or "")
        except (ValueError, IndexError) as e:
            log.warning("error_parse_failed", error=str(e))
            return LocationInfo()

    def is_compile_error(self, message: str | None) -> bool:
        """Check whether a message is a compiler error diagnostic."""
        return bool(message) and self.COMPILE_ERROR_PATTERN.search(message) is not None

    def is_compile_warning(self, message: str | None) -> bool:
        """Check whether a message is a compiler warning diagnostic."""
        return bool(message) and self.COMPILE_WARNING_PATTERN.search(message) is not None

    def _parse(self, message: str, stack_trace: str) -> LocationInfo:
        # Compiler messages are authoritative and self-contained
        if message:
            compile_match = self.COMPILE_ERROR_PATTERN.search(message)
            if compile_match:
                return LocationInfo(
                    file_path=compile_match.group(1).strip(),
                    line_number=int(compile_match.group(2)),
                    error_code=compile_match.group(3),
                    is_compile_error=True,
                )

        if stack_trace:
            runtime_match = self.RUNTIME_FRAME_PATTERN.search(stack_trace)
            if runtime_match:
                return self._runtime_location(runtime_match)

        # Some callers pass the trace text as the message
        if message:
            runtime_match = self.RUNTIME_FRAME_PATTERN.search(message)
            if runtime_match:
                return self._runtime_location(runtime_match)

        if stack_trace:
            frames = self.PYTHON_FRAME_PATTERN.findall(stack_trace)
            if frames:
                # Most recent call last
                file_path, line_number = frames[-1]
                return LocationInfo(
                    file_path=file_path.strip(),
                    line_number=int(line_number),
                    is_compile_error=False,
                )

        return LocationInfo()

    @staticmethod
    def _runtime_location(match: re.Match[str]) -> LocationInfo:
        return LocationInfo(
            file_path=match.group(1).strip(),
            line_number=int(match.group(2)),
            is_compile_error=False,
        )
