"""Security utilities for secret redaction and safe path handling.

This module implements fail-closed patterns. Redaction failures raise
rather than letting potentially sensitive text through, and project paths
that would escape the project root are rejected.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from error_autofixer.utils.async_helpers import FixerError, PathTraversalError

if TYPE_CHECKING:
    from collections.abc import Sequence

log = structlog.get_logger()

ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
CONTROL_CHAR_PATTERN = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


class RedactionError(FixerError):
    """Raised when secret redaction fails."""


class SecretRedactor:
    """Detects and redacts secrets from text.

    If any regex pattern fails to compile or execute, an exception is raised
    rather than allowing potentially sensitive data to pass through.

    Usage:
        redactor = SecretRedactor()
        safe_text = redactor.redact(potentially_sensitive_text)

    Attributes:
        patterns: List of compiled regex patterns to detect secrets.
        placeholder: The string to replace secrets with (default: "[REDACTED]").
    """

    DEFAULT_PATTERNS: tuple[tuple[str, str], ...] = (
        # Generic assignments
        (
            r"(?i)(api[_-]?key|secret|token|password|credential)\s*[=:]\s*[\"']?[\w-]{16,}",
            "Generic secret",
        ),
        # Google
        (r"AIza[0-9A-Za-z\-_]{35}", "Google API key"),
        (r"ya29\.[0-9A-Za-z\-_]+", "Google OAuth access token"),
        (r"GOCSPX-[a-zA-Z0-9_-]+", "Google OAuth client secret"),
        # Query-string credentials (``?key=...``)
        (r"(?i)([?&]key=)[^&\s]+", "URL key parameter"),
        # Bearer tokens
        (r"(?i)bearer\s+[a-z0-9._~+/=-]{16,}", "Bearer token"),
        # OpenAI / Anthropic
        (r"sk-[a-zA-Z0-9]{48}", "OpenAI legacy API key"),
        (r"sk-ant-[\w-]{40,}", "Anthropic API key"),
        # Private keys
        (
            r"-----BEGIN (?:RSA |EC |DSA |OPENSSH )?PRIVATE KEY-----",
            "Private key header",
        ),
    )

    def __init__(
        self,
        placeholder: str = "[REDACTED]",
        custom_patterns: Sequence[tuple[str, str]] | None = None,
    ) -> None:
        """Initialize the SecretRedactor.

        Args:
            placeholder: String to replace detected secrets with.
            custom_patterns: Additional (pattern, name) tuples to detect.

        Raises:
            RedactionError: If any pattern fails to compile.
        """
        self.placeholder = placeholder
        self._pattern_names: dict[re.Pattern[str], str] = {}

        all_patterns = list(self.DEFAULT_PATTERNS)
        if custom_patterns:
            all_patterns.extend(custom_patterns)

        try:
            for pattern_str, name in all_patterns:
                compiled = re.compile(pattern_str)
                self._pattern_names[compiled] = name
        except re.error as e:
            msg = f"Failed to compile secret pattern '{pattern_str}': {e}"
            log.error("pattern_compilation_failed", pattern=pattern_str, error=str(e))
            raise RedactionError(msg) from e

    @property
    def patterns(self) -> list[re.Pattern[str]]:
        """Return the list of compiled patterns."""
        return list(self._pattern_names.keys())

    def redact(self, text: str) -> str:
        """Redact all secrets from the given text.

        Args:
            text: The text to scan and redact secrets from.

        Returns:
            The text with all detected secrets replaced with placeholder.

        Raises:
            RedactionError: If redaction fails for any reason.
        """
        if not text:
            return text

        try:
            result = text
            for pattern in self._pattern_names:
                result = pattern.sub(self.placeholder, result)
            return result
        except Exception as e:
            msg = f"Redaction failed: {e}"
            log.error("redaction_failed", error=str(e))
            raise RedactionError(msg) from e

    def has_secrets(self, text: str) -> bool:
        """Check if text contains any secrets."""
        if not text:
            return False

        try:
            return any(pattern.search(text) for pattern in self._pattern_names)
        except Exception as e:
            msg = f"Secret check failed: {e}"
            log.error("has_secrets_check_failed", error=str(e))
            raise RedactionError(msg) from e


def resolve_project_path(project_root: Path, file_path: str) -> Path:
    """Resolve a project-relative path to an absolute location.

    Absolute paths are accepted only when they point inside the project root.

    Args:
        project_root: Root directory of the project.
        file_path: Path as reported by a log line or an analysis result.

    Returns:
        Absolute, resolved path inside ``project_root``.

    Raises:
        PathTraversalError: If the path escapes the project root or cannot be
            resolved (for example, it contains a NUL byte).
    """
    if "\x00" in file_path:
        raise PathTraversalError(f"Invalid file path: {file_path!r}")

    root = project_root.resolve()
    normalized = os.path.normpath(file_path.strip().replace("\\", "/"))

    candidate = Path(normalized)
    if not candidate.is_absolute():
        if normalized.startswith(".."):
            raise PathTraversalError(f"Invalid file path: {file_path}")
        candidate = root / candidate

    try:
        full_path = candidate.resolve()
    except (OSError, ValueError, RuntimeError) as e:
        raise PathTraversalError(f"Cannot resolve file path {file_path!r}: {e}") from None

    try:
        full_path.relative_to(root)
    except ValueError:
        raise PathTraversalError(f"Path outside project root: {file_path}") from None

    return full_path


def strip_control_sequences(text: str) -> str:
    """Remove ANSI escape sequences and control characters from text.

    Build tools colour their output; a coloured diagnostic would otherwise
    carry the escape codes into the parsed file path. Newlines and tabs
    are kept.
    """
    if not text:
        return text

    text = ANSI_ESCAPE_PATTERN.sub("", text)
    return CONTROL_CHAR_PATTERN.sub("", text)
