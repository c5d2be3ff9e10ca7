"""Single-file literal patch application.

This module implements the FilePatcher class that applies a suggested
patch by exact substring replacement. Line endings are normalized for the
comparison and the file's CRLF style is restored on write. No fuzzy
matching is attempted.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass
from pathlib import Path

import structlog

from error_autofixer.models.analysis import AnalysisResult, PatchInfo
from error_autofixer.models.patch import PatchOutcome
from error_autofixer.utils.async_helpers import PathTraversalError
from error_autofixer.utils.security import resolve_project_path

log = structlog.get_logger()

MSG_NOT_FIXABLE = "The analysis result is not fixable."
MSG_NO_PATCH = "The analysis result carries no patch."
MSG_NO_FILE = "The patch has no target file path."
MSG_INCOMPLETE = "The patch is incomplete: original and fixed code are both required."
MSG_NOT_FOUND = (
    "The original code block was not found in the current file. "
    "The file may already be modified or the suggestion may be inaccurate."
)


def normalize_line_endings(text: str) -> str:
    """Convert CRLF and lone CR to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


@dataclass(frozen=True)
class _PatchTarget:
    """A validated patch together with the file content it applies to."""

    file: str
    path: Path
    content: str
    patch: PatchInfo


class FilePatcher:
    """Applies AnalysisResult patches to files under a project root.

    Every failure is reported as a PatchOutcome with a distinct message;
    the file is written only on success.

    Example:
        patcher = FilePatcher(Path("/work/game"))
        print(patcher.preview(result))
        outcome = patcher.apply_patch(result)
    """

    def __init__(self, project_root: Path) -> None:
        """Initialize the FilePatcher.

        Args:
            project_root: Directory that patch file paths are relative to
        """
        self._project_root = project_root

    def apply_patch(self, result: AnalysisResult | None) -> PatchOutcome:
        """Apply the patch carried by ``result``.

        Args:
            result: Analysis result with a fixable patch

        Returns:
            PatchOutcome describing success or the precondition that failed
        """
        target = self._prepare(result)
        if isinstance(target, PatchOutcome):
            return target

        patched = self._patched_content(target.content, target.patch.original, target.patch.fixed)
        if patched is None:
            log.info("patch_original_not_found", file_path=target.file)
            return PatchOutcome(success=False, message=MSG_NOT_FOUND, file_path=str(target.path))

        try:
            target.path.write_text(patched, encoding="utf-8", newline="")
        except OSError as e:
            log.error("patch_write_failed", file_path=target.file, error=str(e))
            return PatchOutcome(
                success=False, message=f"Failed to write file: {e}", file_path=str(target.path)
            )

        log.info("patch_applied", file_path=target.file)
        return PatchOutcome(
            success=True,
            message=f"Patch applied successfully: {target.file}",
            file_path=str(target.path),
        )

    def preview(self, result: AnalysisResult | None) -> str | None:
        """Render the change ``apply_patch`` would make, without writing.

        Returns:
            Unified diff of the whole file, or None if the patch cannot apply
        """
        target = self._prepare(result)
        if isinstance(target, PatchOutcome):
            return None

        patched = self._patched_content(target.content, target.patch.original, target.patch.fixed)
        if patched is None:
            return None

        diff = difflib.unified_diff(
            normalize_line_endings(target.content).splitlines(keepends=True),
            normalize_line_endings(patched).splitlines(keepends=True),
            fromfile=f"a/{target.file}",
            tofile=f"b/{target.file}",
        )
        return "".join(diff)

    def _prepare(self, result: AnalysisResult | None) -> _PatchTarget | PatchOutcome:
        """Validate preconditions and read the target file."""
        if result is None or not result.fixable:
            return PatchOutcome(success=False, message=MSG_NOT_FIXABLE)
        if result.patch is None:
            return PatchOutcome(success=False, message=MSG_NO_PATCH)
        if not result.file:
            return PatchOutcome(success=False, message=MSG_NO_FILE)
        if not result.patch.original or not result.patch.fixed:
            return PatchOutcome(success=False, message=MSG_INCOMPLETE)

        try:
            path = resolve_project_path(self._project_root, result.file)
        except PathTraversalError as e:
            log.warning("patch_path_rejected", file_path=result.file, error=str(e))
            return PatchOutcome(success=False, message=str(e))

        if not path.is_file():
            return PatchOutcome(
                success=False, message=f"File does not exist: {result.file}", file_path=str(path)
            )

        try:
            with path.open(encoding="utf-8", newline="") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            return PatchOutcome(
                success=False, message=f"Failed to read file: {e}", file_path=str(path)
            )

        return _PatchTarget(file=result.file, path=path, content=content, patch=result.patch)

    @staticmethod
    def _patched_content(content: str, original: str, fixed: str) -> str | None:
        """Replace the first occurrence of ``original``; None if absent."""
        normalized_content = normalize_line_endings(content)
        normalized_original = normalize_line_endings(original)

        if normalized_original not in normalized_content:
            return None

        patched = normalized_content.replace(
            normalized_original, normalize_line_endings(fixed), 1
        )
        if "\r\n" in content:
            patched = patched.replace("\n", "\r\n")
        return patched
