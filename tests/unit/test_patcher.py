"""Tests for FilePatcher."""

from dataclasses import replace
from pathlib import Path

import pytest

from error_autofixer.core.patcher import (
    MSG_INCOMPLETE,
    MSG_NO_FILE,
    MSG_NO_PATCH,
    MSG_NOT_FIXABLE,
    MSG_NOT_FOUND,
    FilePatcher,
    normalize_line_endings,
)
from error_autofixer.models.analysis import AnalysisResult, Confidence, PatchInfo

PLAYER = "Assets/Scripts/Player.cs"


@pytest.fixture
def patcher(project_root: Path) -> FilePatcher:
    """Create a FilePatcher for the temporary project."""
    return FilePatcher(project_root)


def _player_bytes(project_root: Path) -> bytes:
    return (project_root / PLAYER).read_bytes()


class TestApplyPatch:
    """Test successful patch application."""

    def test_applies_patch(
        self, patcher: FilePatcher, project_root: Path, fixable_result: AnalysisResult
    ) -> None:
        """Test the happy path."""
        outcome = patcher.apply_patch(fixable_result)

        assert outcome.success is True
        assert outcome.message == f"Patch applied successfully: {PLAYER}"
        assert outcome.file_path == str((project_root / PLAYER).resolve())
        content = (project_root / PLAYER).read_text(encoding="utf-8")
        assert "        int speed = 5;\n" in content
        assert "int speed = 5\n" not in content

    def test_only_first_occurrence_replaced(self, tmp_path: Path) -> None:
        """Test that repeated blocks are patched once."""
        (tmp_path / "dup.py").write_text("x = 1\nx = 1\n", encoding="utf-8")
        result = AnalysisResult(
            fixable=True,
            confidence=Confidence.HIGH,
            diagnosis="d",
            file="dup.py",
            line=1,
            solution="s",
            patch=PatchInfo(original="x = 1", fixed="x = 2"),
        )

        outcome = FilePatcher(tmp_path).apply_patch(result)

        assert outcome.success is True
        assert (tmp_path / "dup.py").read_text(encoding="utf-8") == "x = 2\nx = 1\n"

    def test_crlf_file_keeps_crlf(self, project_root: Path, fixable_result: AnalysisResult) -> None:
        """Test that a CRLF file matches an LF patch and stays CRLF."""
        path = project_root / PLAYER
        crlf = path.read_text(encoding="utf-8").replace("\n", "\r\n")
        path.write_bytes(crlf.encode("utf-8"))

        outcome = FilePatcher(project_root).apply_patch(fixable_result)

        data = path.read_bytes()
        assert outcome.success is True
        assert b"        int speed = 5;\r\n" in data
        assert data.count(b"\r\n") == crlf.count("\r\n")
        assert b"\n" not in data.replace(b"\r\n", b"")

    def test_crlf_patch_on_lf_file(self, patcher: FilePatcher, project_root: Path) -> None:
        """Test that patch line endings do not need to match the file."""
        result = AnalysisResult(
            fixable=True,
            confidence=Confidence.MEDIUM,
            diagnosis="d",
            file=PLAYER,
            line=7,
            solution="s",
            patch=PatchInfo(
                original="        int speed = 5\r\n        transform",
                fixed="        int speed = 5;\r\n        transform",
            ),
        )

        outcome = patcher.apply_patch(result)

        assert outcome.success is True
        assert b"\r" not in _player_bytes(project_root)


class TestPreconditions:
    """Test that every rejected patch leaves the file untouched."""

    def test_not_fixable(
        self, patcher: FilePatcher, project_root: Path, unfixable_result: AnalysisResult
    ) -> None:
        """Test a non-fixable result."""
        before = _player_bytes(project_root)

        outcome = patcher.apply_patch(unfixable_result)

        assert (outcome.success, outcome.message) == (False, MSG_NOT_FIXABLE)
        assert _player_bytes(project_root) == before

    def test_none_result(self, patcher: FilePatcher) -> None:
        """Test a missing result."""
        assert patcher.apply_patch(None).message == MSG_NOT_FIXABLE

    def test_no_patch(self, patcher: FilePatcher, fixable_result: AnalysisResult) -> None:
        """Test a fixable result without a patch."""
        outcome = patcher.apply_patch(replace(fixable_result, patch=None))

        assert outcome.message == MSG_NO_PATCH

    def test_no_file(self, patcher: FilePatcher, fixable_result: AnalysisResult) -> None:
        """Test a patch without a target path."""
        outcome = patcher.apply_patch(replace(fixable_result, file=None))

        assert outcome.message == MSG_NO_FILE

    @pytest.mark.parametrize(
        "patch",
        [PatchInfo(original="", fixed="x"), PatchInfo(original="x", fixed="")],
    )
    def test_incomplete_patch(
        self, patcher: FilePatcher, fixable_result: AnalysisResult, patch: PatchInfo
    ) -> None:
        """Test patches missing one side."""
        outcome = patcher.apply_patch(replace(fixable_result, patch=patch))

        assert outcome.message == MSG_INCOMPLETE

    def test_missing_file(self, patcher: FilePatcher, fixable_result: AnalysisResult) -> None:
        """Test a target that does not exist."""
        outcome = patcher.apply_patch(replace(fixable_result, file="Assets/Missing.cs"))

        assert outcome.success is False
        assert outcome.message == "File does not exist: Assets/Missing.cs"

    def test_path_traversal(self, patcher: FilePatcher, fixable_result: AnalysisResult) -> None:
        """Test that paths escaping the project are refused."""
        outcome = patcher.apply_patch(replace(fixable_result, file="../outside.cs"))

        assert outcome.success is False
        assert outcome.file_path is None

    def test_nul_byte_in_path(self, patcher: FilePatcher, fixable_result: AnalysisResult) -> None:
        """Test that an unusable file name is reported as a failed outcome."""
        result = replace(fixable_result, file="Assets/a\x00b.cs")

        outcome = patcher.apply_patch(result)

        assert outcome.success is False
        assert outcome.message.startswith("Invalid file path")
        assert patcher.preview(result) is None

    def test_original_not_found(
        self, patcher: FilePatcher, project_root: Path, fixable_result: AnalysisResult
    ) -> None:
        """Test that a stale patch leaves the file byte-identical."""
        before = _player_bytes(project_root)
        stale = replace(fixable_result, patch=PatchInfo(original="int jump = 2", fixed="int jump = 3;"))

        outcome = patcher.apply_patch(stale)

        assert (outcome.success, outcome.message) == (False, MSG_NOT_FOUND)
        assert _player_bytes(project_root) == before

    def test_patch_is_not_reapplied(
        self, patcher: FilePatcher, fixable_result: AnalysisResult
    ) -> None:
        """Test that a second apply finds the original gone."""
        assert patcher.apply_patch(fixable_result).success is True

        assert patcher.apply_patch(fixable_result).message == MSG_NOT_FOUND

    def test_messages_are_distinct(self) -> None:
        """Test that each failure reason has its own message."""
        messages = [MSG_NOT_FIXABLE, MSG_NO_PATCH, MSG_NO_FILE, MSG_INCOMPLETE, MSG_NOT_FOUND]

        assert len(set(messages)) == len(messages)


class TestPreview:
    """Test patch previews."""

    def test_preview_is_unified_diff(
        self, patcher: FilePatcher, project_root: Path, fixable_result: AnalysisResult
    ) -> None:
        """Test the preview content and that nothing is written."""
        before = _player_bytes(project_root)

        preview = patcher.preview(fixable_result)

        assert preview is not None
        assert preview.startswith(f"--- a/{PLAYER}\n+++ b/{PLAYER}\n")
        assert "-        int speed = 5\n" in preview
        assert "+        int speed = 5;\n" in preview
        assert _player_bytes(project_root) == before

    def test_preview_unavailable(
        self, patcher: FilePatcher, unfixable_result: AnalysisResult, fixable_result: AnalysisResult
    ) -> None:
        """Test previews of patches that cannot apply."""
        stale = replace(fixable_result, patch=PatchInfo(original="missing", fixed="x"))

        assert patcher.preview(unfixable_result) is None
        assert patcher.preview(stale) is None


class TestNormalizeLineEndings:
    """Test line ending normalization."""

    def test_normalize(self) -> None:
        """Test CRLF and lone CR."""
        assert normalize_line_endings("a\r\nb\rc\n") == "a\nb\nc\n"
