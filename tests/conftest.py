"""Shared test fixtures for error-autofixer."""

from pathlib import Path

import pytest

from error_autofixer.adapters.storage.memory import MemoryStore
from error_autofixer.config.schema import FixerConfig, GeminiConfig, SourceConfig
from error_autofixer.models.analysis import AnalysisResult, Confidence, PatchInfo

COMPILE_ERROR = "Assets/Scripts/Player.cs(10,3): error CS1002: ; expected"
RUNTIME_TRACE = (
    "Player.Update () (at Assets/Scripts/Player.cs:42)\n"
    "UnityEngine.Object.Instantiate () (at Assets/Scripts/Spawner.cs:7)"
)

PLAYER_SOURCE = """using UnityEngine;

public class Player : MonoBehaviour
{
    void Update()
    {
        int speed = 5
        transform.Translate(speed, 0, 0);
    }
}
"""


@pytest.fixture
def memory_store() -> MemoryStore:
    """Return an empty in-memory key-value store."""
    return MemoryStore()


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Create a project tree containing Assets/Scripts/Player.cs."""
    scripts = tmp_path / "Assets" / "Scripts"
    scripts.mkdir(parents=True)
    (scripts / "Player.cs").write_text(PLAYER_SOURCE, encoding="utf-8")
    return tmp_path


@pytest.fixture
def config(project_root: Path) -> FixerConfig:
    """Return a config rooted at the temporary project, without retry delay."""
    return FixerConfig(
        gemini=GeminiConfig(api_key="AIzaTestKeyNotReal", retry_delay=0.0, max_retries=2),
        source=SourceConfig(project_root=project_root),
    )


@pytest.fixture
def fixable_result() -> AnalysisResult:
    """Return a fixable analysis result matching PLAYER_SOURCE."""
    return AnalysisResult(
        fixable=True,
        confidence=Confidence.HIGH,
        diagnosis="Missing semicolon after the variable declaration.",
        file="Assets/Scripts/Player.cs",
        line=7,
        solution="Add a semicolon at the end of line 7.",
        patch=PatchInfo(original="        int speed = 5\n", fixed="        int speed = 5;\n"),
    )


@pytest.fixture
def unfixable_result() -> AnalysisResult:
    """Return a non-fixable analysis result."""
    return AnalysisResult(
        fixable=False,
        confidence=Confidence.LOW,
        diagnosis="The prefab reference is missing in the scene.",
        file=None,
        line=0,
        solution="Assign the prefab in the inspector.",
    )
