"""Data models for error analysis."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class Confidence(StrEnum):
    """How sure the remote model is about its diagnosis."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class PatchInfo:
    """A single literal substitution: ``original`` is replaced by ``fixed``."""

    original: str
    fixed: str


@dataclass(frozen=True)
class AnalysisResult:
    """The triage outcome for one error.

    ``patch`` is present only when ``fixable`` is true.
    """

    fixable: bool
    confidence: Confidence
    diagnosis: str
    file: str | None
    line: int
    solution: str
    patch: PatchInfo | None = None

    def __post_init__(self) -> None:
        if not self.fixable and self.patch is not None:
            raise ValueError("patch must be absent when the result is not fixable")


class FailureKind(Enum):
    """Classification of an analysis failure."""

    CONFIGURATION = "configuration"
    RATE_LIMITED = "rate_limited"
    INVALID_CREDENTIAL = "invalid_credential"
    HTTP = "http"
    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed_response"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class AnalysisOutcome:
    """Result of an analysis request, reported as a value."""

    success: bool
    message: str
    result: AnalysisResult | None = None
    failure: FailureKind | None = None
    from_cache: bool = False

    @classmethod
    def ok(cls, result: AnalysisResult, from_cache: bool = False) -> AnalysisOutcome:
        """Build a successful outcome."""
        message = "Loaded cached analysis" if from_cache else "Analysis complete"
        return cls(success=True, message=message, result=result, from_cache=from_cache)

    @classmethod
    def failed(cls, failure: FailureKind, message: str) -> AnalysisOutcome:
        """Build a failed outcome."""
        return cls(success=False, message=message, failure=failure)


# Pydantic models validating the JSON schema shared by the remote API and the cache
class PatchPayload(BaseModel):
    """Validated ``patch`` object."""

    original: str = ""
    fixed: str = ""


class AnalysisPayload(BaseModel):
    """Validated analysis JSON.

    Schema: fixable, confidence, diagnosis, file, line, solution,
    patch{original, fixed}.
    """

    fixable: bool
    confidence: Literal["high", "medium", "low"] = "low"
    diagnosis: str = Field(default="", max_length=20000)
    file: str | None = None
    line: int = Field(default=0, ge=0)
    solution: str = Field(default="", max_length=20000)
    patch: PatchPayload | None = None

    @field_validator("confidence", mode="before")
    @classmethod
    def normalize_confidence(cls, v: Any) -> Any:
        """Accept ``"High"`` and friends."""
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("line", mode="before")
    @classmethod
    def normalize_line(cls, v: Any) -> Any:
        """Treat a null line number as unknown."""
        return 0 if v is None else v

    @field_validator("file", mode="before")
    @classmethod
    def normalize_file(cls, v: Any) -> Any:
        """Treat an empty file path as absent."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def drop_patch_unless_fixable(self) -> AnalysisPayload:
        """Enforce that a patch only accompanies a fixable result."""
        if not self.fixable:
            self.patch = None
        return self

    def to_result(self) -> AnalysisResult:
        """Convert to the AnalysisResult dataclass."""
        patch = None
        if self.patch is not None:
            patch = PatchInfo(original=self.patch.original, fixed=self.patch.fixed)

        return AnalysisResult(
            fixable=self.fixable,
            confidence=Confidence(self.confidence),
            diagnosis=self.diagnosis,
            file=self.file,
            line=self.line,
            solution=self.solution,
            patch=patch,
        )

    @classmethod
    def from_result(cls, result: AnalysisResult) -> AnalysisPayload:
        """Build a payload from an AnalysisResult (for persistence)."""
        patch = None
        if result.patch is not None:
            patch = PatchPayload(original=result.patch.original, fixed=result.patch.fixed)

        return cls(
            fixable=result.fixable,
            confidence=result.confidence.value,
            diagnosis=result.diagnosis,
            file=result.file,
            line=result.line,
            solution=result.solution,
            patch=patch,
        )
