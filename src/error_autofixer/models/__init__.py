"""Data models and transfer objects."""

from .analysis import (
    AnalysisOutcome,
    AnalysisPayload,
    AnalysisResult,
    Confidence,
    FailureKind,
    PatchInfo,
    PatchPayload,
)
from .diff import DiffLine, DiffLineType
from .error import CapturedError, LocationInfo, Severity, dedupe_key, truncate_message
from .patch import PatchOutcome

__all__ = [
    # Error models
    "CapturedError",
    "LocationInfo",
    "Severity",
    "dedupe_key",
    "truncate_message",
    # Analysis models
    "AnalysisOutcome",
    "AnalysisPayload",
    "AnalysisResult",
    "Confidence",
    "FailureKind",
    "PatchInfo",
    "PatchPayload",
    # Diff models
    "DiffLine",
    "DiffLineType",
    # Patch models
    "PatchOutcome",
]
