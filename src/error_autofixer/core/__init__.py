"""Core business logic components.

This module exports the main business logic classes:
- ErrorFixer: Composition root that coordinates all components
- ErrorParser: Extracts file/line/code locations from error text
- ErrorStore: Deduplicating, bounded history of captured errors
- ErrorCache: Fingerprint-keyed, persisted cache of analysis results
- SourceReader: Reads source files referenced by errors
- FilePatcher: Applies single-file literal patches
"""

from error_autofixer.core.diff_engine import compute_diff, diff_stats, render_diff
from error_autofixer.core.error_cache import ErrorCache, fingerprint
from error_autofixer.core.error_parser import ErrorParser
from error_autofixer.core.error_store import ErrorStore
from error_autofixer.core.fixer import ErrorFixer, create_fixer
from error_autofixer.core.patcher import FilePatcher
from error_autofixer.core.settings import FixerSettings
from error_autofixer.core.source_reader import SourceContext, SourceReader

__all__ = [
    "ErrorCache",
    "ErrorFixer",
    "ErrorParser",
    "ErrorStore",
    "FilePatcher",
    "FixerSettings",
    "SourceContext",
    "SourceReader",
    "compute_diff",
    "create_fixer",
    "diff_stats",
    "fingerprint",
    "render_diff",
]
