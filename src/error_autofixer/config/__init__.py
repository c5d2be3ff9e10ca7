"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    CacheConfig,
    CaptureConfig,
    FileLoggingConfig,
    FixerConfig,
    GeminiConfig,
    LoggingConfig,
    SourceConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "FixerConfig",
    # Sections
    "CacheConfig",
    "CaptureConfig",
    "FileLoggingConfig",
    "GeminiConfig",
    "LoggingConfig",
    "SourceConfig",
]
