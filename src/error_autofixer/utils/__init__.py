"""Utility functions and helpers.

- async_helpers: exception taxonomy, retry and timeout helpers
- logging: structured logging with secret sanitization
- security: secret redaction and project path resolution
"""

from error_autofixer.utils.async_helpers import (
    AnalysisError,
    ApiError,
    AuthenticationError,
    ConfigurationError,
    FixerError,
    INVALID_KEY_MESSAGE,
    MALFORMED_MESSAGE,
    MISSING_KEY_MESSAGE,
    MalformedResponseError,
    NetworkError,
    PathTraversalError,
    RATE_LIMIT_MESSAGE,
    RateLimitError,
    SourceReadError,
    TimeoutError,
    create_retry,
    with_timeout,
)
from error_autofixer.utils.logging import (
    LogFormat,
    LogLevel,
    configure_logging,
)
from error_autofixer.utils.security import (
    RedactionError,
    SecretRedactor,
    resolve_project_path,
    strip_control_sequences,
)

__all__ = [
    # Errors
    "AnalysisError",
    "ApiError",
    "AuthenticationError",
    "ConfigurationError",
    "FixerError",
    "INVALID_KEY_MESSAGE",
    "MALFORMED_MESSAGE",
    "MISSING_KEY_MESSAGE",
    "RATE_LIMIT_MESSAGE",
    # Logging
    "LogFormat",
    "LogLevel",
    "MalformedResponseError",
    "NetworkError",
    "PathTraversalError",
    "RateLimitError",
    # Security
    "RedactionError",
    "SecretRedactor",
    "SourceReadError",
    "TimeoutError",
    "configure_logging",
    "create_retry",
    "resolve_project_path",
    "strip_control_sequences",
    "with_timeout",
]
