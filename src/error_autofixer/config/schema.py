"""Pydantic models for configuration schema."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def validate_model_name(name: str) -> str:
    """Return ``name`` if it can be used in the generateContent endpoint path."""
    if not name or "/" in name or ":" in name:
        raise ValueError(f"Invalid model name: {name!r}")
    return name


class GeminiConfig(BaseModel):
    """Remote analysis API configuration."""

    api_key: str | None = None
    model: str = "gemini-2.5-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta/models"
    request_timeout: float = Field(30.0, gt=0, le=600, description="Per-attempt timeout in seconds")
    max_retries: int = Field(2, ge=0, le=10, description="Retries after a rate-limit response")
    retry_delay: float = Field(3.0, ge=0.0, le=300.0, description="Fixed backoff in seconds")
    temperature: float = Field(0.1, ge=0.0, le=2.0)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Validate the endpoint URL scheme."""
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"Invalid API base URL: {v}")
        return v.rstrip("/")

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        """Reject model names that would break the endpoint path."""
        return validate_model_name(v)


class CaptureConfig(BaseModel):
    """Error capture configuration."""

    auto_capture: bool = True
    max_errors: int = Field(100, ge=1, le=10000)


class CacheConfig(BaseModel):
    """Analysis result cache configuration."""

    max_entries: int = Field(100, ge=1, le=10000)
    store_path: Path = Path(".error_autofixer/store.json")


class SourceConfig(BaseModel):
    """Source file access configuration."""

    project_root: Path = Path(".")
    context_lines: int = Field(10, ge=1, le=200)
    max_file_size: int = Field(500_000, ge=1, description="Full-source limit in bytes")


class FileLoggingConfig(BaseModel):
    """File logging configuration."""

    enabled: bool = False
    path: Path = Path(".error_autofixer/autofixer.log")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "console"] = "console"
    file: FileLoggingConfig = FileLoggingConfig()


class FixerConfig(BaseSettings):
    """Root configuration for error-autofixer."""

    gemini: GeminiConfig = GeminiConfig()
    capture: CaptureConfig = CaptureConfig()
    cache: CacheConfig = CacheConfig()
    source: SourceConfig = SourceConfig()
    logging: LoggingConfig = LoggingConfig()

    model_config = SettingsConfigDict(
        env_prefix="ERROR_AUTOFIXER_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )
