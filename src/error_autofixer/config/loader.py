"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path

import yaml

from .schema import FixerConfig


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    Args:
        text: Text containing ${VAR_NAME} patterns

    Returns:
        Text with environment variables substituted

    Raises:
        ValueError: If a referenced environment variable is not found
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(f"Environment variable {var_name} not found")
        return value

    return re.sub(r"\$\{([^}]+)\}", replacer, text)


def load_config(path: Path | None = None) -> FixerConfig:
    """
    Load configuration from YAML file with environment variable substitution.

    Every setting has a default, so ``path=None`` yields a configuration
    built from defaults and ``ERROR_AUTOFIXER_*`` environment variables.

    Args:
        path: Path to YAML configuration file, or None

    Returns:
        Validated FixerConfig instance

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        ValueError: If environment variables are missing or config is invalid
        ValidationError: If config doesn't match schema
    """
    if path is None:
        config = FixerConfig()
        validate_config(config)
        return config

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open() as f:
        raw_yaml = f.read()

    yaml_with_env = substitute_env_vars(raw_yaml)

    config_dict = yaml.safe_load(yaml_with_env) or {}
    if not isinstance(config_dict, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")

    config = FixerConfig.model_validate(config_dict)

    validate_config(config)

    return config


def validate_config(config: FixerConfig) -> None:
    """
    Perform additional cross-field validation.

    Args:
        config: Configuration to validate

    Raises:
        ValueError: If settings contradict each other
    """
    if config.source.project_root.exists() and not config.source.project_root.is_dir():
        raise ValueError(f"Project root is not a directory: {config.source.project_root}")

    store_path = config.cache.store_path
    if not store_path.is_absolute():
        store_path = config.source.project_root / store_path
    if store_path.is_dir():
        raise ValueError(f"Cache store path is a directory: {store_path}")
