"""User settings persisted in the key-value store.

Values written here (API key, auto-capture flag, model choice) override
the corresponding values from the configuration file. Keys live under
``error_autofixer.settings.``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from error_autofixer.config.schema import FixerConfig, validate_model_name

if TYPE_CHECKING:
    from error_autofixer.interfaces.store import KeyValueStore

log = structlog.get_logger()

SETTINGS_PREFIX = "error_autofixer.settings."
API_KEY = SETTINGS_PREFIX + "api_key"
AUTO_CAPTURE = SETTINGS_PREFIX + "auto_capture"
MODEL_NAME = SETTINGS_PREFIX + "model"


class FixerSettings:
    """Read/write access to persisted user settings."""

    def __init__(self, store: KeyValueStore, config: FixerConfig | None = None) -> None:
        """Initialize FixerSettings.

        Args:
            store: Persistent key-value store
            config: Configuration supplying defaults
        """
        self._store = store
        self._config = config or FixerConfig()

    @property
    def api_key(self) -> str | None:
        """Stored key, else the configured one."""
        return self._store.get(API_KEY) or self._config.gemini.api_key or None

    def set_api_key(self, api_key: str | None) -> None:
        """Persist an API key; an empty value removes the stored key."""
        if api_key and api_key.strip():
            self._store.set(API_KEY, api_key.strip())
            log.info("api_key_saved")
        else:
            self._store.delete(API_KEY)
            log.info("api_key_removed")

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    @property
    def auto_capture(self) -> bool:
        """Whether live log capture starts automatically (default True)."""
        raw = self._store.get(AUTO_CAPTURE)
        if raw is None:
            return self._config.capture.auto_capture
        return raw.strip().lower() == "true"

    def set_auto_capture(self, enabled: bool) -> None:
        self._store.set(AUTO_CAPTURE, "true" if enabled else "false")

    @property
    def model_name(self) -> str:
        """Stored model name, else the configured one."""
        return self._store.get(MODEL_NAME) or self._config.gemini.model

    def set_model_name(self, model: str) -> None:
        """Persist a model name.

        Raises:
            ValueError: If the name would not form a valid endpoint
        """
        validate_model_name(model)
        self._store.set(MODEL_NAME, model)
        log.info("model_saved", model=model)
