"""Tests for FixerSettings."""

import pytest

from error_autofixer.adapters.storage.memory import MemoryStore
from error_autofixer.config.schema import CaptureConfig, FixerConfig, GeminiConfig
from error_autofixer.core.settings import API_KEY, AUTO_CAPTURE, MODEL_NAME, FixerSettings


class TestApiKey:
    """Test credential settings."""

    def test_falls_back_to_config(self, memory_store: MemoryStore) -> None:
        """Test the configured key when nothing is stored."""
        settings = FixerSettings(memory_store, FixerConfig(gemini=GeminiConfig(api_key="from-config")))

        assert settings.api_key == "from-config"
        assert settings.has_api_key is True

    def test_stored_key_wins(self, memory_store: MemoryStore) -> None:
        """Test that a saved key overrides the configuration."""
        settings = FixerSettings(memory_store, FixerConfig(gemini=GeminiConfig(api_key="from-config")))

        settings.set_api_key("  stored  ")

        assert settings.api_key == "stored"
        assert memory_store.get(API_KEY) == "stored"

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_empty_value_removes_key(self, memory_store: MemoryStore, value: str | None) -> None:
        """Test that clearing the key deletes it."""
        settings = FixerSettings(memory_store, FixerConfig(gemini=GeminiConfig(api_key=None)))
        settings.set_api_key("stored")

        settings.set_api_key(value)

        assert memory_store.contains(API_KEY) is False
        assert settings.api_key is None
        assert settings.has_api_key is False


class TestAutoCapture:
    """Test the auto-capture flag."""

    def test_default_from_config(self, memory_store: MemoryStore) -> None:
        """Test the configured default."""
        settings = FixerSettings(memory_store, FixerConfig(capture=CaptureConfig(auto_capture=False)))

        assert settings.auto_capture is False

    def test_round_trip(self, memory_store: MemoryStore) -> None:
        """Test persisting both values."""
        settings = FixerSettings(memory_store)

        settings.set_auto_capture(False)
        assert settings.auto_capture is False
        assert memory_store.get(AUTO_CAPTURE) == "false"

        settings.set_auto_capture(True)
        assert settings.auto_capture is True


class TestModelName:
    """Test model selection."""

    def test_default_model(self, memory_store: MemoryStore) -> None:
        """Test the configured model."""
        assert FixerSettings(memory_store).model_name == GeminiConfig().model

    def test_set_model(self, memory_store: MemoryStore) -> None:
        """Test saving a model name."""
        settings = FixerSettings(memory_store)

        settings.set_model_name("gemini-2.5-pro")

        assert settings.model_name == "gemini-2.5-pro"
        assert memory_store.get(MODEL_NAME) == "gemini-2.5-pro"

    @pytest.mark.parametrize("name", ["", "models/gemini", "gemini:generateContent"])
    def test_invalid_model_rejected(self, memory_store: MemoryStore, name: str) -> None:
        """Test names that would break the endpoint path."""
        settings = FixerSettings(memory_store)

        with pytest.raises(ValueError):
            settings.set_model_name(name)

        assert memory_store.contains(MODEL_NAME) is False
