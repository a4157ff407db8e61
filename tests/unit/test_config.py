"""
Tests for configuration system.
"""

import pytest

from recipe_agent.config import (
    BrowserSettings,
    ExecutorSettings,
    Settings,
    get_settings,
    load_config,
    reset_settings,
)
from recipe_agent.exceptions import ConfigurationError


class TestSettings:
    """Test the Settings classes."""

    def test_default_settings(self):
        """Test default settings are created correctly."""
        settings = Settings()

        assert settings.browser.headless is True
        assert settings.browser.browser_type == "chromium"
        assert settings.llm.model == "gpt-4o-mini"
        assert settings.executor.wait_timeout_ms == 10000
        assert settings.executor.max_repeat_iterations == 50
        assert settings.bindings.max_age_hours == 24

    def test_merge_with_overrides(self):
        """Nested overrides keep the untouched values of a section."""
        settings = Settings()
        new_settings = settings.merge_with({
            "browser": {"headless": False},
            "executor": {"wait_timeout_ms": 500},
        })

        assert new_settings.browser.headless is False
        assert new_settings.executor.wait_timeout_ms == 500
        assert new_settings.executor.poll_interval_ms == 300
        assert new_settings.browser.browser_type == "chromium"

    def test_validation(self):
        """Test validation of section values."""
        assert BrowserSettings(timeout_ms=5000).timeout_ms == 5000

        with pytest.raises(ValueError):
            BrowserSettings(timeout_ms=100)
        with pytest.raises(ValueError):
            ExecutorSettings(extract_retries=0)

    def test_environment_variables(self, monkeypatch):
        """RECIPE_AGENT__SECTION__KEY reaches nested settings."""
        monkeypatch.setenv("RECIPE_AGENT__EXECUTOR__WAIT_TIMEOUT_MS", "2500")
        monkeypatch.setenv("RECIPE_AGENT__LLM__MODEL", "local-model")

        settings = Settings()

        assert settings.executor.wait_timeout_ms == 2500
        assert settings.llm.model == "local-model"


class TestConfigLoader:
    """Test loading settings from files."""

    def test_load_yaml(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "custom.yaml"
        path.write_text("executor:\n  max_repeat_iterations: 7\nbindings:\n  max_age_hours: 2\n")

        settings = load_config(path)

        assert settings.executor.max_repeat_iterations == 7
        assert settings.bindings.max_age_hours == 2

    def test_overrides_win_over_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "custom.yaml"
        path.write_text("llm:\n  model: from-file\n")

        settings = load_config(path, llm={"model": "from-override"})

        assert settings.llm.model == "from-override"

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Config file not found"):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "bad.yaml"
        path.write_text("executor: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_config(path)

    def test_default_location_in_cwd(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "recipe-agent.yaml").write_text("debug: true\n")

        assert load_config().debug is True

    def test_singleton(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        reset_settings()
        try:
            assert get_settings() is get_settings()
        finally:
            reset_settings()
