"""
Configuration module - Centralized settings management.

Usage:
    from recipe_agent.config import get_settings, load_config
    
    settings = get_settings()
    settings = load_config(browser={"headless": False})

Environment Variables:
    RECIPE_AGENT__LLM__MODEL=gpt-4o-mini
    RECIPE_AGENT__LLM__BASE_URL=https://api.openai.com
    RECIPE_AGENT__EXECUTOR__WAIT_TIMEOUT_MS=15000
    OPENAI_API_KEY=sk-...
"""

from recipe_agent.config.settings import (
    Settings,
    LLMSettings,
    BrowserSettings,
    ExecutorSettings,
    BindingSettings,
    LoggingSettings,
)
from recipe_agent.config.loader import ConfigLoader, load_config

# Global settings singleton
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).
    
    Call reset_settings() to force a reload.
    """
    global _settings
    if _settings is None:
        _settings = load_config()
    return _settings


def reset_settings() -> None:
    """Reset the global settings (forces reload on next get_settings())."""
    global _settings
    _settings = None


__all__ = [
    "Settings",
    "LLMSettings",
    "BrowserSettings",
    "ExecutorSettings",
    "BindingSettings",
    "LoggingSettings",
    "ConfigLoader",
    "load_config",
    "get_settings",
    "reset_settings",
]
