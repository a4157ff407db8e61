"""
Exceptions module - Custom exception hierarchy.

Defines every error the recipe engine raises, grouped by the collaborator
that produces it: the page driver, the LLM provider and the engine itself.
"""

from recipe_agent.exceptions.base import (
    RecipeAgentError,
    ConfigurationError,
)
from recipe_agent.exceptions.browser import (
    BrowserError,
    BrowserLaunchError,
    PageError,
    NavigationError,
    ElementNotFoundError,
    WaitTimeoutError,
)
from recipe_agent.exceptions.llm import (
    LLMError,
    LLMConnectionError,
    LLMAuthenticationError,
    RateLimitError,
    InvalidResponseError,
)
from recipe_agent.exceptions.recipe import (
    RecipeError,
    RecipeValidationError,
    CommandError,
    BindingMissingError,
    UnknownCommandError,
    BindingError,
    BindingValidationError,
    BindingDiscoveryError,
    StaleBindingsError,
)

__all__ = [
    # Base exceptions
    "RecipeAgentError",
    "ConfigurationError",
    # Browser exceptions
    "BrowserError",
    "BrowserLaunchError",
    "PageError",
    "NavigationError",
    "ElementNotFoundError",
    "WaitTimeoutError",
    # LLM exceptions
    "LLMError",
    "LLMConnectionError",
    "LLMAuthenticationError",
    "RateLimitError",
    "InvalidResponseError",
    # Recipe exceptions
    "RecipeError",
    "RecipeValidationError",
    "CommandError",
    "BindingMissingError",
    "UnknownCommandError",
    "BindingError",
    "BindingValidationError",
    "BindingDiscoveryError",
    "StaleBindingsError",
]
