"""
Tests for custom exceptions.
"""

import pytest

from recipe_agent.exceptions import (
    BindingDiscoveryError,
    BindingError,
    BindingMissingError,
    BindingValidationError,
    BrowserError,
    CommandError,
    ConfigurationError,
    ElementNotFoundError,
    InvalidResponseError,
    LLMConnectionError,
    LLMError,
    NavigationError,
    RateLimitError,
    RecipeAgentError,
    RecipeError,
    StaleBindingsError,
    UnknownCommandError,
    WaitTimeoutError,
)


class TestRecipeAgentError:
    """Test the base RecipeAgentError exception."""

    def test_create_base_error(self):
        error = RecipeAgentError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.details == {}

    def test_details_in_str(self):
        error = RecipeAgentError("Bad value", {"field": "x"})
        assert str(error) == "Bad value - Details: {'field': 'x'}"

    @pytest.mark.parametrize("cls", [
        ConfigurationError, BrowserError, LLMError, RecipeError, BindingError,
    ])
    def test_families_share_base(self, cls):
        assert issubclass(cls, RecipeAgentError)


class TestBrowserErrors:
    """Test page-driver exceptions."""

    def test_element_not_found(self):
        error = ElementNotFoundError("Element not found: #submit", selector="#submit")
        assert error.selector == "#submit"
        assert isinstance(error, BrowserError)

    def test_navigation_error(self):
        error = NavigationError("Navigation failed", url="https://x.test")
        assert error.details == {"url": "https://x.test"}

    def test_wait_timeout(self):
        error = WaitTimeoutError("Timeout waiting for condition", 500, '{"exists": ".x"}')
        assert error.timeout_ms == 500
        assert error.condition == '{"exists": ".x"}'


class TestLLMErrors:
    """Test LLM exceptions."""

    def test_rate_limit(self):
        error = RateLimitError("Slow down", retry_after=3)
        assert error.retry_after == 3
        assert isinstance(error, LLMError)

    def test_invalid_response_truncates_raw(self):
        error = InvalidResponseError("Bad body", raw_response="x" * 1000)
        assert len(error.details["raw_response"]) == 500
        assert len(error.raw_response) == 1000

    def test_connection_error(self):
        assert issubclass(LLMConnectionError, LLMError)


class TestRecipeErrors:
    """Test recipe and binding exceptions."""

    def test_unknown_command(self):
        error = UnknownCommandError("FLY")
        assert error.message == "Unknown command type: FLY"
        assert error.command == "FLY"
        assert isinstance(error, CommandError)

    def test_binding_missing(self):
        error = BindingMissingError("SEARCH_BOX not defined in bindings", "SEARCH_BOX", "GO_TO")
        assert error.binding == "SEARCH_BOX"
        assert error.command == "GO_TO"

    def test_stale_bindings(self):
        error = StaleBindingsError("site", expected=2, actual=3)
        assert "expected version 2, found 3" in error.message
        assert error.details == {"binding_id": "site", "expected": 2, "actual": 3}

    def test_binding_validation(self):
        error = BindingValidationError("Invalid bindings", ["LIST selector is required"])
        assert error.errors == ["LIST selector is required"]
        assert BindingValidationError("Invalid").details == {}

    def test_discovery_error(self):
        assert issubclass(BindingDiscoveryError, BindingError)
