"""
Browser and page-driver exceptions.
"""

from recipe_agent.exceptions.base import RecipeAgentError


class BrowserError(RecipeAgentError):
    """Base exception for browser-related errors."""
    pass


class BrowserLaunchError(BrowserError):
    """
    Error launching the browser.
    
    Usually missing browser binaries (run `playwright install`) or
    invalid launch options.
    """
    pass


class PageError(BrowserError):
    """Base exception for page-related errors."""
    pass


class NavigationError(PageError):
    """Error while navigating to a URL or moving through history."""
    
    def __init__(self, message: str, url: str | None = None):
        super().__init__(message, {"url": url} if url else None)
        self.url = url


class ElementNotFoundError(PageError):
    """
    Element not found on the page.
    
    Raised when a bound selector resolves to nothing. The interpreter treats
    this as a selector mismatch and may ask for a binding repair.
    """
    
    def __init__(self, message: str, selector: str):
        super().__init__(message)
        self.selector = selector


class WaitTimeoutError(PageError):
    """
    A waited-for page condition never became true.
    
    Attributes:
        timeout_ms: The budget that was exhausted
        condition: JSON form of the condition that was polled
    """
    
    def __init__(self, message: str, timeout_ms: int, condition: str | None = None):
        super().__init__(message)
        self.timeout_ms = timeout_ms
        self.condition = condition
