"""
LLM-related exceptions.
"""

from recipe_agent.exceptions.base import RecipeAgentError


class LLMError(RecipeAgentError):
    """Base exception for LLM-related errors."""
    pass


class LLMConnectionError(LLMError):
    """
    Error connecting to the LLM provider.
    
    Raised on transport failures (DNS, refused connection, read timeout).
    These are considered transient and are retried.
    """
    pass


class LLMAuthenticationError(LLMError):
    """
    Authentication error with LLM provider.
    
    Raised when the API key is invalid or missing.
    """
    pass


class RateLimitError(LLMError):
    """
    Rate limit exceeded.
    
    Attributes:
        retry_after: Suggested wait time in seconds before retrying
    """
    
    def __init__(self, message: str, retry_after: int | None = None):
        super().__init__(message, {"retry_after": retry_after})
        self.retry_after = retry_after


class InvalidResponseError(LLMError):
    """
    Invalid response from LLM.
    
    Raised when the response carries no usable JSON object or the object
    does not have the expected shape.
    """
    
    def __init__(self, message: str, raw_response: str | None = None):
        super().__init__(message, {"raw_response": raw_response[:500] if raw_response else None})
        self.raw_response = raw_response
