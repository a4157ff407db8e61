"""
LLM Provider Interface - the text-generation collaborator.

The recipe engine treats the model as opaque text generation: it sends a
system + user message pair and parses JSON out of the reply itself. No
provider-specific structured-output features are used.

Example:
    >>> from recipe_agent.llm import OpenAIProvider
    >>> provider = OpenAIProvider(base_url="https://api.openai.com", model="gpt-4o-mini")
    >>> response = await provider.complete([Message.user("Hello")])
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class MessageRole(Enum):
    """Role of a message in the conversation."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Message:
    """
    A message in the LLM conversation.
    
    Attributes:
        role: The role of the message sender
        content: The text content of the message
    """
    role: MessageRole
    content: str

    @classmethod
    def system(cls, content: str) -> "Message":
        """Create a system message."""
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        """Create a user message."""
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        """Create an assistant message."""
        return cls(role=MessageRole.ASSISTANT, content=content)


@dataclass
class Usage:
    """
    Token usage information from an LLM response.
    """
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> Dict[str, int]:
        """Convert to dictionary."""
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class LLMResponse:
    """
    Response from an LLM completion request.
    
    Attributes:
        content: The text content of the response
        model: The model that generated the response
        usage: Token usage information
        finish_reason: Reason the completion finished ('stop', 'length')
        raw_response: The original response body from the provider
    """
    content: str
    model: str
    usage: Usage
    finish_reason: str = "stop"
    raw_response: Any = None


class ILLMProvider(ABC):
    """
    Abstract interface for LLM providers.
    
    Implementations handle authentication, request formatting and response
    parsing, and translate transport failures into `recipe_agent.exceptions`
    LLM errors.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g. 'openai')."""
        ...

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Model used when complete() is called without one."""
        ...

    @abstractmethod
    async def complete(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """
        Generate a completion for the conversation.
        
        Raises:
            LLMConnectionError: Transport failure
            LLMAuthenticationError: Bad or missing credentials
            RateLimitError: Provider rate limit hit
            LLMError: Any other provider failure
        """
        ...

    async def health_check(self) -> bool:
        """Check whether the provider is reachable."""
        return True

    async def close(self) -> None:
        """Release any network resources."""
        return None

    async def __aenter__(self) -> "ILLMProvider":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
