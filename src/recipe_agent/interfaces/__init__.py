"""
Interfaces - contracts for the engine's external collaborators.
"""

from recipe_agent.interfaces.llm import (
    ILLMProvider,
    LLMResponse,
    Message,
    MessageRole,
    Usage,
)
from recipe_agent.interfaces.page import (
    DOMSnapshot,
    IPageDriver,
    ListItem,
    PageState,
)

__all__ = [
    "ILLMProvider",
    "LLMResponse",
    "Message",
    "MessageRole",
    "Usage",
    "DOMSnapshot",
    "IPageDriver",
    "ListItem",
    "PageState",
]
