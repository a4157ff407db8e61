"""
LLM providers.
"""

from typing import TYPE_CHECKING, Optional

from recipe_agent.llm.openai_provider import OpenAIProvider

if TYPE_CHECKING:
    from recipe_agent.config.settings import LLMSettings


def create_provider(settings: "LLMSettings", model: Optional[str] = None) -> OpenAIProvider:
    """
    Build a provider from LLM settings.
    
    Args:
        settings: LLM section of the settings
        model: Optional model overriding settings.model
    """
    api_key = settings.api_key.get_secret_value() if settings.api_key else None
    return OpenAIProvider(
        base_url=settings.base_url,
        model=model or settings.model,
        api_key=api_key,
        timeout=settings.timeout,
    )


__all__ = ["OpenAIProvider", "create_provider"]
