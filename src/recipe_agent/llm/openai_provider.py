"""
OpenAI-compatible LLM Provider.

Works against any endpoint that speaks the chat-completions protocol:
- OpenAI
- Azure OpenAI and other gateways
- Local servers (LM Studio, Ollama, vLLM)
"""

import logging
import os
from typing import Any, Dict, List, Optional

import httpx

from recipe_agent.exceptions import (
    InvalidResponseError,
    LLMAuthenticationError,
    LLMConnectionError,
    LLMError,
    RateLimitError,
)
from recipe_agent.interfaces.llm import (
    ILLMProvider,
    LLMResponse,
    Message,
    MessageRole,
    Usage,
)

logger = logging.getLogger(__name__)


class OpenAIProvider(ILLMProvider):
    """
    OpenAI-compatible LLM provider.
    
    Example:
        >>> provider = OpenAIProvider(
        ...     base_url="https://api.openai.com",
        ...     model="gpt-4o-mini",
        ... )
        >>> response = await provider.complete([Message.user("Hello!")])
    """
    
    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: Optional[str] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the provider.
        
        Args:
            base_url: Base URL for the API (no /v1 suffix)
            model: Model to use for completions
            api_key: API key (reads OPENAI_API_KEY if not set)
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        if self._base_url.endswith("/v1"):
            self._base_url = self._base_url[:-3]
        self._api_key = api_key or os.environ.get("OPENAI_API_KEY", "not-needed")
        self._model = model
        
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )
    
    @property
    def name(self) -> str:
        return "openai"
    
    @property
    def default_model(self) -> str:
        return self._model
    
    async def complete(
        self,
        messages: List[Message],
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a completion."""
        model = model or self._model
        
        body: Dict[str, Any] = {
            "model": model,
            "messages": [
                {
                    "role": msg.role.value if isinstance(msg.role, MessageRole) else msg.role,
                    "content": msg.content,
                }
                for msg in messages
            ],
            "temperature": temperature,
        }
        if max_tokens:
            body["max_tokens"] = max_tokens
        body.update(kwargs)
        
        logger.debug(f"Calling chat completions: {model} ({len(messages)} messages)")
        
        try:
            response = await self._client.post("/v1/chat/completions", json=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._status_error(e.response) from e
        except httpx.TransportError as e:
            raise LLMConnectionError(f"Cannot reach {self._base_url}: {e}") from e
        
        try:
            data = response.json()
            choice = data["choices"][0]
            content = choice["message"].get("content") or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise InvalidResponseError(f"Malformed completion body: {e}", response.text) from e
        
        usage_data = data.get("usage") or {}
        usage = Usage(
            prompt_tokens=usage_data.get("prompt_tokens", 0),
            completion_tokens=usage_data.get("completion_tokens", 0),
            total_tokens=usage_data.get("total_tokens", 0),
        )
        
        return LLMResponse(
            content=content,
            model=data.get("model", model),
            usage=usage,
            finish_reason=choice.get("finish_reason") or "stop",
            raw_response=data,
        )
    
    def _status_error(self, response: httpx.Response) -> LLMError:
        """Map an HTTP error status to the matching LLM exception."""
        status = response.status_code
        text = response.text[:300]
        logger.error(f"HTTP error: {status} - {text}")
        
        if status in (401, 403):
            return LLMAuthenticationError(f"Authentication failed ({status})")
        if status == 429:
            retry_after = response.headers.get("retry-after")
            return RateLimitError(
                "Rate limit exceeded",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if status >= 500:
            return LLMConnectionError(f"Provider error {status}: {text}")
        return LLMError(f"Request rejected ({status}): {text}", {"status_code": status})
    
    async def health_check(self) -> bool:
        """Check that the models endpoint answers."""
        try:
            response = await self._client.get("/v1/models")
            return response.status_code == 200
        except httpx.HTTPError:
            return False
    
    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
