"""
Tests for the OpenAI-compatible provider, against an httpx mock transport.
"""

import json

import httpx
import pytest

from recipe_agent.config import LLMSettings
from recipe_agent.exceptions import (
    InvalidResponseError,
    LLMAuthenticationError,
    LLMConnectionError,
    LLMError,
    RateLimitError,
)
from recipe_agent.interfaces.llm import Message
from recipe_agent.llm import OpenAIProvider, create_provider


def completion(content="hello", **extra):
    return {
        "model": "gpt-test",
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
        **extra,
    }


def make_provider(handler, **kwargs):
    return OpenAIProvider(
        base_url="https://llm.test/v1",
        model="gpt-test",
        api_key="sk-test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestComplete:
    """Test chat completion requests."""

    @pytest.mark.asyncio
    async def test_request_and_response(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion('{"LIST": ".l"}'))

        provider = make_provider(handler)
        response = await provider.complete(
            [Message.system("sys"), Message.user("hi")], temperature=0.0, max_tokens=50,
        )
        await provider.close()

        assert seen["url"] == "https://llm.test/v1/chat/completions"
        assert seen["auth"] == "Bearer sk-test"
        assert seen["body"]["messages"] == [
            {"role": "system", "content": "sys"},
            {"role": "user", "content": "hi"},
        ]
        assert seen["body"]["max_tokens"] == 50
        assert response.content == '{"LIST": ".l"}'
        assert response.usage.total_tokens == 7
        assert response.finish_reason == "stop"

    @pytest.mark.asyncio
    async def test_model_override(self):
        def handler(request):
            return httpx.Response(200, json=completion(model=json.loads(request.content)["model"]))

        provider = make_provider(handler)
        response = await provider.complete([Message.user("hi")], model="other-model")

        assert response.model == "other-model"

    @pytest.mark.asyncio
    async def test_null_content(self):
        provider = make_provider(lambda request: httpx.Response(200, json=completion(None)))

        response = await provider.complete([Message.user("hi")])

        assert response.content == ""


class TestErrorMapping:
    """Test HTTP failures map to the LLM exception hierarchy."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error_cls", [
        (401, LLMAuthenticationError),
        (403, LLMAuthenticationError),
        (500, LLMConnectionError),
        (503, LLMConnectionError),
    ])
    async def test_status_errors(self, status, error_cls):
        provider = make_provider(lambda request: httpx.Response(status, text="nope"))

        with pytest.raises(error_cls):
            await provider.complete([Message.user("hi")])

    @pytest.mark.asyncio
    async def test_rate_limit_reads_retry_after(self):
        provider = make_provider(lambda request: httpx.Response(429, headers={"retry-after": "4"}))

        with pytest.raises(RateLimitError) as exc_info:
            await provider.complete([Message.user("hi")])

        assert exc_info.value.retry_after == 4

    @pytest.mark.asyncio
    async def test_other_client_error(self):
        provider = make_provider(lambda request: httpx.Response(400, text="bad request"))

        with pytest.raises(LLMError) as exc_info:
            await provider.complete([Message.user("hi")])

        assert exc_info.value.details == {"status_code": 400}

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        provider = make_provider(handler)

        with pytest.raises(LLMConnectionError):
            await provider.complete([Message.user("hi")])

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        provider = make_provider(lambda request: httpx.Response(200, json={"choices": []}))

        with pytest.raises(InvalidResponseError):
            await provider.complete([Message.user("hi")])


class TestHealthCheck:
    """Test the models endpoint health check."""

    @pytest.mark.asyncio
    async def test_healthy(self):
        provider = make_provider(lambda request: httpx.Response(200, json={"data": []}))
        assert await provider.health_check()

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert not await make_provider(handler).health_check()


class TestCreateProvider:
    """Test building a provider from settings."""

    def test_from_settings(self):
        provider = create_provider(LLMSettings(model="m1", base_url="http://localhost:1234"))

        assert provider.name == "openai"
        assert provider.default_model == "m1"
        assert create_provider(LLMSettings(model="m1"), model="m2").default_model == "m2"
