# tests/backends/test_openrouter_backend.py
"""
Tests for OpenRouterBackend: key handling, delta accumulation and the
mapping of openai SDK errors onto backend errors.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from openai import (APIConnectionError, APIStatusError, APITimeoutError,
                    AsyncOpenAI)

from contextforge.backends.openrouter_backend import OpenRouterBackend
from contextforge.config.settings import OpenRouterSettings
from contextforge.exceptions import (BackendTimeoutError,
                                     BackendTransportError, ConfigError)

REQUEST = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")


async def stream_of(chunks):
    for chunk in chunks:
        yield chunk


def delta(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


def status_error(code):
    response = httpx.Response(code, request=REQUEST)
    return APIStatusError(f"status {code}", response=response, body=None)


def make_backend(create):
    client = MagicMock()
    client.chat.completions.create = create
    client.close = AsyncMock()
    settings = OpenRouterSettings(api_key="sk-test", model="anthropic/claude-sonnet-4", timeout=5.0)
    return OpenRouterBackend(settings, client=client), client


class TestConfiguration:

    def test_missing_key_is_config_error(self):
        with pytest.raises(ConfigError):
            OpenRouterBackend(OpenRouterSettings(api_key=None))

    def test_blank_key_counts_as_missing(self):
        with pytest.raises(ConfigError):
            OpenRouterBackend(OpenRouterSettings(api_key="   "))

    def test_client_built_from_settings(self):
        backend = OpenRouterBackend(OpenRouterSettings(api_key="sk-test", base_url="https://gw.example/api/v1"))
        assert backend._client.max_retries == 0
        assert str(backend._client.base_url).startswith("https://gw.example/api/v1")

    def test_key_is_not_in_repr(self):
        settings = OpenRouterSettings(api_key="sk-secret-value")
        assert "sk-secret-value" not in repr(settings)


class TestStreaming:

    @pytest.mark.asyncio
    async def test_accumulates_delta_content(self):
        chunks = [delta("Alice "), SimpleNamespace(choices=[]), delta(None), delta("paid Bob.")]
        backend, client = make_backend(AsyncMock(return_value=stream_of(chunks)))

        text = await backend.compress("prompt")

        assert text == "Alice paid Bob."
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "anthropic/claude-sonnet-4"
        assert kwargs["stream"] is True
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    @pytest.mark.asyncio
    async def test_malformed_chunk(self):
        backend, _ = make_backend(AsyncMock(return_value=stream_of([SimpleNamespace(choices=[object()])])))
        with pytest.raises(BackendTransportError) as exc_info:
            await backend.compress("prompt")
        assert exc_info.value.reason == "malformed_response"

    @pytest.mark.asyncio
    async def test_empty_stream_is_empty_response(self):
        backend, _ = make_backend(AsyncMock(return_value=stream_of([])))
        with pytest.raises(BackendTransportError) as exc_info:
            await backend.compress("prompt")
        assert exc_info.value.reason == "empty_response"


class TestErrorMapping:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code,text", [
        (401, "Authentication failed"),
        (429, "Rate limit exceeded"),
        (500, "Status 500"),
    ])
    async def test_status_errors(self, code, text):
        backend, _ = make_backend(AsyncMock(side_effect=status_error(code)))
        with pytest.raises(BackendTransportError) as exc_info:
            await backend.compress("prompt")
        assert exc_info.value.reason == "http_status"
        assert exc_info.value.status_code == code
        assert text in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        backend, _ = make_backend(AsyncMock(side_effect=APIConnectionError(request=REQUEST)))
        with pytest.raises(BackendTransportError) as exc_info:
            await backend.compress("prompt")
        assert exc_info.value.reason == "transport"

    @pytest.mark.asyncio
    async def test_sdk_timeout(self):
        backend, _ = make_backend(AsyncMock(side_effect=APITimeoutError(request=REQUEST)))
        with pytest.raises(BackendTimeoutError):
            await backend.compress("prompt")

    @pytest.mark.asyncio
    async def test_non_json_event_is_malformed(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(
            200, headers={"content-type": "text/event-stream"}, content=b"data: not json\n\n",
        ))
        client = AsyncOpenAI(
            api_key="sk-test", base_url="https://openrouter.ai/api/v1", max_retries=0,
            http_client=httpx.AsyncClient(transport=transport),
        )
        backend = OpenRouterBackend(OpenRouterSettings(api_key="sk-test", timeout=5.0), client=client)
        with pytest.raises(BackendTransportError) as exc_info:
            await backend.compress("prompt")
        assert exc_info.value.reason == "malformed_response"
        await backend.close()

    @pytest.mark.asyncio
    async def test_close(self):
        backend, client = make_backend(AsyncMock())
        await backend.close()
        client.close.assert_awaited_once()
        assert backend._client is None
