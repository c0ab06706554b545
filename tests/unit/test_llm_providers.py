"""Unit tests for analysis provider adapters -- OpenAI, Anthropic, Ollama."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import openai
import pytest

from storylens.config.settings import Settings
from storylens.providers.llm.anthropic_provider import AnthropicLLMProvider
from storylens.providers.llm.ollama_provider import OllamaLLMProvider
from storylens.providers.llm.openai_provider import OpenAILLMProvider
from storylens.utils.errors import ProviderError, ProviderUnavailableError, RateLimitError


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_text_model": "",
        "anthropic_api_key": "sk-ant-test",
        "ollama_base_url": "http://localhost:11434",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _chat_response(content: str | None) -> MagicMock:
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    response.usage = MagicMock(total_tokens=42)
    return response


def _request(url: str = "https://api.example.com/v1/chat") -> httpx.Request:
    return httpx.Request("POST", url)


# ======================================================================
# OpenAI
# ======================================================================


class TestOpenAILLMProvider:
    def test_provider_name(self) -> None:
        assert OpenAILLMProvider(_settings()).get_provider_name() == "openai"
        compatible = OpenAILLMProvider(_settings(openai_base_url="https://api.together.xyz/v1"))
        assert compatible.get_provider_name() == "openai-compatible"

    def test_is_available(self) -> None:
        assert OpenAILLMProvider(_settings()).is_available() is True
        assert OpenAILLMProvider(_settings(openai_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_complete_success(self) -> None:
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(
            return_value=_chat_response('{"themes": ["loss"]}')
        )

        with patch(
            "storylens.providers.llm.openai_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAILLMProvider(_settings())
            result = await provider.complete("system", "tag this", temperature=0.1)

        assert result == '{"themes": ["loss"]}'
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}
        assert kwargs["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_empty_content_raises(self) -> None:
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_chat_response(None))

        with patch(
            "storylens.providers.llm.openai_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAILLMProvider(_settings())
            with pytest.raises(ProviderError):
                await provider.complete("system", "user")

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self) -> None:
        sdk_error = openai.InternalServerError(
            message="Server error",
            response=httpx.Response(500, request=_request()),
            body=None,
        )
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=sdk_error)

        with patch(
            "storylens.providers.llm.openai_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OpenAILLMProvider(_settings())
            with pytest.raises(ProviderUnavailableError) as exc_info:
                await provider.complete("system", "user")

        assert exc_info.value.provider_name == "openai"

    @pytest.mark.asyncio
    async def test_missing_key_is_unavailable(self) -> None:
        provider = OpenAILLMProvider(_settings(openai_api_key=""))
        assert provider.is_available() is False
        with pytest.raises(ProviderUnavailableError):
            await provider.complete("system", "user")


# ======================================================================
# Anthropic
# ======================================================================


class TestAnthropicLLMProvider:
    @staticmethod
    def _message(*blocks: MagicMock) -> MagicMock:
        response = MagicMock()
        response.content = list(blocks)
        response.usage = MagicMock(input_tokens=100, output_tokens=20)
        return response

    def test_provider_name_and_availability(self) -> None:
        provider = AnthropicLLMProvider(_settings())
        assert provider.get_provider_name() == "anthropic"
        assert provider.is_available() is True
        assert AnthropicLLMProvider(_settings(anthropic_api_key="")).is_available() is False

    @pytest.mark.asyncio
    async def test_complete_joins_text_blocks(self) -> None:
        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(
            return_value=self._message(
                MagicMock(type="text", text="CHARACTERS: Sarah"),
                MagicMock(type="tool_use", text="ignored"),
                MagicMock(type="text", text="THEMES: loss"),
            )
        )

        with patch(
            "storylens.providers.llm.anthropic_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = AnthropicLLMProvider(_settings())
            result = await provider.complete("system", "user")

        assert result == "CHARACTERS: Sarah\nTHEMES: loss"
        assert mock_client.messages.create.call_args.kwargs["system"] == "system"

    @pytest.mark.asyncio
    async def test_no_text_blocks_raises(self) -> None:
        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(return_value=self._message())

        with patch(
            "storylens.providers.llm.anthropic_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = AnthropicLLMProvider(_settings())
            with pytest.raises(ProviderError):
                await provider.complete("system", "user")

    @pytest.mark.asyncio
    async def test_rate_limit_translated(self) -> None:
        sdk_error = anthropic.RateLimitError(
            message="Rate limited",
            response=httpx.Response(
                429,
                request=_request("https://api.anthropic.com/v1/messages"),
                headers={"retry-after": "7"},
            ),
            body=None,
        )
        mock_client = AsyncMock()
        mock_client.messages.create = AsyncMock(side_effect=sdk_error)

        with patch(
            "storylens.providers.llm.anthropic_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = AnthropicLLMProvider(_settings())
            with pytest.raises(RateLimitError) as exc_info:
                await provider.complete("system", "user")

        assert exc_info.value.retry_after == 7.0


# ======================================================================
# Ollama
# ======================================================================


class TestOllamaLLMProvider:
    def test_provider_name(self) -> None:
        assert OllamaLLMProvider(_settings()).get_provider_name() == "ollama"

    def test_is_available_requires_base_url(self) -> None:
        assert OllamaLLMProvider(_settings()).is_available() is True
        assert OllamaLLMProvider(_settings(ollama_base_url="")).is_available() is False

    @pytest.mark.asyncio
    async def test_complete_success(self) -> None:
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(
            return_value=_chat_response("CHARACTERS: Marcus")
        )

        with patch(
            "storylens.providers.llm.ollama_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ) as client_cls:
            provider = OllamaLLMProvider(_settings())
            result = await provider.complete("system", "user")

        assert result == "CHARACTERS: Marcus"
        assert client_cls.call_args.kwargs["base_url"] == "http://localhost:11434/v1"

    @pytest.mark.asyncio
    async def test_connection_error_is_unavailable(self) -> None:
        mock_client = AsyncMock()
        mock_client.chat.completions.create = AsyncMock(
            side_effect=openai.APIConnectionError(request=_request("http://localhost:11434/v1"))
        )

        with patch(
            "storylens.providers.llm.ollama_provider.openai.AsyncOpenAI",
            return_value=mock_client,
        ):
            provider = OllamaLLMProvider(_settings())
            with pytest.raises(ProviderUnavailableError):
                await provider.complete("system", "user")
