"""Ollama LLM provider adapter.

Wraps a local Ollama server via its OpenAI-compatible API endpoint, reusing
the ``openai`` client pointed at the Ollama base URL.  Works fully offline
with no API costs, at the price of weaker tagging than hosted models.

Setup: install Ollama, ``ollama pull llama3.1``, and set
``OLLAMA_BASE_URL=http://localhost:11434``.
"""

from __future__ import annotations

import openai
import structlog

from storylens.config.settings import Settings
from storylens.interfaces.llm_provider import ILLMProvider
from storylens.providers.sdk_errors import translate_openai_error
from storylens.utils.errors import ProviderError

logger = structlog.get_logger(logger_name=__name__)


class OllamaLLMProvider(ILLMProvider):
    """LLM provider backed by a local Ollama server (``llama3.1`` by default)."""

    def __init__(self, settings: Settings, model: str = "llama3.1") -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url
        self._client = openai.AsyncOpenAI(
            base_url=f"{self._base_url.rstrip('/')}/v1",
            # The SDK requires a non-empty key; Ollama ignores it.
            api_key="ollama",
            timeout=openai.Timeout(settings.provider_timeout_seconds, connect=3.0),
            max_retries=0,
        )
        self._text_model = model

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 800,
    ) -> str:
        """Generate a text completion via Ollama's OpenAI-compatible API."""
        try:
            response = await self._client.chat.completions.create(
                model=self._text_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIError as exc:
            raise translate_openai_error(
                exc, self.get_provider_name(), action="Ollama completion"
            ) from exc

        content = response.choices[0].message.content
        if content is None:
            raise ProviderError(
                message="Ollama returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info("ollama_completion", model=self._text_model)
        return content

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama base URL is configured."""
        return bool(self._base_url)

    def get_provider_name(self) -> str:
        return "ollama"
