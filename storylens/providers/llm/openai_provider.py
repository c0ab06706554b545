"""OpenAI-compatible LLM provider adapter.

Wraps the ``openai`` async client to implement :class:`ILLMProvider`.  When a
custom ``openai_base_url`` is configured (e.g. TogetherAI, Anyscale,
Fireworks, Groq), the client points at that URL instead of the default
OpenAI endpoint, so this single adapter serves many hosted models.
"""

from __future__ import annotations

import openai
import structlog

from storylens.config.settings import Settings
from storylens.interfaces.llm_provider import ILLMProvider
from storylens.providers.sdk_errors import translate_openai_error
from storylens.utils.errors import ProviderError, ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)


class OpenAILLMProvider(ILLMProvider):
    """LLM provider backed by an OpenAI-compatible chat completions API.

    Uses ``gpt-4o-mini`` by default; ``openai_text_model`` overrides it for
    compatible hosts.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        self._client: openai.AsyncOpenAI | None = None
        if self._api_key:
            client_kwargs: dict = {
                "api_key": self._api_key,
                "timeout": openai.Timeout(settings.provider_timeout_seconds, connect=5.0),
                "max_retries": 0,
            }
            if settings.openai_base_url:
                client_kwargs["base_url"] = settings.openai_base_url
            self._client = openai.AsyncOpenAI(**client_kwargs)
        self._text_model = settings.openai_text_model or "gpt-4o-mini"
        self._provider_label = "openai-compatible" if settings.openai_base_url else "openai"

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
        """Generate a text completion via the OpenAI-compatible chat API."""
        if self._client is None:
            raise ProviderUnavailableError(
                message=f"{self._provider_label} has no API key configured",
                provider_name=self.get_provider_name(),
            )
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
                exc, self.get_provider_name(), action=f"{self._provider_label} completion"
            ) from exc

        content = response.choices[0].message.content
        if content is None:
            raise ProviderError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_completion",
            model=self._text_model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured (doesn't verify it works)."""
        return bool(self._api_key)

    def get_provider_name(self) -> str:
        """Return 'openai' or 'openai-compatible' depending on configuration."""
        return self._provider_label
