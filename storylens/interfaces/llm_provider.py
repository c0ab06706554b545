"""Abstract base class for analysis (LLM) service providers.

The metadata extractor sends each chunk to an analysis provider with a
tagging prompt and parses whatever text comes back.  Implementations wrap
OpenAI (or compatible endpoints), Anthropic, or a local Ollama server.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: OpenAILLMProvider, AnthropicLLMProvider, OllamaLLMProvider
# Located in: storylens/providers/llm/
class ILLMProvider(ABC):
    """Contract for text-completion services used for chunk tagging."""

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.2,
        max_tokens: int = 800,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The prompt carrying the chunk text.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.

        Returns
        -------
        str
            The model's raw text response.

        Raises
        ------
        storylens.utils.errors.ProviderError
            If the API call fails (rate limits and outages use the
            dedicated subclasses).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"anthropic"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Implementations verify that credentials are present without making a
        full inference call.
        """
