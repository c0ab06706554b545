"""Analysis (LLM) provider adapters.

Three concrete implementations of ILLMProvider:
    - OpenAILLMProvider    -- gpt-4o-mini (also OpenAI-compatible hosts)
    - AnthropicLLMProvider -- Claude Sonnet
    - OllamaLLMProvider    -- local models via an Ollama server

:func:`storylens.bootstrap.build_analysis_provider` picks one from settings,
or none, in which case chunk tagging uses the keyword tagger.
"""

from storylens.providers.llm.anthropic_provider import AnthropicLLMProvider
from storylens.providers.llm.ollama_provider import OllamaLLMProvider
from storylens.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider", "AnthropicLLMProvider", "OllamaLLMProvider"]
