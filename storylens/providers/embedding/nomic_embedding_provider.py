"""Nomic embedding provider adapter (local/free via Ollama).

Ollama serves ``nomic-embed-text`` (768 dimensions) behind an
OpenAI-compatible ``/v1`` endpoint, so this adapter is the OpenAI adapter
pointed at the local server.  Only availability differs: it asks the
Ollama server itself instead of checking for an API key.
"""

from __future__ import annotations

import httpx

from storylens.config.settings import Settings
from storylens.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

NOMIC_MODEL = "nomic-embed-text"
NOMIC_DIMENSION = 768

_OLLAMA_BATCH_LIMIT = 512


class NomicEmbeddingProvider(OpenAIEmbeddingProvider):
    """``nomic-embed-text`` served by the Ollama instance at ``ollama_base_url``."""

    def __init__(self, settings: Settings) -> None:
        self._ollama_url = settings.ollama_base_url.rstrip("/")
        super().__init__(
            settings,
            base_url=f"{self._ollama_url}/v1",
            api_key="ollama" if self._ollama_url else "",  # ignored by Ollama
            model=NOMIC_MODEL,
            dimension=NOMIC_DIMENSION,
            provider_label="nomic_embedding",
            batch_limit=_OLLAMA_BATCH_LIMIT,
            connect_timeout=3.0,
        )

    def is_available(self) -> bool:
        """Return ``True`` if the Ollama server answers on ``/api/tags``."""
        if not self._ollama_url:
            return False
        try:
            response = httpx.get(f"{self._ollama_url}/api/tags", timeout=3.0)
            return response.status_code == 200
        except (httpx.ConnectError, httpx.TimeoutException):
            return False
