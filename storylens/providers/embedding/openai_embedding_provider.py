"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports both real OpenAI and OpenAI-compatible providers (TogetherAI,
Anyscale, Fireworks) via custom ``base_url`` and model name settings.
"""

from __future__ import annotations

import openai
import structlog

from storylens.config.settings import Settings
from storylens.interfaces.embedding_provider import IEmbeddingProvider
from storylens.providers.sdk_errors import translate_openai_error
from storylens.utils.errors import ProviderUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
    "WhereIsAI/UAE-Large-V1": 1024,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) by default.  When
    ``openai_base_url`` is configured the client points at that URL and
    uses ``openai_embedding_model`` if set.  The keyword arguments override
    the settings for other OpenAI-compatible hosts such as a local Ollama
    server (see :class:`NomicEmbeddingProvider`).

    No SDK client is built without an API key; :meth:`embed` then raises
    :class:`ProviderUnavailableError`.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        model: str | None = None,
        dimension: int | None = None,
        provider_label: str | None = None,
        batch_limit: int = _OPENAI_BATCH_LIMIT,
        connect_timeout: float = 5.0,
    ) -> None:
        base_url = settings.openai_base_url if base_url is None else base_url
        self._api_key = settings.openai_api_key if api_key is None else api_key
        self._model = model or settings.openai_embedding_model or "text-embedding-3-small"
        self._dimension = dimension or _MODEL_DIMENSIONS.get(self._model, 768)
        self._provider_label = provider_label or (
            "openai-compatible_embedding" if base_url else "openai_embedding"
        )
        self._batch_limit = batch_limit

        self._client: openai.AsyncOpenAI | None = None
        if self._api_key:
            client_kwargs: dict = {
                "api_key": self._api_key,
                "timeout": openai.Timeout(settings.provider_timeout_seconds, connect=connect_timeout),
                # Retries are driven by retry_with_backoff, not the SDK.
                "max_retries": 0,
            }
            if base_url:
                client_kwargs["base_url"] = base_url
            self._client = openai.AsyncOpenAI(**client_kwargs)

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Splits into batches of :meth:`get_batch_limit` if the input exceeds
        the per-call limit.
        """
        if not texts:
            return []
        if self._client is None:
            raise ProviderUnavailableError(
                message=f"{self._provider_label} has no API key configured",
                provider_name=self.get_provider_name(),
            )

        try:
            all_embeddings: list[list[float]] = []
            for start in range(0, len(texts), self._batch_limit):
                batch = texts[start : start + self._batch_limit]
                response = await self._client.embeddings.create(
                    input=batch,
                    model=self._model,
                )
                all_embeddings.extend(item.embedding for item in response.data)
                logger.info(
                    "openai_embedding_batch",
                    model=self._model,
                    provider=self._provider_label,
                    batch_size=len(batch),
                    tokens=response.usage.total_tokens if response.usage else None,
                )
            return all_embeddings
        except openai.APIError as exc:
            raise translate_openai_error(
                exc, self.get_provider_name(), action=f"{self._provider_label} embedding"
            ) from exc

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def get_version(self) -> str:
        return f"{self._provider_label}/{self._model}/{self._dimension}"

    def get_batch_limit(self) -> int:
        return self._batch_limit

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
