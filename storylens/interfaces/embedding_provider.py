"""Abstract base class for text-embedding service providers.

Defines the contract for turning text into fixed-dimension vectors.
Implementations wrap OpenAI ``text-embedding-3-small``, Nomic
``nomic-embed-text`` (local via Ollama), or the offline feature-hashing
embedder.  Vectors are only comparable when produced by the same
:meth:`IEmbeddingProvider.get_version`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider   -- text-embedding-3-small (requires API key)
#   NomicEmbeddingProvider    -- nomic-embed-text via Ollama (local)
#   HashingEmbeddingProvider  -- numpy feature hashing (offline, deterministic)
# Located in: storylens/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by indexing and search."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            Text strings to embed.  Callers keep batches within
            :meth:`get_batch_limit`.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.  Each
            inner list has length equal to :meth:`get_dimension`.

        Raises
        ------
        storylens.utils.errors.RateLimitError
            If the provider throttled the request.
        storylens.utils.errors.ProviderUnavailableError
            If the provider is unreachable or timed out.
        storylens.utils.errors.ProviderError
            For any other API failure.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Constant for the lifetime of the provider instance.  Example values:
        ``1536`` (OpenAI ``text-embedding-3-small``), ``768`` (Nomic).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai"``."""

    def get_version(self) -> str:
        """Return the identifier that makes vectors comparable.

        Two vectors may be compared only when their versions are equal.  The
        default combines provider name and dimension; providers with a
        configurable model include the model name too.
        """
        return f"{self.get_provider_name()}/{self.get_dimension()}"

    def get_batch_limit(self) -> int:
        """Return the maximum number of texts accepted per :meth:`embed` call."""
        return 64

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Implementations verify that credentials (if any) are present
        without generating an actual embedding.
        """
