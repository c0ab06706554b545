"""Embedding providers -- convert text into dense vectors for similarity search.

Three interchangeable implementations of IEmbeddingProvider:
    - OpenAIEmbeddingProvider   -- OpenAI text-embedding-3-small (1536-dim)
    - NomicEmbeddingProvider    -- nomic-embed-text via local Ollama (768-dim)
    - HashingEmbeddingProvider  -- offline numpy feature hashing (configurable dim)

Vectors from different providers are not comparable; the vector index only
compares records whose embedder version matches the query's.
"""

from storylens.providers.embedding.hashing_embedding_provider import HashingEmbeddingProvider
from storylens.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from storylens.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = [
    "HashingEmbeddingProvider",
    "NomicEmbeddingProvider",
    "OpenAIEmbeddingProvider",
]
