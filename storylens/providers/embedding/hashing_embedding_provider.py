"""Offline feature-hashing embedding provider.

Projects a bag of lightly-stemmed words into a fixed number of buckets
with a signed hash, then L2-normalises.  No model download, no network,
fully deterministic across processes.  Semantic quality is lexical only,
which is enough for local development, the CLI without credentials, and
tests.
"""

from __future__ import annotations

import hashlib

import numpy as np
import structlog

from storylens.interfaces.embedding_provider import IEmbeddingProvider
from storylens.utils.text import tokenize

logger = structlog.get_logger(logger_name=__name__)


class HashingEmbeddingProvider(IEmbeddingProvider):
    """Deterministic signed feature-hashing embedder built on numpy."""

    def __init__(self, dimension: int = 384) -> None:
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self._dimension = dimension

    def _bucket(self, token: str) -> tuple[int, float]:
        digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "big")
        sign = 1.0 if value & 1 else -1.0
        return (value >> 1) % self._dimension, sign

    def _embed_one(self, text: str) -> list[float]:
        vector = np.zeros(self._dimension, dtype=np.float64)
        for token in tokenize(text):
            index, sign = self._bucket(token)
            vector[index] += sign
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        vectors = [self._embed_one(text) for text in texts]
        logger.debug("hashing_embedding_batch", batch_size=len(texts))
        return vectors

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "hashing"

    def get_batch_limit(self) -> int:
        return 256

    def is_available(self) -> bool:
        return True
