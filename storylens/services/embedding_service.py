"""Cached, batched, retrying front for an embedding provider.

Indexing calls :meth:`EmbeddingService.embed_texts`, which

1. serves repeated texts from the ``embeddings`` cache (keyed by embedder
   version and text, so a model change never returns stale vectors),
2. splits the rest into batches no larger than the provider's limit,
3. runs batches concurrently behind a semaphore, retrying rate limits and
   outages with exponential backoff,
4. re-tries a permanently failed batch one text at a time, so only the
   texts that genuinely fail are reported as ``None``.

The query path uses :meth:`embed_query`: one attempt under a timeout, with
provider errors propagated to the caller.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from storylens.services.cache_service import CacheKeys
from storylens.utils.concurrency import call_with_timeout, retry_with_backoff, throttled_gather
from storylens.utils.errors import DimensionMismatchError, ProviderError

if TYPE_CHECKING:
    from storylens.interfaces.embedding_provider import IEmbeddingProvider
    from storylens.services.cache_service import CacheService

logger = structlog.get_logger(logger_name=__name__)


class EmbeddingService:
    """Wraps an :class:`IEmbeddingProvider` with caching, batching and backoff.

    Parameters
    ----------
    provider:
        The embedding backend.
    cache:
        ``embeddings`` namespace cache, optional.
    batch_size:
        Upper bound on texts per provider call; the provider's own
        :meth:`~IEmbeddingProvider.get_batch_limit` is also respected.
    max_concurrent_batches:
        Provider calls allowed in flight at once.
    timeout:
        Per-call timeout in seconds.
    max_retries / backoff_base / max_backoff:
        Exponential backoff parameters for retryable provider errors.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        cache: CacheService | None = None,
        batch_size: int = 64,
        max_concurrent_batches: int = 2,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_base: float = 0.5,
        max_backoff: float = 8.0,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._batch_size = max(1, min(batch_size, provider.get_batch_limit()))
        self._semaphore = asyncio.Semaphore(max_concurrent_batches)
        self._timeout = timeout
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._max_backoff = max_backoff

    @property
    def version(self) -> str:
        return self._provider.get_version()

    @property
    def dimension(self) -> int:
        return self._provider.get_dimension()

    @property
    def provider_name(self) -> str:
        return self._provider.get_provider_name()

    # ------------------------------------------------------------------
    # Indexing path
    # ------------------------------------------------------------------

    async def embed_texts(self, texts: list[str]) -> list[list[float] | None]:
        """Embed *texts*; positions whose embedding permanently failed hold ``None``."""
        results: list[list[float] | None] = [None] * len(texts)
        pending: dict[str, list[int]] = {}
        for i, text in enumerate(texts):
            cached = await self._cache_get(text)
            if cached is not None:
                results[i] = cached
            else:
                pending.setdefault(text, []).append(i)

        unique = list(pending)
        batches = [unique[k : k + self._batch_size] for k in range(0, len(unique), self._batch_size)]
        outcomes = await throttled_gather(
            [self._embed_batch(batch) for batch in batches],
            self._semaphore,
            return_exceptions=False,
        )

        for batch, vectors in zip(batches, outcomes):
            for text, vector in zip(batch, vectors):
                if vector is None:
                    continue
                await self._cache_set(text, vector)
                for i in pending[text]:
                    results[i] = vector

        logger.info(
            "embedding_complete",
            embedder=self.version,
            total=len(texts),
            cached=len(texts) - sum(len(v) for v in pending.values()),
            failed=sum(1 for v in results if v is None),
        )
        return results

    async def _embed_batch(self, batch: list[str]) -> list[list[float] | None]:
        try:
            return list(await self._call_with_retries(batch))
        except ProviderError as exc:
            if len(batch) == 1:
                logger.warning(
                    "chunk_embedding_failed",
                    embedder=self.version,
                    error=str(exc),
                    text_preview=batch[0][:80],
                )
                return [None]
            logger.warning(
                "embedding_batch_failed_splitting",
                embedder=self.version,
                batch_size=len(batch),
                error=str(exc),
            )

        vectors: list[list[float] | None] = []
        for text in batch:
            vectors.extend(await self._embed_batch([text]))
        return vectors

    async def _call_with_retries(self, batch: list[str]) -> list[list[float]]:
        async def _attempt() -> list[list[float]]:
            vectors = await call_with_timeout(
                self._provider.embed(batch),
                timeout=self._timeout,
                provider_name=self.provider_name,
            )
            self._check_vectors(batch, vectors)
            return vectors

        return await retry_with_backoff(
            _attempt,
            max_retries=self._max_retries,
            base_delay=self._backoff_base,
            max_delay=self._max_backoff,
            operation="embed_batch",
            logger=logger,
        )

    def _check_vectors(self, batch: list[str], vectors: list[list[float]]) -> None:
        if len(vectors) != len(batch):
            raise ProviderError(
                message=f"Embedding provider returned {len(vectors)} vectors for {len(batch)} texts",
                provider_name=self.provider_name,
            )
        expected = self.dimension
        for vector in vectors:
            if len(vector) != expected:
                raise DimensionMismatchError(
                    expected=expected, actual=len(vector), provider_name=self.provider_name
                )

    # ------------------------------------------------------------------
    # Query path
    # ------------------------------------------------------------------

    async def embed_query(self, text: str) -> list[float]:
        """Embed one query string under the timeout; errors propagate."""
        cached = await self._cache_get(text)
        if cached is not None:
            return cached
        vectors = await call_with_timeout(
            self._provider.embed([text]),
            timeout=self._timeout,
            provider_name=self.provider_name,
        )
        self._check_vectors([text], vectors)
        await self._cache_set(text, vectors[0])
        return vectors[0]

    # ------------------------------------------------------------------
    # Cache helpers
    # ------------------------------------------------------------------

    async def _cache_get(self, text: str) -> list[float] | None:
        if self._cache is None:
            return None
        return await self._cache.get(CacheKeys.embedding(self.version, text))

    async def _cache_set(self, text: str, vector: list[float]) -> None:
        if self._cache is not None:
            await self._cache.set(CacheKeys.embedding(self.version, text), vector)
