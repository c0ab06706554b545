"""Abstract base class for versioned vector-store providers.

Each project holds one *current* version of its chunks.  Publishing a new
version is atomic: a concurrent reader sees either the complete old version
or the complete new one, never a mix.  Older versions become unreachable as
soon as the new one is published.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from storylens.models.search import ChunkFilter, VectorMatch, VectorStoreStats
from storylens.models.tags import IndexedChunk


# Concrete implementation: InMemoryVectorStore (storylens/providers/vector_store/)
class IVectorStoreProvider(ABC):
    """Contract for per-project, versioned chunk vector storage."""

    @abstractmethod
    async def upsert_document(
        self,
        project_id: str,
        version: int,
        records: list[IndexedChunk],
        vectors: Sequence[Sequence[float]],
    ) -> int:
        """Publish *records* as the new current version of *project_id*.

        Parameters
        ----------
        project_id:
            Project whose index is replaced.
        version:
            New version number; must be greater than the current one.
        records:
            Chunk records in ascending ``order``.
        vectors:
            Embedding vectors corresponding positionally to *records*.

        Returns
        -------
        int
            The number of chunks published.

        Raises
        ------
        ValueError
            If ``len(records) != len(vectors)``.
        storylens.utils.errors.DimensionMismatchError
            If vectors disagree on dimension, or differ from the dimension
            already held for the same embedder version.
        storylens.utils.errors.IndexingFailedError
            If *version* is not greater than the current version.
        """

    @abstractmethod
    async def search(
        self,
        project_id: str,
        query_vector: Sequence[float],
        top_k: int,
        chunk_filter: ChunkFilter | None = None,
        embedder_version: str | None = None,
    ) -> list[VectorMatch]:
        """Return up to *top_k* current-version chunks most similar to *query_vector*.

        Results are ranked by cosine similarity (descending), ties broken by
        ascending chunk order.  An unknown project or empty index yields an
        empty list.

        Raises
        ------
        storylens.utils.errors.DimensionMismatchError
            If the query dimension differs from the indexed vectors.
        """

    @abstractmethod
    async def delete_project(self, project_id: str) -> int:
        """Remove every version of *project_id*.  Returns chunks removed."""

    @abstractmethod
    async def current_version(self, project_id: str) -> int | None:
        """Return the current published version, or ``None`` if never indexed."""

    @abstractmethod
    async def list_chunks(self, project_id: str) -> list[IndexedChunk]:
        """Return the current version's records in ascending order."""

    @abstractmethod
    async def get_stats(self) -> VectorStoreStats:
        """Return aggregate statistics about the index."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"memory"``."""
