"""In-memory, versioned vector store backed by numpy.

Each published project version is an immutable :class:`_Snapshot`: the
ordered chunk records plus an ``(n, d)`` matrix of L2-normalised vectors.
Snapshots are stored under ``(project_id, version)`` and a per-project
pointer names the current one.  Publishing builds the new snapshot fully,
then swaps the pointer under a lock; a search grabs the snapshot reference
under the same lock and scores it outside, so it always sees exactly one
complete version even while a newer one is being published.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import structlog

from storylens.interfaces.vector_store_provider import IVectorStoreProvider
from storylens.models.search import ChunkFilter, VectorMatch, VectorStoreStats
from storylens.models.tags import IndexedChunk
from storylens.utils.errors import DimensionMismatchError, IndexingFailedError

logger = structlog.get_logger(logger_name=__name__)


@dataclass(frozen=True)
class _Snapshot:
    project_id: str
    version: int
    records: tuple[IndexedChunk, ...]
    matrix: np.ndarray
    dimension: int | None

    def __len__(self) -> int:
        return len(self.records)


def _normalise_rows(matrix: np.ndarray) -> np.ndarray:
    norms = np.linalg.norm(matrix, axis=1, keepdims=True)
    norms[norms == 0] = 1.0
    return matrix / norms


class InMemoryVectorStore(IVectorStoreProvider):
    """Process-local implementation of :class:`IVectorStoreProvider`."""

    def __init__(self) -> None:
        self._snapshots: dict[tuple[str, int], _Snapshot] = {}
        self._current: dict[str, int] = {}
        # Dimension seen for each embedder version; vectors of one version
        # must all agree.
        self._dimensions: dict[str, int] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_document(
        self,
        project_id: str,
        version: int,
        records: list[IndexedChunk],
        vectors: Sequence[Sequence[float]],
    ) -> int:
        if len(records) != len(vectors):
            raise ValueError(
                f"records and vectors must have the same length ({len(records)} != {len(vectors)})"
            )

        snapshot = self._build_snapshot(project_id, version, records, vectors)

        with self._lock:
            current = self._current.get(project_id)
            if current is not None and version <= current:
                raise IndexingFailedError(
                    message=(
                        f"Refusing to publish version {version} of project {project_id}: "
                        f"current version is {current}"
                    ),
                    project_id=project_id,
                )
            if snapshot.dimension is not None:
                for embedder_version in {r.embedder_version for r in snapshot.records}:
                    self._dimensions.setdefault(embedder_version, snapshot.dimension)
            self._snapshots[(project_id, version)] = snapshot
            self._current[project_id] = version
            superseded = [
                key for key in self._snapshots if key[0] == project_id and key[1] != version
            ]
            for key in superseded:
                del self._snapshots[key]

        logger.info(
            "vector_index_published",
            project_id=project_id,
            version=version,
            chunks=len(snapshot),
            dropped_versions=len(superseded),
        )
        return len(snapshot)

    def _build_snapshot(
        self,
        project_id: str,
        version: int,
        records: list[IndexedChunk],
        vectors: Sequence[Sequence[float]],
    ) -> _Snapshot:
        ordered = sorted(zip(records, vectors), key=lambda pair: pair[0].order)
        if not ordered:
            return _Snapshot(project_id, version, (), np.zeros((0, 0)), None)

        dimension = len(ordered[0][1])
        for record, vector in ordered:
            if len(vector) != dimension:
                raise DimensionMismatchError(expected=dimension, actual=len(vector))
            known = self._dimensions.get(record.embedder_version)
            if known is not None and known != dimension:
                raise DimensionMismatchError(expected=known, actual=dimension)

        matrix = np.asarray([vector for _, vector in ordered], dtype=np.float64)
        return _Snapshot(
            project_id=project_id,
            version=version,
            records=tuple(record for record, _ in ordered),
            matrix=_normalise_rows(matrix),
            dimension=dimension,
        )

    async def delete_project(self, project_id: str) -> int:
        with self._lock:
            keys = [key for key in self._snapshots if key[0] == project_id]
            removed = sum(len(self._snapshots.pop(key)) for key in keys)
            self._current.pop(project_id, None)
        logger.info("vector_index_project_deleted", project_id=project_id, chunks=removed)
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _snapshot(self, project_id: str) -> _Snapshot | None:
        with self._lock:
            version = self._current.get(project_id)
            if version is None:
                return None
            return self._snapshots[(project_id, version)]

    async def search(
        self,
        project_id: str,
        query_vector: Sequence[float],
        top_k: int,
        chunk_filter: ChunkFilter | None = None,
        embedder_version: str | None = None,
    ) -> list[VectorMatch]:
        snapshot = self._snapshot(project_id)
        if snapshot is None or not snapshot.records or top_k <= 0:
            return []

        candidates = [
            i
            for i, record in enumerate(snapshot.records)
            if (embedder_version is None or record.embedder_version == embedder_version)
            and (chunk_filter is None or chunk_filter.matches(record))
        ]
        if not candidates:
            return []

        if len(query_vector) != snapshot.dimension:
            raise DimensionMismatchError(
                expected=snapshot.dimension or 0, actual=len(query_vector)
            )

        query = np.asarray(query_vector, dtype=np.float64)
        norm = np.linalg.norm(query)
        if norm > 0:
            query = query / norm

        index = np.asarray(candidates)
        scores = np.clip(snapshot.matrix[index] @ query, -1.0, 1.0)
        orders = np.asarray([snapshot.records[i].order for i in candidates])
        # lexsort uses the last key as primary: score descending, then order.
        ranking = np.lexsort((orders, -scores))[:top_k]

        return [
            VectorMatch(record=snapshot.records[int(index[r])], score=float(scores[r]))
            for r in ranking
        ]

    async def current_version(self, project_id: str) -> int | None:
        with self._lock:
            return self._current.get(project_id)

    async def list_chunks(self, project_id: str) -> list[IndexedChunk]:
        snapshot = self._snapshot(project_id)
        return list(snapshot.records) if snapshot is not None else []

    async def get_stats(self) -> VectorStoreStats:
        with self._lock:
            return VectorStoreStats(
                projects=len(self._current),
                chunks=sum(
                    len(self._snapshots[(pid, version)]) for pid, version in self._current.items()
                ),
                versions_retained=len(self._snapshots),
            )

    def get_provider_name(self) -> str:
        return "memory"
