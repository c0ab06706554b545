"""Orchestrator for the document-save indexing pipeline.

Pipeline stages: **hash -> chunk -> (embed || tag) -> classify -> publish -> invalidate**.

The :class:`IndexingService` coordinates the chunker, the embedding service,
the metadata extractor and the vector store without any of them knowing
about each other.  One call to :meth:`IndexingService.index_document`:

    1. Hashes the content; identical content to the current version is a no-op.
    2. TextChunker -- splits the text into overlapping ~800-word spans.
    3. EmbeddingService and MetadataExtractor run side by side, each with
       its own bounded parallelism and cache.
    4. Chunks whose embedding permanently failed are excluded and logged;
       if every chunk failed, :class:`IndexingFailedError` is raised.
    5. IVectorStoreProvider -- publishes the new version atomically.
    6. Project-scoped caches (analytics, search, context) are invalidated
       before the call returns.

Calls for one project are serialised with a per-project lock so versions
stay monotonic; different projects index in parallel.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from collections import Counter
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from storylens.models.document import Document, IndexingResult
from storylens.models.tags import IndexedChunk
from storylens.services.cache_service import CacheKeys
from storylens.services.content_classifier import calculate_importance, classify_content_type
from storylens.utils.errors import IndexingFailedError

if TYPE_CHECKING:
    from storylens.interfaces.vector_store_provider import IVectorStoreProvider
    from storylens.models.document import Chunk
    from storylens.models.tags import ChunkTags
    from storylens.services.cache_service import CacheService
    from storylens.services.embedding_service import EmbeddingService
    from storylens.services.ingestion.chunker import TextChunker
    from storylens.services.ingestion.metadata_extractor import MetadataExtractor

logger = structlog.get_logger(logger_name=__name__)

# Characters and themes carried into the extraction prompt as context.
_CONTEXT_TOP_N = 12


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class IndexingService:
    """Turns saved project text into a published, searchable index version.

    Parameters
    ----------
    chunker:
        Splits document text into overlapping spans.
    embedding_service:
        Cached, batched embedding front for the configured provider.
    metadata_extractor:
        Tags chunks with characters, themes, emotions and plot elements.
    vector_store:
        Versioned chunk store answering similarity queries.
    project_caches:
        Caches holding project-scoped entries; every one is invalidated
        for the project after each publish.
    context_cache:
        ``context`` namespace cache for the "known story elements" hint
        passed to the extractor.  Optional.
    """

    def __init__(
        self,
        chunker: TextChunker,
        embedding_service: EmbeddingService,
        metadata_extractor: MetadataExtractor,
        vector_store: IVectorStoreProvider,
        project_caches: list[CacheService] | None = None,
        context_cache: CacheService | None = None,
    ) -> None:
        self._chunker = chunker
        self._embedding = embedding_service
        self._extractor = metadata_extractor
        self._vector_store = vector_store
        self._project_caches = list(project_caches or [])
        self._context_cache = context_cache
        if context_cache is not None and context_cache not in self._project_caches:
            self._project_caches.append(context_cache)
        self._documents: dict[str, Document] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        # Bumped by forget(); a run that sees a different value never publishes.
        self._generations: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def current_document(self, project_id: str) -> Document | None:
        """Return the currently published document version for *project_id*."""
        return self._documents.get(project_id)

    async def index_document(
        self, project_id: str, content: str, owner_id: str = ""
    ) -> IndexingResult:
        """Index *content* as the new version of *project_id*.

        Returns
        -------
        IndexingResult
            Counts for the run.  ``unchanged`` is ``True`` when the content
            matched the current version and nothing was re-indexed.

        Raises
        ------
        IndexingFailedError
            If every chunk failed to embed, or the publish was rejected.
        """
        async with self._lock_for(project_id):
            return await self._index_locked(project_id, content, owner_id)

    async def invalidate(self, project_id: str) -> int:
        """Drop every project-scoped cache entry for *project_id*."""
        prefix = CacheKeys.project_prefix(project_id)
        removed = 0
        for cache in self._project_caches:
            removed += await cache.delete_by_pattern(prefix)
        logger.info("project_cache_invalidated", project_id=project_id, entries=removed)
        return removed

    async def forget(self, project_id: str) -> int:
        """Delete the project's index data, document history and cached entries.

        Runs under the project lock, after any index run already holding it.
        A run that started before this call does not publish; it raises
        :class:`IndexingFailedError` instead.

        Returns
        -------
        int
            Number of chunk records removed from the vector store.
        """
        self._generations[project_id] = self._generations.get(project_id, 0) + 1
        async with self._lock_for(project_id):
            removed = await self._vector_store.delete_project(project_id)
            self._documents.pop(project_id, None)
            await self.invalidate(project_id)
        return removed

    def _lock_for(self, project_id: str) -> asyncio.Lock:
        # Never popped: every waiter must queue on the same lock object.
        return self._locks.setdefault(project_id, asyncio.Lock())

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _index_locked(
        self, project_id: str, content: str, owner_id: str
    ) -> IndexingResult:
        start = time.monotonic()
        generation = self._generations.get(project_id, 0)
        digest = content_hash(content)
        previous = self._documents.get(project_id)

        if previous is not None and previous.content_hash == digest:
            logger.info("index_document_unchanged", project_id=project_id, version=previous.version)
            return IndexingResult(
                project_id=project_id,
                document_id=previous.document_id,
                version=previous.version,
                content_hash=digest,
                unchanged=True,
                chunks_total=await self._published_count(project_id),
                chunks_indexed=0,
                embedder_version=self._embedding.version,
                elapsed_seconds=round(time.monotonic() - start, 4),
            )

        published = await self._vector_store.current_version(project_id)
        version = max(previous.version if previous else 0, published or 0) + 1
        document = Document(
            document_id=project_id,
            project_id=project_id,
            owner_id=owner_id or (previous.owner_id if previous else ""),
            text=content,
            content_hash=digest,
            version=version,
            updated_at=datetime.now(timezone.utc),
        )

        # Step 1: chunk.
        chunks = self._chunker.chunk_document(document)
        texts = [chunk.text for chunk in chunks]

        # Step 2: embed and tag side by side.
        context = await self._context_window(project_id, previous)
        vectors, tags = await asyncio.gather(
            self._embedding.embed_texts(texts),
            self._extractor.extract_batch(texts, context_window=context),
        )

        # Step 3: drop chunks whose embedding failed.
        records: list[IndexedChunk] = []
        kept_vectors: list[list[float]] = []
        failed: list[str] = []
        for chunk, vector, chunk_tags in zip(chunks, vectors, tags):
            if vector is None:
                failed.append(chunk.chunk_id)
                continue
            records.append(self._to_record(chunk, chunk_tags))
            kept_vectors.append(vector)

        if chunks and not records:
            logger.error(
                "index_document_failed",
                project_id=project_id,
                version=version,
                chunks=len(chunks),
            )
            raise IndexingFailedError(
                message=f"All {len(chunks)} chunks failed to embed for project {project_id}",
                provider_name=self._embedding.provider_name,
                project_id=project_id,
            )

        # Step 4: publish unless the project was deleted meanwhile, then
        # invalidate before returning.
        if self._generations.get(project_id, 0) != generation:
            logger.warning(
                "index_document_discarded", project_id=project_id, version=version
            )
            raise IndexingFailedError(
                message=f"Project {project_id} was deleted while version {version} was indexing",
                project_id=project_id,
            )
        indexed = await self._vector_store.upsert_document(
            project_id, version, records, kept_vectors
        )
        self._documents[project_id] = document
        await self.invalidate(project_id)

        result = IndexingResult(
            project_id=project_id,
            document_id=document.document_id,
            version=version,
            content_hash=digest,
            chunks_total=len(chunks),
            chunks_indexed=indexed,
            failed_chunk_ids=failed,
            embedder_version=self._embedding.version,
            elapsed_seconds=round(time.monotonic() - start, 4),
        )
        logger.info(
            "index_document_complete",
            project_id=project_id,
            version=version,
            chunks=len(chunks),
            indexed=indexed,
            failed=len(failed),
            words=document.word_count,
            time_s=result.elapsed_seconds,
        )
        return result

    def _to_record(self, chunk: Chunk, tags: ChunkTags) -> IndexedChunk:
        return IndexedChunk(
            chunk=chunk,
            tags=tags,
            content_type=classify_content_type(chunk.text),
            importance=calculate_importance(chunk.text, tags),
            embedder_version=self._embedding.version,
        )

    async def _published_count(self, project_id: str) -> int:
        return len(await self._vector_store.list_chunks(project_id))

    async def _context_window(self, project_id: str, previous: Document | None) -> str | None:
        """Known characters and themes from the previous version, if any."""
        if previous is None:
            return None

        async def _build() -> str | None:
            characters: Counter[str] = Counter()
            themes: Counter[str] = Counter()
            for record in await self._vector_store.list_chunks(project_id):
                characters.update(record.tags.characters)
                themes.update(record.tags.themes)
            if not characters and not themes:
                return None
            lines = []
            if characters:
                lines.append("Characters: " + ", ".join(n for n, _ in characters.most_common(_CONTEXT_TOP_N)))
            if themes:
                lines.append("Themes: " + ", ".join(t for t, _ in themes.most_common(_CONTEXT_TOP_N)))
            return "\n".join(lines)

        if self._context_cache is None:
            return await _build()
        return await self._context_cache.get_or_set(
            CacheKeys.context(project_id, previous.version), _build
        )
