"""Unit tests for the analytics aggregator."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from storylens.models.analytics import AnalysisMode
from storylens.models.cache import CacheNamespace
from storylens.models.document import Chunk, Document
from storylens.models.tags import ChunkTags, ContentType, IndexedChunk
from storylens.providers.vector_store.memory_vector_store import InMemoryVectorStore
from storylens.services.analytics_aggregator import AnalyticsAggregator, aggregate, rank_values
from storylens.services.cache_service import CacheService


def _record(
    order: int,
    tags: ChunkTags,
    content_type: ContentType = ContentType.NARRATIVE,
    importance: float = 1.0,
    version: int = 1,
) -> IndexedChunk:
    return IndexedChunk(
        chunk=Chunk(
            chunk_id=Chunk.make_id("p1", version, order),
            document_id="p1",
            version=version,
            order=order,
            start_offset=0,
            end_offset=1,
            text="x",
        ),
        tags=tags,
        content_type=content_type,
        importance=importance,
        embedder_version="fake/3",
    )


def _document(text: str, version: int = 1) -> Document:
    return Document(
        document_id="p1",
        project_id="p1",
        text=text,
        content_hash="h",
        version=version,
        updated_at=datetime.now(timezone.utc),
    )


class TestRankValues:
    def test_frequency_then_first_seen(self) -> None:
        groups = [["Marcus"], ["Sarah", "Marcus"], ["Eliza"], ["sarah"]]
        assert rank_values(groups) == ["Marcus", "Sarah", "Eliza"]

    def test_counted_once_per_group(self) -> None:
        groups = [["Sarah", "SARAH", "sarah"], ["Marcus"], ["Marcus"]]
        assert rank_values(groups) == ["Marcus", "Sarah"]

    def test_empty(self) -> None:
        assert rank_values([]) == []
        assert rank_values([[], ["  "]]) == []


class TestAggregate:
    def test_union_of_chunk_tags(self) -> None:
        records = [
            _record(0, ChunkTags(characters=["Sarah"], themes=["trust"]), ContentType.DIALOGUE, 2.0),
            _record(1, ChunkTags(characters=["Marcus", "Sarah"]), ContentType.SETTING, 1.0),
            _record(2, ChunkTags(themes=["Betrayal"]), ContentType.DIALOGUE, 3.0),
        ]
        analytics = aggregate("p1", 1, records, _document("one two three four"))

        assert analytics.characters == ["Sarah", "Marcus"]
        assert analytics.themes == ["trust", "Betrayal"]
        assert analytics.content_types == [ContentType.DIALOGUE, ContentType.SETTING]
        assert analytics.total_chunks == 3
        assert analytics.total_word_count == 4
        assert analytics.average_importance == 2.0

    def test_word_count_comes_from_document_not_chunks(self) -> None:
        # Overlapping chunks would double-count words if summed.
        records = [_record(0, ChunkTags()), _record(1, ChunkTags())]
        analytics = aggregate("p1", 1, records, _document("alpha beta gamma"))
        assert analytics.total_word_count == 3

    def test_empty_project(self) -> None:
        analytics = aggregate("p1", None, [], None)
        assert analytics.total_chunks == 0
        assert analytics.average_importance == 1.0
        assert analytics.characters == []
        assert analytics.tone == "neutral"


class TestAnalyticsAggregator:
    @pytest.mark.asyncio
    async def test_fast_mode_cached_per_version(self, cache_provider) -> None:  # noqa: ANN001
        store = InMemoryVectorStore()
        await store.upsert_document(
            "p1", 1, [_record(0, ChunkTags(characters=["Sarah"]))], [[1.0, 0.0, 0.0]]
        )
        cache = CacheService(cache_provider, CacheNamespace.ANALYTICS)
        aggregator = AnalyticsAggregator(store, cache=cache)
        document = _document("Sarah walked.")

        first = await aggregator.get_analytics("p1", document)
        second = await aggregator.get_analytics("p1", document)

        assert first is second
        assert first.version == 1

    @pytest.mark.asyncio
    async def test_new_version_is_not_served_stale(self, cache_provider) -> None:  # noqa: ANN001
        store = InMemoryVectorStore()
        aggregator = AnalyticsAggregator(
            store, cache=CacheService(cache_provider, CacheNamespace.ANALYTICS)
        )
        await store.upsert_document(
            "p1", 1, [_record(0, ChunkTags(characters=["Sarah"]))], [[1.0, 0.0, 0.0]]
        )
        await aggregator.get_analytics("p1", _document("Sarah."))

        await store.upsert_document(
            "p1", 2, [_record(0, ChunkTags(characters=["Marcus"]), version=2)], [[1.0, 0.0, 0.0]]
        )
        analytics = await aggregator.get_analytics("p1", _document("Marcus.", version=2))

        assert analytics.version == 2
        assert analytics.characters == ["Marcus"]

    @pytest.mark.asyncio
    async def test_deep_mode_recomputes(self, cache_provider) -> None:  # noqa: ANN001
        store = InMemoryVectorStore()
        await store.upsert_document("p1", 1, [_record(0, ChunkTags())], [[1.0, 0.0, 0.0]])
        aggregator = AnalyticsAggregator(
            store, cache=CacheService(cache_provider, CacheNamespace.ANALYTICS)
        )

        fast = await aggregator.get_analytics("p1", None)
        deep = await aggregator.get_analytics("p1", None, AnalysisMode.DEEP)
        after = await aggregator.get_analytics("p1", None)

        assert deep is not fast
        assert deep.mode is AnalysisMode.DEEP
        assert after.mode is AnalysisMode.FAST
        assert after.computed_at == deep.computed_at

    @pytest.mark.asyncio
    async def test_unindexed_project(self) -> None:
        analytics = await AnalyticsAggregator(InMemoryVectorStore()).get_analytics("nope", None)
        assert analytics.version is None
        assert analytics.total_chunks == 0
