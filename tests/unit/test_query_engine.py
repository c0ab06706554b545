"""Unit tests for QueryEngine -- filtering, ranking, formatting and failures."""

from __future__ import annotations

import pytest

from storylens.models.cache import CacheNamespace
from storylens.models.document import Chunk
from storylens.models.search import ChunkFilter
from storylens.models.tags import ChunkTags, ContentType, IndexedChunk, TagCategory
from storylens.providers.vector_store.memory_vector_store import InMemoryVectorStore
from storylens.services.cache_service import CacheService
from storylens.services.embedding_service import EmbeddingService
from storylens.services.query_engine import (
    SNIPPET_MAX_CHARS,
    QueryEngine,
    make_snippet,
    make_title,
    resolve_type_filter,
)
from storylens.utils.errors import RateLimitError, SearchFailedError

_PASSAGES = [
    (
        '"You lied to me," Marcus said. Sarah looked away. The betrayal hung between them.',
        ChunkTags(characters=["Marcus", "Sarah"], themes=["betrayal"]),
        ContentType.DIALOGUE,
    ),
    (
        "The harbor was quiet. Fog rolled over the lighthouse and the empty pier.",
        ChunkTags(),
        ContentType.SETTING,
    ),
    (
        "Sarah remembered the promise. Trust had always been fragile between them.",
        ChunkTags(characters=["Sarah"], themes=["trust"]),
        ContentType.CHARACTER,
    ),
]


async def _indexed_engine(embedder, cache=None, **kwargs) -> tuple[QueryEngine, InMemoryVectorStore]:  # noqa: ANN001
    store = InMemoryVectorStore()
    service = EmbeddingService(embedder, backoff_base=0.0, max_backoff=0.0)
    records = []
    for order, (text, tags, content_type) in enumerate(_PASSAGES):
        records.append(
            IndexedChunk(
                chunk=Chunk(
                    chunk_id=Chunk.make_id("p1", 1, order),
                    document_id="p1",
                    version=1,
                    order=order,
                    start_offset=0,
                    end_offset=len(text),
                    text=text,
                    chapter_label="Chapter 1",
                ),
                tags=tags,
                content_type=content_type,
                embedder_version=service.version,
            )
        )
    vectors = await service.embed_texts([text for text, _, _ in _PASSAGES])
    await store.upsert_document("p1", 1, records, vectors)
    return QueryEngine(store, service, cache=cache, **kwargs), store


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestResolveTypeFilter:
    @pytest.mark.parametrize(
        "raw,category",
        [
            ("character", TagCategory.CHARACTER),
            ("Characters", TagCategory.CHARACTER),
            ("plotElement", TagCategory.PLOT_ELEMENT),
            ("semantic_tags", TagCategory.SEMANTIC_TAG),
        ],
    )
    def test_category_aliases(self, raw: str, category: TagCategory) -> None:
        assert resolve_type_filter(raw) == ChunkFilter(category=category)

    def test_content_type(self) -> None:
        assert resolve_type_filter("dialogue") == ChunkFilter(content_type=ContentType.DIALOGUE)

    def test_no_filter(self) -> None:
        assert resolve_type_filter(None) is None
        assert resolve_type_filter("  ") is None

    def test_unknown_type(self) -> None:
        with pytest.raises(ValueError):
            resolve_type_filter("spaceship")


class TestFormatting:
    def test_title_with_character(self) -> None:
        assert make_title(ContentType.DIALOGUE, ["Sarah", "Marcus"], "The Lighthouse") == (
            "Dialogue: Sarah — The Lighthouse"
        )

    def test_title_without_character(self) -> None:
        assert make_title(ContentType.SETTING, [], "The Lighthouse") == (
            "Setting from The Lighthouse"
        )

    def test_snippet_prefers_sentence_with_query_term(self) -> None:
        text = "The harbor was quiet. Sarah felt the betrayal deeply. Night fell."
        assert make_snippet(text, "betrayal") == "Sarah felt the betrayal deeply."

    def test_snippet_defaults_to_first_sentence(self) -> None:
        assert make_snippet("First one. Second one.", "zebra") == "First one."

    def test_snippet_truncated(self) -> None:
        snippet = make_snippet("word " * 200, "word")
        assert len(snippet) <= SNIPPET_MAX_CHARS
        assert snippet.endswith("...")


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class TestSearch:
    @pytest.mark.asyncio
    async def test_results_ranked_and_self_describing(self, fake_embedder) -> None:  # noqa: ANN001
        engine, _ = await _indexed_engine(fake_embedder)

        response = await engine.search("p1", "harbor lighthouse fog", project_title="Tides")

        assert response.results
        top = response.results[0]
        assert top.chunk_id == "p1:1:1"
        assert top.title == "Setting from Tides"
        assert top.chapter_label == "Chapter 1"
        scores = [r.score for r in response.results]
        assert scores == sorted(scores, reverse=True)
        assert response.summary.index_version == 1
        assert response.summary.embedder_version == fake_embedder.get_version()

    @pytest.mark.asyncio
    async def test_character_filter(self, fake_embedder) -> None:  # noqa: ANN001
        engine, _ = await _indexed_engine(fake_embedder)

        response = await engine.search("p1", "relationships", type_filter="character")

        assert {r.chunk_id for r in response.results} == {"p1:1:0", "p1:1:2"}
        for result in response.results:
            assert any(tag.category is TagCategory.CHARACTER for tag in result.tags)
        assert response.summary.top_characters[0] == "Sarah"

    @pytest.mark.asyncio
    async def test_content_type_filter(self, fake_embedder) -> None:  # noqa: ANN001
        engine, _ = await _indexed_engine(fake_embedder)
        response = await engine.search("p1", "anything", type_filter="dialogue")
        assert [r.chunk_id for r in response.results] == ["p1:1:0"]
        assert response.results[0].title.startswith("Dialogue: Marcus")

    @pytest.mark.asyncio
    async def test_limit_clamped(self, fake_embedder) -> None:  # noqa: ANN001
        engine, _ = await _indexed_engine(fake_embedder, max_limit=2)
        assert len((await engine.search("p1", "Sarah", limit=1)).results) == 1
        assert len((await engine.search("p1", "Sarah", limit=500)).results) == 2
        assert engine.clamp_limit(None) == 10

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -3])
    async def test_non_positive_limit_returns_nothing(self, fake_embedder, limit: int) -> None:  # noqa: ANN001
        engine, _ = await _indexed_engine(fake_embedder)
        calls = len(fake_embedder.calls)

        response = await engine.search("p1", "Sarah", limit=limit)

        assert response.results == []
        assert response.summary.index_version == 1
        assert engine.clamp_limit(limit) == 0
        assert len(fake_embedder.calls) == calls

    @pytest.mark.asyncio
    async def test_unknown_type_returns_empty(self, fake_embedder) -> None:  # noqa: ANN001
        engine, _ = await _indexed_engine(fake_embedder)
        response = await engine.search("p1", "Sarah", type_filter="spaceship")
        assert response.results == []

    @pytest.mark.asyncio
    async def test_unindexed_project_and_blank_query(self, fake_embedder) -> None:  # noqa: ANN001
        engine, _ = await _indexed_engine(fake_embedder)
        assert (await engine.search("other", "Sarah")).results == []
        assert (await engine.search("p1", "   ")).results == []

    @pytest.mark.asyncio
    async def test_key_findings_from_high_scoring_results(self, fake_embedder) -> None:  # noqa: ANN001
        engine, _ = await _indexed_engine(fake_embedder, key_finding_min_score=0.0)
        response = await engine.search("p1", "betrayal")
        assert response.summary.key_findings
        assert len(response.summary.key_findings) <= 3
        assert "betrayal" in response.summary.key_findings[0].lower()

    @pytest.mark.asyncio
    async def test_responses_cached_per_version(self, fake_embedder, cache_provider) -> None:  # noqa: ANN001
        cache = CacheService(cache_provider, CacheNamespace.SEARCH)
        engine, _ = await _indexed_engine(fake_embedder, cache=cache)

        first = await engine.search("p1", "harbor")
        calls = len(fake_embedder.calls)
        second = await engine.search("p1", "harbor")

        assert first == second
        assert len(fake_embedder.calls) == calls


class TestSearchFailures:
    @pytest.mark.asyncio
    async def test_embedding_failure_becomes_search_failed(self, embedder_factory) -> None:  # noqa: ANN001
        embedder = embedder_factory()
        engine, _ = await _indexed_engine(embedder)
        embedder._fail_times = 1
        embedder._fail_with = RateLimitError(retry_after=12.0)

        with pytest.raises(SearchFailedError) as exc_info:
            await engine.search("p1", "Sarah")

        assert exc_info.value.retry_after == 12.0
        assert exc_info.value.retry_hint

    @pytest.mark.asyncio
    async def test_dimension_mismatch_asks_for_reindex(self, embedder_factory) -> None:  # noqa: ANN001
        engine, store = await _indexed_engine(embedder_factory(dimension=64))
        other = QueryEngine(
            store, EmbeddingService(embedder_factory(dimension=32, version="fake/64"))
        )

        with pytest.raises(SearchFailedError) as exc_info:
            await other.search("p1", "Sarah")

        assert "Re-index" in exc_info.value.retry_hint
