"""Integration tests for StoryIndex, wired offline through storylens.bootstrap.

Every test uses the hashing embedder and the keyword tagger, so the whole
pipeline (chunk -> embed || tag -> publish -> invalidate -> search /
analytics) runs without network access.
"""

from __future__ import annotations

import asyncio

import pytest

from storylens.bootstrap import build_story_index
from storylens.config.settings import Settings
from storylens.models.analytics import AnalysisMode
from storylens.models.project import Project
from storylens.models.tags import TagCategory
from storylens.services.story_index import StoryIndex
from storylens.utils.errors import IndexingFailedError, ProviderError


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "",
        "anthropic_api_key": "",
        "embedding_backend": "hashing",
        "analysis_backend": "keywords",
        "hashing_dimension": 256,
        "chunk_target_words": 40,
        "backoff_base_seconds": 0.0,
        "max_backoff_seconds": 0.0,
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _build(**kwargs) -> StoryIndex:
    return build_story_index(_settings(), **kwargs)


def _chunk_version(chunk_id: str) -> int:
    return int(chunk_id.split(":")[1])


# ======================================================================
# Indexing
# ======================================================================


class TestIndexing:
    @pytest.mark.asyncio
    async def test_index_then_reindex_identical_is_noop(self, manuscript: str) -> None:
        index = _build()

        first = await index.index_document("novel", manuscript)
        second = await index.index_document("novel", manuscript)

        assert first.version == 1
        assert first.chunks_indexed == first.chunks_total > 1
        assert second.unchanged is True
        assert second.version == 1
        assert second.chunks_total == first.chunks_indexed
        assert second.chunks_indexed == 0

    @pytest.mark.asyncio
    async def test_changed_content_bumps_version(self, manuscript: str) -> None:
        index = _build()
        await index.index_document("novel", manuscript)

        result = await index.index_document("novel", manuscript + "\n\nThe end.")

        assert result.version == 2
        assert result.unchanged is False
        response = await index.search("novel", "harbor")
        assert response.summary.index_version == 2
        assert all(_chunk_version(r.chunk_id) == 2 for r in response.results)

    @pytest.mark.asyncio
    async def test_empty_document_indexes_nothing(self) -> None:
        index = _build()
        result = await index.index_document("blank", "   ")
        assert result.chunks_total == 0
        assert (await index.search("blank", "anything")).results == []

    @pytest.mark.asyncio
    async def test_failed_chunks_are_excluded(self, manuscript: str, embedder_factory) -> None:  # noqa: ANN001
        embedder = embedder_factory(
            dimension=256, fail_marker="lighthouse", fail_with=ProviderError("rejected")
        )
        index = _build(embedding_provider=embedder)

        result = await index.index_document("novel", manuscript)

        assert result.failed_chunk_ids
        assert 0 < result.chunks_indexed == result.chunks_total - len(result.failed_chunk_ids)
        response = await index.search("novel", "harbor fog", limit=50)
        returned = {r.chunk_id for r in response.results}
        assert returned.isdisjoint(result.failed_chunk_ids)

    @pytest.mark.asyncio
    async def test_all_chunks_failing_raises(self, manuscript: str, embedder_factory) -> None:  # noqa: ANN001
        embedder = embedder_factory(fail_times=10_000, fail_with=ProviderError("down"))
        index = _build(embedding_provider=embedder)

        with pytest.raises(IndexingFailedError):
            await index.index_document("novel", manuscript)
        assert (await index.search("novel", "harbor")).results == []


# ======================================================================
# Search
# ======================================================================


class TestSearch:
    @pytest.mark.asyncio
    async def test_character_type_returns_character_tagged_chunks(self, manuscript: str) -> None:
        index = _build()
        await index.project_store.save_project(
            Project(project_id="novel", title="The Lighthouse", content=manuscript)
        )
        await index.handle_project_saved("novel")

        response = await index.search("novel", "Sarah Marcus relationship", type="character")

        assert response.results
        for result in response.results:
            names = {t.value for t in result.tags if t.category is TagCategory.CHARACTER}
            assert names & {"Sarah", "Marcus"}
            assert result.title.endswith("The Lighthouse")
        assert set(response.summary.top_characters) <= {"Sarah", "Marcus"}

    @pytest.mark.asyncio
    async def test_limit_and_score_order(self, manuscript: str) -> None:
        index = _build()
        await index.index_document("novel", manuscript)

        response = await index.search("novel", "betrayal friendship trust", limit=2)

        assert len(response.results) <= 2
        scores = [r.score for r in response.results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.asyncio
    async def test_search_during_reindex_sees_one_version(
        self, dialogue_scene: str, setting_scene: str, embedder_factory  # noqa: ANN001
    ) -> None:
        # Every embed call suspends, so searches are in flight across the publish.
        index = _build(embedding_provider=embedder_factory(dimension=256, delay=0.01))
        await index.index_document("novel", setting_scene + "\n\n" + dialogue_scene)

        reindex = asyncio.create_task(
            index.index_document("novel", dialogue_scene + "\n\n" + setting_scene)
        )
        responses = [
            await index.search("novel", f"harbor fog {i}", limit=50) for i in range(8)
        ]
        result = await reindex

        assert result.version == 2
        for response in responses:
            versions = {_chunk_version(r.chunk_id) for r in response.results}
            assert versions == {response.summary.index_version}


# ======================================================================
# Analytics and caching
# ======================================================================


class TestAnalytics:
    @pytest.mark.asyncio
    async def test_analytics_roll_up(self, manuscript: str) -> None:
        index = _build()
        await index.index_document("novel", manuscript)

        analytics = await index.get_project_analytics("novel")

        assert {"Sarah", "Marcus"} <= set(analytics.characters)
        assert "betrayal" in analytics.themes
        assert analytics.total_word_count == len(manuscript.split())
        assert analytics.version == 1

    @pytest.mark.asyncio
    async def test_fast_mode_served_from_cache_until_reindex(
        self, manuscript: str, dialogue_scene: str
    ) -> None:
        index = _build()
        await index.index_document("novel", manuscript)

        first = await index.get_project_analytics("novel")
        again = await index.get_project_analytics("novel", "fast")
        assert again is first

        await index.index_document("novel", manuscript)  # unchanged: cache kept
        assert await index.get_project_analytics("novel") is first

        await index.index_document("novel", dialogue_scene)
        fresh = await index.get_project_analytics("novel")
        assert fresh.version == 2
        assert fresh.total_word_count == len(dialogue_scene.split())

    @pytest.mark.asyncio
    async def test_deep_mode_recomputes(self, manuscript: str) -> None:
        index = _build()
        await index.index_document("novel", manuscript)
        fast = await index.get_project_analytics("novel")
        deep = await index.get_project_analytics("novel", AnalysisMode.DEEP)
        assert deep is not fast
        assert deep.mode is AnalysisMode.DEEP

    @pytest.mark.asyncio
    async def test_invalidate_project_clears_project_caches(self, manuscript: str) -> None:
        index = _build()
        await index.index_document("novel", manuscript)
        await index.get_project_analytics("novel")
        await index.search("novel", "harbor")

        await index.invalidate_project("novel")

        stats = await index.cache_stats()
        assert stats["analytics"].keys == 0
        assert stats["search"].keys == 0
        assert stats["embeddings"].keys > 0


# ======================================================================
# Project lifecycle
# ======================================================================


class TestProjectLifecycle:
    @pytest.mark.asyncio
    async def test_handle_project_saved_unknown_project(self) -> None:
        with pytest.raises(IndexingFailedError):
            await _build().handle_project_saved("missing")

    @pytest.mark.asyncio
    async def test_delete_project(self, manuscript: str) -> None:
        index = _build()
        await index.index_document("novel", manuscript)
        await index.get_project_analytics("novel")

        await index.delete_project("novel")

        assert (await index.search("novel", "harbor")).results == []
        analytics = await index.get_project_analytics("novel")
        assert analytics.total_chunks == 0
        result = await index.index_document("novel", manuscript)
        assert result.version == 1

    @pytest.mark.asyncio
    async def test_delete_during_index_discards_the_run(
        self, manuscript: str, embedder_factory  # noqa: ANN001
    ) -> None:
        index = _build(embedding_provider=embedder_factory(dimension=256, delay=0.05))
        running = asyncio.create_task(index.index_document("novel", manuscript))
        await asyncio.sleep(0.01)

        await index.delete_project("novel")

        with pytest.raises(IndexingFailedError):
            await running
        assert (await index.search("novel", "harbor")).results == []
        assert (await index.get_project_analytics("novel")).total_chunks == 0
        assert (await index.index_document("novel", manuscript)).version == 1

    @pytest.mark.asyncio
    async def test_runs_queued_around_delete_stay_serialised(
        self, manuscript: str, embedder_factory  # noqa: ANN001
    ) -> None:
        index = _build(embedding_provider=embedder_factory(dimension=256, delay=0.02))
        await index.index_document("novel", manuscript)

        discarded = asyncio.create_task(index.index_document("novel", manuscript + "\n\nOne."))
        await asyncio.sleep(0.005)
        deleting = asyncio.create_task(index.delete_project("novel"))
        queued = asyncio.create_task(index.index_document("novel", manuscript + "\n\nTwo."))
        await deleting
        late = asyncio.create_task(index.index_document("novel", manuscript + "\n\nThree."))

        outcome = await asyncio.gather(discarded, queued, late, return_exceptions=True)

        assert isinstance(outcome[0], IndexingFailedError)
        assert (outcome[1].version, outcome[2].version) == (1, 2)
        response = await index.search("novel", "harbor", limit=50)
        assert {_chunk_version(r.chunk_id) for r in response.results} == {2}

    @pytest.mark.asyncio
    async def test_start_and_stop_pruning(self) -> None:
        index = _build()
        index.start()
        await index.stop()
