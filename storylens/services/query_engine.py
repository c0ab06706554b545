"""Semantic search over a project's current index version.

Flow: **embed query -> vector search (oversampled, filtered) -> rank ->
format -> summarise**.  Responses are cached in the ``search`` namespace
under ``(project_id, version, query, type, limit)`` so a new index version
never serves an old answer.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import TYPE_CHECKING

import structlog

from storylens.models.project import DEFAULT_PROJECT_TITLE
from storylens.models.search import ChunkFilter, SearchResponse, SearchResult, SearchSummary
from storylens.models.tags import ContentType, TagCategory
from storylens.services.cache_service import CacheKeys
from storylens.utils.errors import (
    DimensionMismatchError,
    RateLimitError,
    SearchFailedError,
    StoryLensError,
)
from storylens.utils.text import split_sentences, tokenize

if TYPE_CHECKING:
    from storylens.interfaces.vector_store_provider import IVectorStoreProvider
    from storylens.models.search import VectorMatch
    from storylens.services.cache_service import CacheService
    from storylens.services.embedding_service import EmbeddingService

logger = structlog.get_logger(logger_name=__name__)

SNIPPET_MAX_CHARS = 240
_SUMMARY_TOP_N = 5
_MAX_KEY_FINDINGS = 3
_DEFAULT_RETRY_AFTER = 5.0

# Accepted spellings of each tag category in the ``type`` filter.
_CATEGORY_ALIASES: dict[str, TagCategory] = {
    "character": TagCategory.CHARACTER,
    "characters": TagCategory.CHARACTER,
    "theme": TagCategory.THEME,
    "themes": TagCategory.THEME,
    "emotion": TagCategory.EMOTION,
    "emotions": TagCategory.EMOTION,
    "plotelement": TagCategory.PLOT_ELEMENT,
    "plotelements": TagCategory.PLOT_ELEMENT,
    "plot_element": TagCategory.PLOT_ELEMENT,
    "plot_elements": TagCategory.PLOT_ELEMENT,
    "semantictag": TagCategory.SEMANTIC_TAG,
    "semantictags": TagCategory.SEMANTIC_TAG,
    "semantic_tag": TagCategory.SEMANTIC_TAG,
    "semantic_tags": TagCategory.SEMANTIC_TAG,
}


def resolve_type_filter(type_filter: str | None) -> ChunkFilter | None:
    """Map a user-facing ``type`` onto a :class:`ChunkFilter`.

    Returns ``None`` for no filter.  Raises ``ValueError`` for a type that
    is neither a tag category nor a content type.
    """
    if type_filter is None or not type_filter.strip():
        return None
    key = type_filter.strip().lower()
    if key in _CATEGORY_ALIASES:
        return ChunkFilter(category=_CATEGORY_ALIASES[key])
    return ChunkFilter(content_type=ContentType(key))


def make_title(content_type: ContentType, characters: list[str], project_title: str) -> str:
    label = content_type.value.capitalize()
    if characters:
        return f"{label}: {characters[0]} — {project_title}"
    return f"{label} from {project_title}"


def make_snippet(text: str, query: str, max_chars: int = SNIPPET_MAX_CHARS) -> str:
    """First sentence mentioning a query term, else the first sentence."""
    sentences = split_sentences(text)
    if not sentences:
        return ""
    terms = set(tokenize(query))
    chosen = sentences[0]
    if terms:
        for sentence in sentences:
            if terms & set(tokenize(sentence)):
                chosen = sentence
                break
    chosen = re.sub(r"\s+", " ", chosen).strip()
    if len(chosen) > max_chars:
        chosen = chosen[: max_chars - 3].rstrip() + "..."
    return chosen


class QueryEngine:
    """Answers free-text queries against the vector index.

    Parameters
    ----------
    vector_store:
        Versioned chunk index.
    embedding_service:
        Must be the same embedder that indexed the project; its version is
        passed to the store so only comparable vectors are scored.
    cache:
        ``search`` namespace cache.  Optional.
    default_limit / max_limit:
        Result count when none is given, and the clamp ceiling.
    oversample_factor:
        Multiplier applied to ``limit`` for the vector-search ``top_k``.
    key_finding_min_score:
        Minimum score for a result's snippet to become a key finding.
    """

    def __init__(
        self,
        vector_store: IVectorStoreProvider,
        embedding_service: EmbeddingService,
        cache: CacheService | None = None,
        default_limit: int = 10,
        max_limit: int = 50,
        oversample_factor: int = 3,
        key_finding_min_score: float = 0.3,
    ) -> None:
        self._vector_store = vector_store
        self._embedding = embedding_service
        self._cache = cache
        self._default_limit = default_limit
        self._max_limit = max_limit
        self._oversample = max(1, oversample_factor)
        self._key_finding_min_score = key_finding_min_score

    def clamp_limit(self, limit: int | None) -> int:
        """Cap *limit* at ``max_limit``; zero or negative limits become 0."""
        if limit is None:
            return self._default_limit
        return max(0, min(int(limit), self._max_limit))

    async def search(
        self,
        project_id: str,
        query: str,
        type_filter: str | None = None,
        limit: int | None = None,
        project_title: str = DEFAULT_PROJECT_TITLE,
    ) -> SearchResponse:
        """Return ranked, self-describing results for *query*.

        Raises
        ------
        SearchFailedError
            If the query could not be embedded or the index lookup failed.
        """
        limit = self.clamp_limit(limit)
        version = await self._vector_store.current_version(project_id)
        if version is None or limit == 0 or not query.strip():
            return SearchResponse(
                project_id=project_id,
                query=query,
                summary=SearchSummary(embedder_version=self._embedding.version, index_version=version),
            )

        async def _compute() -> SearchResponse:
            return await self._search_uncached(
                project_id, query, type_filter, limit, project_title, version
            )

        if self._cache is None:
            return await _compute()
        key = CacheKeys.search(project_id, version, query, type_filter, limit)
        return await self._cache.get_or_set(key, _compute)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _search_uncached(
        self,
        project_id: str,
        query: str,
        type_filter: str | None,
        limit: int,
        project_title: str,
        version: int,
    ) -> SearchResponse:
        try:
            chunk_filter = resolve_type_filter(type_filter)
        except ValueError:
            logger.info("search_unknown_type_filter", project_id=project_id, type_filter=type_filter)
            return SearchResponse(
                project_id=project_id,
                query=query,
                summary=SearchSummary(embedder_version=self._embedding.version, index_version=version),
            )

        query_vector = await self._embed_query(query)

        try:
            matches = await self._vector_store.search(
                project_id,
                query_vector,
                top_k=limit * self._oversample,
                chunk_filter=chunk_filter,
                embedder_version=self._embedding.version,
            )
        except DimensionMismatchError as exc:
            logger.error("search_index_lookup_failed", project_id=project_id, error=str(exc))
            raise SearchFailedError(
                message=f"Index lookup failed: {exc.message}",
                provider_name=self._vector_store.get_provider_name(),
                retry_hint="The project index was built with a different embedder. Re-index the project.",
            ) from exc

        results = [self._to_result(match, query, project_title) for match in matches[:limit]]
        # The store may have published a newer version since `version` was read.
        served_version = matches[0].record.chunk.version if matches else version
        summary = self._summarise(matches, results, served_version)

        logger.info(
            "search_complete",
            project_id=project_id,
            version=served_version,
            type_filter=type_filter,
            matches=len(matches),
            returned=len(results),
        )
        return SearchResponse(project_id=project_id, query=query, results=results, summary=summary)

    async def _embed_query(self, query: str) -> list[float]:
        try:
            return await self._embedding.embed_query(query)
        except StoryLensError as exc:
            retry_after = exc.retry_after if isinstance(exc, RateLimitError) else None
            logger.warning(
                "search_query_embedding_failed",
                provider=self._embedding.provider_name,
                error=str(exc),
            )
            raise SearchFailedError(
                message=f"Could not embed the search query: {exc.message}",
                provider_name=self._embedding.provider_name,
                retry_after=retry_after if retry_after is not None else _DEFAULT_RETRY_AFTER,
            ) from exc

    def _to_result(self, match: VectorMatch, query: str, project_title: str) -> SearchResult:
        record = match.record
        return SearchResult(
            chunk_id=record.chunk_id,
            score=round(match.score, 6),
            title=make_title(record.content_type, record.tags.characters, project_title),
            chapter_label=record.chunk.chapter_label,
            tags=record.tags.to_metadata_tags(record.chunk_id),
            snippet=make_snippet(record.chunk.text, query),
            order=record.order,
            content_type=record.content_type,
        )

    def _summarise(
        self, matches: list[VectorMatch], results: list[SearchResult], version: int
    ) -> SearchSummary:
        characters: Counter[str] = Counter()
        themes: Counter[str] = Counter()
        content_types: list[ContentType] = []
        for match in matches[: len(results)]:
            characters.update(match.record.tags.characters)
            themes.update(match.record.tags.themes)
            if match.record.content_type not in content_types:
                content_types.append(match.record.content_type)

        findings: list[str] = []
        for result in results:
            if result.score < self._key_finding_min_score or not result.snippet:
                continue
            if result.snippet not in findings:
                findings.append(result.snippet)
            if len(findings) == _MAX_KEY_FINDINGS:
                break

        return SearchSummary(
            total_matches=len(matches),
            top_characters=[name for name, _ in characters.most_common(_SUMMARY_TOP_N)],
            top_themes=[theme for theme, _ in themes.most_common(_SUMMARY_TOP_N)],
            content_types=content_types,
            key_findings=findings,
            embedder_version=self._embedding.version,
            index_version=version,
        )
