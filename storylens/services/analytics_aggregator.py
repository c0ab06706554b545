"""Rolls per-chunk metadata into project-level analytics.

Analytics are computed from the *current* index version only and cached in
the ``analytics`` namespace under ``(project_id, version)``.  Because a new
publish bumps the version and invalidates the project's keys, a cached
value can never describe content older than the latest save.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from storylens.models.analytics import AnalysisMode, ProjectAnalytics
from storylens.models.tags import CATEGORY_FIELDS, TagCategory
from storylens.services.cache_service import CacheKeys
from storylens.services.content_classifier import analyze_tone, analyze_writing_style

if TYPE_CHECKING:
    from storylens.interfaces.vector_store_provider import IVectorStoreProvider
    from storylens.models.document import Document
    from storylens.models.tags import ContentType, IndexedChunk
    from storylens.services.cache_service import CacheService

logger = structlog.get_logger(logger_name=__name__)


def rank_values(groups: list[list[str]]) -> list[str]:
    """Distinct values across *groups*, most frequent first, then first seen.

    Values are compared case-insensitively and reported with the casing
    of their first appearance.  A value counts once per group.
    """
    counts: Counter[str] = Counter()
    display: dict[str, str] = {}
    first_seen: dict[str, int] = {}
    for group in groups:
        seen_here: set[str] = set()
        for value in group:
            key = value.strip().casefold()
            if not key or key in seen_here:
                continue
            seen_here.add(key)
            counts[key] += 1
            if key not in display:
                display[key] = value.strip()
                first_seen[key] = len(first_seen)
    ordered = sorted(counts, key=lambda k: (-counts[k], first_seen[k]))
    return [display[k] for k in ordered]


def aggregate(
    project_id: str,
    version: int | None,
    records: list[IndexedChunk],
    document: Document | None,
    mode: AnalysisMode = AnalysisMode.FAST,
) -> ProjectAnalytics:
    """Build :class:`ProjectAnalytics` from indexed chunk records."""
    ordered = sorted(records, key=lambda r: r.order)

    tag_lists = {
        category: rank_values([r.tags.values(category) for r in ordered])
        for category in CATEGORY_FIELDS
    }

    type_counts: Counter[ContentType] = Counter(r.content_type for r in ordered)
    type_first: dict[ContentType, int] = {}
    for i, record in enumerate(ordered):
        type_first.setdefault(record.content_type, i)
    content_types = sorted(type_counts, key=lambda t: (-type_counts[t], type_first[t]))

    average_importance = (
        round(sum(r.importance for r in ordered) / len(ordered), 2) if ordered else 1.0
    )

    text = document.text if document is not None else ""
    return ProjectAnalytics(
        project_id=project_id,
        version=version,
        characters=tag_lists[TagCategory.CHARACTER],
        themes=tag_lists[TagCategory.THEME],
        emotions=tag_lists[TagCategory.EMOTION],
        plot_elements=tag_lists[TagCategory.PLOT_ELEMENT],
        semantic_tags=tag_lists[TagCategory.SEMANTIC_TAG],
        content_types=content_types,
        total_chunks=len(ordered),
        total_word_count=document.word_count if document is not None else 0,
        average_importance=average_importance,
        writing_style=analyze_writing_style(text),
        tone=analyze_tone(text),
        mode=mode,
        computed_at=datetime.now(timezone.utc),
    )


class AnalyticsAggregator:
    """Serves project analytics, cached per index version.

    Parameters
    ----------
    vector_store:
        Source of the current version's chunk records.
    cache:
        ``analytics`` namespace cache.  Optional.
    """

    def __init__(
        self,
        vector_store: IVectorStoreProvider,
        cache: CacheService | None = None,
    ) -> None:
        self._vector_store = vector_store
        self._cache = cache

    async def get_analytics(
        self,
        project_id: str,
        document: Document | None,
        mode: AnalysisMode = AnalysisMode.FAST,
    ) -> ProjectAnalytics:
        """Return analytics for the current version of *project_id*.

        ``FAST`` serves a cached value when present; ``DEEP`` recomputes and
        refreshes the cache.
        """
        version = await self._vector_store.current_version(project_id)

        async def _compute() -> ProjectAnalytics:
            records = await self._vector_store.list_chunks(project_id)
            analytics = aggregate(project_id, version, records, document, mode)
            logger.info(
                "project_analytics_computed",
                project_id=project_id,
                version=version,
                mode=mode.value,
                chunks=analytics.total_chunks,
                characters=len(analytics.characters),
            )
            return analytics

        if self._cache is None:
            return await _compute()

        key = CacheKeys.analytics(project_id, version)
        if mode is AnalysisMode.DEEP:
            analytics = await _compute()
            await self._cache.set(key, analytics)
            return analytics
        analytics = await self._cache.get_or_set(key, _compute)
        # A DEEP refresh shares the key; report the mode of this request.
        if analytics.mode is not mode:
            analytics = analytics.model_copy(update={"mode": mode})
        return analytics
