"""StoryIndex -- the engine's public facade.

Exposes the operations callers use (index, search, analytics,
invalidation) and owns the cache namespaces shared by the indexing
service, the aggregator and the query engine.  Every collaborator is
injected; :func:`storylens.bootstrap.build_story_index` assembles one from
:class:`~storylens.config.settings.Settings`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from storylens.models.analytics import AnalysisMode
from storylens.models.cache import CacheNamespace
from storylens.models.project import DEFAULT_PROJECT_TITLE
from storylens.utils.errors import IndexingFailedError

if TYPE_CHECKING:
    from storylens.interfaces.project_store import IProjectStore
    from storylens.models.analytics import ProjectAnalytics
    from storylens.models.cache import CacheStats
    from storylens.models.document import IndexingResult
    from storylens.models.search import SearchResponse
    from storylens.services.analytics_aggregator import AnalyticsAggregator
    from storylens.services.cache_service import CacheService
    from storylens.services.ingestion.indexing_service import IndexingService
    from storylens.services.query_engine import QueryEngine

logger = structlog.get_logger(logger_name=__name__)


class StoryIndex:
    """Semantic index and analytics over writers' project text.

    Parameters
    ----------
    indexing_service:
        Runs the document-save pipeline and project cache invalidation.
    query_engine:
        Answers searches.
    aggregator:
        Computes and caches project analytics.
    caches:
        Every namespace cache in use, keyed by namespace.
    project_store:
        Source of project content and titles.
    prune_interval:
        Seconds between background expiry sweeps once :meth:`start` runs.
    """

    def __init__(
        self,
        indexing_service: IndexingService,
        query_engine: QueryEngine,
        aggregator: AnalyticsAggregator,
        caches: dict[CacheNamespace, CacheService],
        project_store: IProjectStore,
        prune_interval: float = 60.0,
    ) -> None:
        self._indexing = indexing_service
        self._query_engine = query_engine
        self._aggregator = aggregator
        self._caches = caches
        self._project_store = project_store
        self._prune_interval = prune_interval

    @property
    def project_store(self) -> IProjectStore:
        return self._project_store

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start periodic expiry sweeps on every cache namespace."""
        for cache in self._caches.values():
            cache.start_pruning(self._prune_interval)

    async def stop(self) -> None:
        for cache in self._caches.values():
            await cache.stop_pruning()

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def index_document(self, project_id: str, content: str) -> IndexingResult:
        """Index *content* as the current text of *project_id*.

        Identical content to the current version is a no-op.  Project caches
        are invalidated before this returns.

        Raises
        ------
        IndexingFailedError
            If no chunk could be embedded or the publish was rejected.
        """
        project = await self._project_store.get_project(project_id)
        owner_id = project.owner_id if project is not None else ""
        return await self._indexing.index_document(project_id, content, owner_id=owner_id)

    async def search(
        self,
        project_id: str,
        query: str,
        type: str | None = None,  # noqa: A002
        limit: int | None = None,
    ) -> SearchResponse:
        """Search the project's current index version.

        Raises
        ------
        SearchFailedError
            If the query could not be embedded or the lookup failed.
        """
        project = await self._project_store.get_project(project_id)
        title = project.title if project is not None else DEFAULT_PROJECT_TITLE
        return await self._query_engine.search(
            project_id, query, type_filter=type, limit=limit, project_title=title
        )

    async def get_project_analytics(
        self, project_id: str, mode: AnalysisMode | str = AnalysisMode.FAST
    ) -> ProjectAnalytics:
        mode = AnalysisMode(mode)
        return await self._aggregator.get_analytics(
            project_id, self._indexing.current_document(project_id), mode
        )

    async def invalidate_project(self, project_id: str) -> None:
        """Drop every analytics, search and context entry for *project_id*."""
        await self._indexing.invalidate(project_id)

    # ------------------------------------------------------------------
    # Project lifecycle hooks
    # ------------------------------------------------------------------

    async def handle_project_saved(self, project_id: str) -> IndexingResult:
        """Re-index *project_id* from the project store's current content."""
        project = await self._project_store.get_project(project_id)
        if project is None:
            raise IndexingFailedError(
                message=f"Project {project_id} not found in the project store",
                project_id=project_id,
            )
        return await self._indexing.index_document(
            project_id, project.content, owner_id=project.owner_id
        )

    async def delete_project(self, project_id: str) -> None:
        """Remove the project's index data, document history and cache entries.

        An index run in flight for the project is discarded rather than
        published after the delete.
        """
        removed = await self._indexing.forget(project_id)
        logger.info("project_deleted", project_id=project_id, chunks=removed)

    async def cache_stats(self) -> dict[str, CacheStats]:
        return {
            namespace.value: await cache.stats() for namespace, cache in self._caches.items()
        }
