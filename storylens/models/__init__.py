"""StoryLens domain models -- re-exports all public model classes.

The models are organized by concern:
    - document.py  -- Document versions, chunks, embeddings, indexing results
    - tags.py      -- Tag categories, per-chunk tag sets, the stored chunk record
    - search.py    -- Vector-search filters/matches and query responses
    - analytics.py -- Project-level analytics and the fast/deep analysis mode
    - cache.py     -- Cache namespaces, entries and statistics
    - project.py   -- The project record read from the project store
"""

from __future__ import annotations

from storylens.models.analytics import AnalysisMode, ProjectAnalytics
from storylens.models.cache import CacheEntry, CacheNamespace, CacheStats
from storylens.models.document import Chunk, Document, Embedding, IndexingResult
from storylens.models.project import Project
from storylens.models.search import (
    ChunkFilter,
    SearchResponse,
    SearchResult,
    SearchSummary,
    VectorMatch,
    VectorStoreStats,
)
from storylens.models.tags import (
    CATEGORY_FIELDS,
    ChunkTags,
    ContentType,
    IndexedChunk,
    MetadataTag,
    TagCategory,
)

__all__ = [
    "AnalysisMode",
    "CATEGORY_FIELDS",
    "CacheEntry",
    "CacheNamespace",
    "CacheStats",
    "Chunk",
    "ChunkFilter",
    "ChunkTags",
    "ContentType",
    "Document",
    "Embedding",
    "IndexedChunk",
    "IndexingResult",
    "MetadataTag",
    "Project",
    "ProjectAnalytics",
    "SearchResponse",
    "SearchResult",
    "SearchSummary",
    "TagCategory",
    "VectorMatch",
    "VectorStoreStats",
]
