"""Vector-search and query-response models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from storylens.models.tags import ContentType, IndexedChunk, MetadataTag, TagCategory


class ChunkFilter(BaseModel):
    """Optional metadata restriction applied during vector search.

    All set fields must match (logical AND).  ``category`` keeps chunks
    with at least one tag in that category; ``tag_value`` matches a tag
    value in any category, case-insensitively.
    """

    model_config = ConfigDict(frozen=True)

    category: TagCategory | None = None
    content_type: ContentType | None = None
    tag_value: str | None = None

    def matches(self, record: IndexedChunk) -> bool:
        if self.category is not None and not record.tags.values(self.category):
            return False
        if self.content_type is not None and record.content_type != self.content_type:
            return False
        if self.tag_value is not None and not record.tags.has_value(self.tag_value):
            return False
        return True


class VectorMatch(BaseModel):
    """A stored record returned by the vector index with its similarity score."""

    model_config = ConfigDict(frozen=True)

    record: IndexedChunk
    score: float = Field(description="Cosine similarity between query and chunk, in [-1, 1].")


class VectorStoreStats(BaseModel):
    """Snapshot of what the vector index currently holds."""

    model_config = ConfigDict(frozen=True)

    projects: int = Field(default=0, ge=0)
    chunks: int = Field(default=0, ge=0, description="Chunks across all current versions.")
    versions_retained: int = Field(default=0, ge=0)


class SearchResult(BaseModel):
    """A self-describing search hit; no further lookups are needed to render it."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    score: float
    title: str
    chapter_label: str | None = None
    tags: list[MetadataTag] = Field(default_factory=list)
    snippet: str = ""
    order: int = Field(default=0, ge=0)
    content_type: ContentType = ContentType.NARRATIVE


class SearchSummary(BaseModel):
    """Roll-up of a result set: counts, top tags and key findings."""

    model_config = ConfigDict(frozen=True)

    total_matches: int = Field(default=0, ge=0)
    top_characters: list[str] = Field(default_factory=list)
    top_themes: list[str] = Field(default_factory=list)
    content_types: list[ContentType] = Field(default_factory=list)
    key_findings: list[str] = Field(default_factory=list)
    embedder_version: str = ""
    index_version: int | None = None


class SearchResponse(BaseModel):
    """What ``StoryIndex.search`` returns."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    query: str
    results: list[SearchResult] = Field(default_factory=list)
    summary: SearchSummary = Field(default_factory=SearchSummary)
