"""Metadata tag models and the stored chunk record.

Each chunk is enriched with five categories of tags (characters, themes,
emotions, plot elements, free-form semantic tags) plus a coarse content type
and an importance score.  :class:`IndexedChunk` bundles all of that with the
chunk itself; it is the record the vector index stores and returns.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from storylens.models.document import Chunk


class TagCategory(str, Enum):
    """Metadata tag categories, using the camelCase names writers see in the UI."""

    CHARACTER = "character"
    THEME = "theme"
    EMOTION = "emotion"
    PLOT_ELEMENT = "plotElement"
    SEMANTIC_TAG = "semanticTag"


class ContentType(str, Enum):
    """Coarse classification of what a chunk mostly contains."""

    DIALOGUE = "dialogue"
    CHARACTER = "character"
    SETTING = "setting"
    PLOT = "plot"
    NOTES = "notes"
    THEME = "theme"
    NARRATIVE = "narrative"


# Maps each category onto the ChunkTags field holding its values.
CATEGORY_FIELDS: dict[TagCategory, str] = {
    TagCategory.CHARACTER: "characters",
    TagCategory.THEME: "themes",
    TagCategory.EMOTION: "emotions",
    TagCategory.PLOT_ELEMENT: "plot_elements",
    TagCategory.SEMANTIC_TAG: "semantic_tags",
}


class MetadataTag(BaseModel):
    """A single (category, value) tag attached to a chunk."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    category: TagCategory
    value: str


class ChunkTags(BaseModel):
    """Per-chunk tag sets, one list per category, deduplicated case-insensitively."""

    model_config = ConfigDict(frozen=True)

    characters: list[str] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    emotions: list[str] = Field(default_factory=list)
    plot_elements: list[str] = Field(default_factory=list)
    semantic_tags: list[str] = Field(default_factory=list)

    def values(self, category: TagCategory) -> list[str]:
        return getattr(self, CATEGORY_FIELDS[category])

    def is_empty(self) -> bool:
        return not any(self.values(c) for c in TagCategory)

    def has_value(self, value: str) -> bool:
        """Return True if *value* appears in any category (case-insensitive)."""
        needle = value.casefold()
        return any(v.casefold() == needle for c in TagCategory for v in self.values(c))

    def total(self) -> int:
        return sum(len(self.values(c)) for c in TagCategory)

    def to_metadata_tags(self, chunk_id: str) -> list[MetadataTag]:
        return [
            MetadataTag(chunk_id=chunk_id, category=category, value=value)
            for category in TagCategory
            for value in self.values(category)
        ]


class IndexedChunk(BaseModel):
    """A chunk as stored in the vector index, with its analysis attached."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    tags: ChunkTags = Field(default_factory=ChunkTags)
    content_type: ContentType = ContentType.NARRATIVE
    importance: float = Field(default=1.0, ge=1.0, le=5.0, description="Importance score, 1 (low) to 5 (high).")
    embedder_version: str = Field(description="Version of the embedder that produced the stored vector.")

    @property
    def chunk_id(self) -> str:
        return self.chunk.chunk_id

    @property
    def order(self) -> int:
        return self.chunk.order
