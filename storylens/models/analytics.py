"""Project-level analytics models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from storylens.models.tags import ContentType


class AnalysisMode(str, Enum):
    """How ``get_project_analytics`` treats the cached aggregation.

    ``FAST`` serves the cached value when one exists.  ``DEEP`` always
    recomputes from the current index and refreshes the cache.
    """

    FAST = "fast"
    DEEP = "deep"


class ProjectAnalytics(BaseModel):
    """Characters, themes, emotions and stats rolled up across a project version."""

    model_config = ConfigDict(frozen=True)

    project_id: str
    version: int | None = Field(
        default=None, description="Index version the analytics were computed from."
    )
    characters: list[str] = Field(default_factory=list)
    themes: list[str] = Field(default_factory=list)
    emotions: list[str] = Field(default_factory=list)
    plot_elements: list[str] = Field(default_factory=list)
    semantic_tags: list[str] = Field(default_factory=list)
    content_types: list[ContentType] = Field(
        default_factory=list, description="Distinct content types, most frequent first."
    )
    total_chunks: int = Field(default=0, ge=0)
    total_word_count: int = Field(
        default=0, ge=0, description="Words in the source document text (not summed over chunks)."
    )
    average_importance: float = Field(default=1.0, ge=1.0, le=5.0)
    writing_style: str = "Not enough text to determine"
    tone: str = "neutral"
    mode: AnalysisMode = AnalysisMode.FAST
    computed_at: datetime
