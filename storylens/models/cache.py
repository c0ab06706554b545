"""Cache namespace and statistics models."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CacheNamespace(str, Enum):
    """Logical cache partitions, each with its own default TTL."""

    EMBEDDINGS = "embeddings"
    METADATA = "metadata"
    ANALYTICS = "analytics"
    CONTEXT = "context"
    SEARCH = "search"


class CacheEntry(BaseModel):
    """A stored value with its creation time and time-to-live."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    key: str
    value: Any
    created_at: float = Field(description="Timer reading when the entry was written.")
    ttl: float = Field(gt=0, description="Seconds until the entry expires.")

    def expires_at(self) -> float:
        return self.created_at + self.ttl


class CacheStats(BaseModel):
    """Hit/miss counters and key count for one namespace."""

    model_config = ConfigDict(frozen=True)

    namespace: CacheNamespace
    keys: int = Field(default=0, ge=0)
    hits: int = Field(default=0, ge=0)
    misses: int = Field(default=0, ge=0)
    hit_rate: float = Field(default=0.0, ge=0.0, le=1.0)
