"""Application settings loaded from environment variables via pydantic-settings.

Settings come from two sources, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123``
  2. A ``.env`` file in the working directory

Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults apply
when neither source provides a value.  An empty credential string means
"not configured" and the provider selection in :mod:`storylens.bootstrap`
falls through to the next option.
"""

from __future__ import annotations

from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from storylens.utils.errors import ConfigurationError

EmbeddingBackend = Literal["auto", "openai", "nomic", "hashing"]
AnalysisBackend = Literal["auto", "openai", "anthropic", "ollama", "keywords"]


class Settings(BaseSettings):
    """StoryLens settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === Providers ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints (TogetherAI etc.)
    openai_embedding_model: str = ""
    openai_text_model: str = ""
    anthropic_api_key: str = ""
    ollama_base_url: str = "http://localhost:11434"

    # "auto" picks the first configured remote provider, else the local fallback.
    embedding_backend: EmbeddingBackend = "auto"
    analysis_backend: AnalysisBackend = "auto"
    hashing_dimension: int = 384

    # === Chunking ===
    chunk_target_words: int = 800
    chunk_overlap: float = 0.2
    chunk_tolerance: float = 0.15

    # === Concurrency / resilience ===
    embed_batch_size: int = 64
    max_concurrent_extractions: int = 4
    provider_timeout_seconds: float = 30.0
    max_retries: int = 3
    backoff_base_seconds: float = 0.5
    max_backoff_seconds: float = 8.0

    # === Cache ===
    cache_max_size: int = 10_000
    cache_prune_interval_seconds: float = 60.0
    embeddings_ttl_seconds: int = 604_800
    metadata_ttl_seconds: int = 604_800
    metadata_fallback_ttl_seconds: int = 900
    analytics_ttl_seconds: int = 1_800
    context_ttl_seconds: int = 3_600
    search_ttl_seconds: int = 300

    # === Search ===
    default_search_limit: int = 10
    max_search_limit: int = 50
    search_oversample_factor: int = 3
    key_finding_min_score: float = 0.3

    # === App ===
    app_env: str = "development"
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_ranges(self) -> "Settings":
        if self.chunk_target_words <= 0:
            raise ConfigurationError(
                f"chunk_target_words must be positive, got {self.chunk_target_words}"
            )
        if not 0 <= self.chunk_overlap < 0.5:
            raise ConfigurationError(
                f"chunk_overlap must be in [0, 0.5), got {self.chunk_overlap}"
            )
        if not 0 <= self.chunk_tolerance < 0.5:
            raise ConfigurationError(
                f"chunk_tolerance must be in [0, 0.5), got {self.chunk_tolerance}"
            )
        if self.embed_batch_size <= 0 or self.max_concurrent_extractions <= 0:
            raise ConfigurationError("Batch size and extraction concurrency must be positive")
        if not 1 <= self.default_search_limit <= self.max_search_limit:
            raise ConfigurationError(
                "default_search_limit must be between 1 and max_search_limit"
            )
        return self
