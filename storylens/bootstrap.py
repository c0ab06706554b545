"""Assembles a :class:`StoryIndex` from :class:`Settings`.

Provider selection mirrors the ``*_backend`` settings.  With ``auto``:

* embeddings -- OpenAI (API key set) -> Nomic via Ollama (server reachable)
  -> offline hashing embedder;
* analysis -- Anthropic -> OpenAI -> Ollama (server reachable) -> keyword
  tagger (``None``).
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from storylens.config.settings import Settings
from storylens.interfaces.embedding_provider import IEmbeddingProvider
from storylens.interfaces.llm_provider import ILLMProvider
from storylens.interfaces.project_store import IProjectStore
from storylens.models.cache import CacheNamespace
from storylens.providers.cache.memory_cache import MemoryCacheProvider
from storylens.providers.embedding.hashing_embedding_provider import HashingEmbeddingProvider
from storylens.providers.embedding.nomic_embedding_provider import NomicEmbeddingProvider
from storylens.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from storylens.providers.llm.anthropic_provider import AnthropicLLMProvider
from storylens.providers.llm.ollama_provider import OllamaLLMProvider
from storylens.providers.llm.openai_provider import OpenAILLMProvider
from storylens.providers.project.memory_project_store import MemoryProjectStore
from storylens.providers.vector_store.memory_vector_store import InMemoryVectorStore
from storylens.services.analytics_aggregator import AnalyticsAggregator
from storylens.services.cache_service import CacheService
from storylens.services.embedding_service import EmbeddingService
from storylens.services.ingestion.chunker import TextChunker
from storylens.services.ingestion.indexing_service import IndexingService
from storylens.services.ingestion.metadata_extractor import MetadataExtractor
from storylens.services.ingestion.response_parser import PROMPT_VERSION
from storylens.services.query_engine import QueryEngine
from storylens.services.story_index import StoryIndex
from storylens.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _ollama_reachable(base_url: str) -> bool:
    if not base_url:
        return False
    try:
        response = httpx.get(f"{base_url.rstrip('/')}/api/tags", timeout=3.0)
    except httpx.HTTPError:
        return False
    return response.status_code == 200


def build_embedding_provider(settings: Settings) -> IEmbeddingProvider:
    """Return the embedding provider named by ``settings.embedding_backend``."""
    backend = settings.embedding_backend

    if backend == "hashing":
        return HashingEmbeddingProvider(dimension=settings.hashing_dimension)

    if backend in ("auto", "openai") and settings.openai_api_key:
        return OpenAIEmbeddingProvider(settings=settings)
    if backend == "openai":
        raise ConfigurationError(
            "embedding_backend=openai requires OPENAI_API_KEY", provider_name="openai"
        )

    nomic = NomicEmbeddingProvider(settings=settings)
    if backend == "nomic":
        return nomic
    if nomic.is_available():
        return nomic

    logger.info("embedding_backend_fallback", backend="hashing")
    return HashingEmbeddingProvider(dimension=settings.hashing_dimension)


def build_analysis_provider(settings: Settings) -> ILLMProvider | None:
    """Return the analysis provider, or ``None`` to tag with keyword tables."""
    backend = settings.analysis_backend
    if backend == "keywords":
        return None

    candidates: list[ILLMProvider] = []
    if backend in ("auto", "anthropic") and settings.anthropic_api_key:
        candidates.append(AnthropicLLMProvider(settings=settings))
    if backend in ("auto", "openai") and settings.openai_api_key:
        candidates.append(OpenAILLMProvider(settings=settings))
    if backend == "ollama":
        candidates.append(OllamaLLMProvider(settings=settings))

    if candidates:
        return candidates[0]
    if backend != "auto":
        raise ConfigurationError(
            f"analysis_backend={backend} has no credentials configured", provider_name=backend
        )

    # Ollama only counts in auto mode when its server actually answers.
    if _ollama_reachable(settings.ollama_base_url):
        return OllamaLLMProvider(settings=settings)
    return None


# ---------------------------------------------------------------------------
# Full assembly
# ---------------------------------------------------------------------------


def build_caches(settings: Settings) -> dict[CacheNamespace, CacheService]:
    """One :class:`CacheService` per namespace, all sharing a single provider."""
    provider = MemoryCacheProvider(max_size=settings.cache_max_size)
    ttls = {
        CacheNamespace.EMBEDDINGS: settings.embeddings_ttl_seconds,
        CacheNamespace.METADATA: settings.metadata_ttl_seconds,
        CacheNamespace.ANALYTICS: settings.analytics_ttl_seconds,
        CacheNamespace.CONTEXT: settings.context_ttl_seconds,
        CacheNamespace.SEARCH: settings.search_ttl_seconds,
    }
    return {
        namespace: CacheService(provider, namespace, default_ttl=ttl)
        for namespace, ttl in ttls.items()
    }


def build_story_index(
    settings: Settings | None = None,
    config: dict[str, Any] | None = None,
    embedding_provider: IEmbeddingProvider | None = None,
    analysis_provider: ILLMProvider | None = None,
    project_store: IProjectStore | None = None,
) -> StoryIndex:
    """Wire every component into a ready :class:`StoryIndex`.

    Parameters
    ----------
    settings:
        Resolved settings; a fresh ``Settings()`` when omitted.
    config:
        Output of :func:`storylens.config.load_config`; only
        ``providers.prompt_version`` is read from it.
    embedding_provider / analysis_provider / project_store:
        Overrides for the providers normally built from settings.
    """
    settings = settings or Settings()
    prompt_version = ((config or {}).get("providers") or {}).get("prompt_version", PROMPT_VERSION)

    embedder = embedding_provider or build_embedding_provider(settings)
    llm = analysis_provider if analysis_provider is not None else build_analysis_provider(settings)
    caches = build_caches(settings)
    vector_store = InMemoryVectorStore()

    embedding_service = EmbeddingService(
        provider=embedder,
        cache=caches[CacheNamespace.EMBEDDINGS],
        batch_size=settings.embed_batch_size,
        timeout=settings.provider_timeout_seconds,
        max_retries=settings.max_retries,
        backoff_base=settings.backoff_base_seconds,
        max_backoff=settings.max_backoff_seconds,
    )
    extractor = MetadataExtractor(
        llm=llm,
        cache=caches[CacheNamespace.METADATA],
        max_concurrent=settings.max_concurrent_extractions,
        timeout=settings.provider_timeout_seconds,
        fallback_ttl=settings.metadata_fallback_ttl_seconds,
        prompt_version=prompt_version,
    )
    indexing = IndexingService(
        chunker=TextChunker(
            target_words=settings.chunk_target_words,
            overlap=settings.chunk_overlap,
            tolerance=settings.chunk_tolerance,
        ),
        embedding_service=embedding_service,
        metadata_extractor=extractor,
        vector_store=vector_store,
        project_caches=[caches[CacheNamespace.ANALYTICS], caches[CacheNamespace.SEARCH]],
        context_cache=caches[CacheNamespace.CONTEXT],
    )
    query_engine = QueryEngine(
        vector_store=vector_store,
        embedding_service=embedding_service,
        cache=caches[CacheNamespace.SEARCH],
        default_limit=settings.default_search_limit,
        max_limit=settings.max_search_limit,
        oversample_factor=settings.search_oversample_factor,
        key_finding_min_score=settings.key_finding_min_score,
    )
    aggregator = AnalyticsAggregator(vector_store, cache=caches[CacheNamespace.ANALYTICS])

    logger.info(
        "story_index_built",
        embedder=embedding_service.version,
        analysis=llm.get_provider_name() if llm is not None else "keywords",
        prompt_version=prompt_version,
    )
    return StoryIndex(
        indexing_service=indexing,
        query_engine=query_engine,
        aggregator=aggregator,
        caches=caches,
        project_store=project_store or MemoryProjectStore(),
        prune_interval=settings.cache_prune_interval_seconds,
    )
