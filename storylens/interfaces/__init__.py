"""Public interface definitions for the engine's external collaborators.

Every external service is accessed through the abstract base classes in
this package.  Concrete adapters implement them and are injected at
runtime, so swapping OpenAI for Ollama (or tests for a fake) never touches
the services.

    Interface              ->  Concrete implementations (storylens/providers/)
    ---------------------------------------------------------------------
    IEmbeddingProvider     ->  OpenAIEmbeddingProvider, NomicEmbeddingProvider,
                               HashingEmbeddingProvider
    ILLMProvider           ->  OpenAILLMProvider, AnthropicLLMProvider,
                               OllamaLLMProvider
    ICacheProvider         ->  MemoryCacheProvider
    IVectorStoreProvider   ->  InMemoryVectorStore
    IProjectStore          ->  MemoryProjectStore
"""

from storylens.interfaces.cache_provider import ICacheProvider
from storylens.interfaces.embedding_provider import IEmbeddingProvider
from storylens.interfaces.llm_provider import ILLMProvider
from storylens.interfaces.project_store import IProjectStore
from storylens.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "ICacheProvider",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IProjectStore",
    "IVectorStoreProvider",
]
