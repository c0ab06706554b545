"""Vector store providers.

InMemoryVectorStore keeps one immutable numpy snapshot per published
project version and swaps a current-version pointer on publish.
"""

from storylens.providers.vector_store.memory_vector_store import InMemoryVectorStore

__all__ = ["InMemoryVectorStore"]
