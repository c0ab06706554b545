"""Project store implementations."""

from storylens.providers.project.memory_project_store import MemoryProjectStore

__all__ = ["MemoryProjectStore"]
