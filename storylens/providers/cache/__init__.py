"""Cache providers.

MemoryCacheProvider is a process-local TLRU cache -- fast but not shared
across processes.  For multi-worker deployments, swap in a Redis adapter
implementing ICacheProvider without changing any service code.
"""

from storylens.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
