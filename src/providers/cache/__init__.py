"""Cache providers.

MemoryCacheProvider keeps enriched similar-artist lists for the HTTP cache
window so repeated dashboard views of the same artist do not hit the
store.  It is process-local; use a shared backend behind ICacheProvider
when running several workers.
"""

from src.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
