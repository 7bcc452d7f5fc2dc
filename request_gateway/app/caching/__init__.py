"""
Gateway caching package.

Holds the in-memory TTL store for read responses. Entries expire lazily;
call clear() for memory hygiene.
"""

from .response_cache import ResponseCache, CacheEntry, DEFAULT_CACHE_TTL_MS

__all__ = ["ResponseCache", "CacheEntry", "DEFAULT_CACHE_TTL_MS"]
