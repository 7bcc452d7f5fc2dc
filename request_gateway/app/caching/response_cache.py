"""
In-memory TTL cache for cacheable (read) gateway responses.
"""

import json
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from shared.logging import get_logger
from ..models import now_ms


DEFAULT_CACHE_TTL_MS = 300_000


@dataclass
class CacheEntry:
    """Cached value with its absolute expiry."""
    value: Any
    expires_at_ms: float


class ResponseCache:
    """TTL keyed store. Entries expire lazily on lookup; there is no sweep and no size bound."""

    def __init__(self, default_ttl_ms: float = DEFAULT_CACHE_TTL_MS, clock: Callable[[], float] = now_ms):
        self.default_ttl_ms = default_ttl_ms
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self.logger = get_logger("gateway.cache")

    @staticmethod
    def make_key(method: str, endpoint: str, payload: Any = None) -> str:
        """Generate cache key. Payloads that serialize identically share a key."""
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
        return f"{method}:{endpoint}:{canonical}"

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache, or None on a miss."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            if self._clock() >= entry.expires_at_ms:
                del self._entries[key]
                self.logger.debug("Evicted expired cache entry", key=key)
                return None

            return entry.value

    def set(self, key: str, value: Any, ttl_ms: Optional[float] = None) -> None:
        """Set value in cache."""
        cache_ttl = self.default_ttl_ms if ttl_ms is None else ttl_ms
        with self._lock:
            self._entries[key] = CacheEntry(value=value, expires_at_ms=self._clock() + cache_ttl)
        self.logger.debug("Cached value", key=key, ttl_ms=cache_ttl)

    def clear(self) -> None:
        with self._lock:
            cleared = len(self._entries)
            self._entries.clear()
        self.logger.info("Cache cleared", entries=cleared)

    @property
    def size(self) -> int:
        with self._lock:
            return len(self._entries)
