import logging
import threading
import time
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ResponseCache:
    """Process-wide response cache: filled on read misses, flushed after syncs.

    A TTL of 0 (the default) keeps entries until the next ``invalidate_all``.
    """

    def __init__(self, default_ttl_seconds: int = 0):
        self.default_ttl_seconds = default_ttl_seconds
        self._entries: dict[str, tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at < time.time():
                self._entries.pop(key, None)
                self.misses += 1
                return None
            self.hits += 1
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.default_ttl_seconds if ttl_seconds is None else ttl_seconds
        expires_at = time.time() + ttl if ttl and ttl > 0 else None
        with self._lock:
            self._entries[key] = (value, expires_at)

    def invalidate_all(self) -> int:
        with self._lock:
            flushed = len(self._entries)
            self._entries.clear()
        logger.info("Response cache invalidated: %s entries flushed", flushed)
        return flushed

    def stats(self) -> dict:
        with self._lock:
            return {"keys": len(self._entries), "hits": self.hits, "misses": self.misses}


_cache: Optional[ResponseCache] = None


def init_cache(default_ttl_seconds: int = 0) -> ResponseCache:
    global _cache
    _cache = ResponseCache(default_ttl_seconds=default_ttl_seconds)
    return _cache


def get_cache() -> ResponseCache:
    if _cache is None:
        return init_cache()
    return _cache
