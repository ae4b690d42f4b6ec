"""
TTL cache used for directory lookups.

Callers receive a cache instance instead of reaching for module globals, so
tests and workers can run with isolated caches. The backend is picked by
``CACHE_BACKEND``: ``memory`` (per-process), ``redis`` or ``none``.
"""
import threading
import time
from typing import Any, Callable, Optional, Protocol

import redis

from pharmalync.connections.redis_wrapper import RedisJSONWrapper, safe_key_part

# Logger
from pharmalync.logging.utils import get_app_logger
logger = get_app_logger(__name__)

# Settings
from pharmalync.config.settings import PharmaLyncConfigs
configs = PharmaLyncConfigs()


class TTLCache(Protocol):
    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryTTLCache:
    """Dict-backed cache; entries expire lazily on read or via :meth:`sweep`."""

    def __init__(self, default_ttl: int = 300, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def sweep(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self):
        return len(self._entries)


class RedisTTLCache:
    """JSON values in Redis under ``<prefix>:<key>``. Redis faults degrade to cache misses."""

    def __init__(self, wrapper: RedisJSONWrapper, prefix: str = "pharmalync", default_ttl: int = 300):
        self.wrapper = wrapper
        self.prefix = prefix
        self.default_ttl = default_ttl

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{safe_key_part(key)}"

    def get(self, key: str) -> Optional[Any]:
        try:
            return self.wrapper.get(self._key(key))
        except redis.exceptions.RedisError as exc:
            logger.warning(f"cache_get_failed | key={key} error={exc}")
            return None

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        try:
            self.wrapper.set_with_ttl(self._key(key), value, ttl)
        except redis.exceptions.RedisError as exc:
            logger.warning(f"cache_set_failed | key={key} error={exc}")

    def delete(self, key: str) -> None:
        try:
            self.wrapper.delete(self._key(key))
        except redis.exceptions.RedisError as exc:
            logger.warning(f"cache_delete_failed | key={key} error={exc}")


class NullCache:
    def get(self, key: str) -> Optional[Any]:
        return None

    def set(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        return None

    def delete(self, key: str) -> None:
        return None


def build_cache(backend: Optional[str] = None) -> TTLCache:
    backend = (backend or configs.CACHE_BACKEND).lower()
    if backend == "none":
        return NullCache()
    if backend == "redis":
        wrapper = RedisJSONWrapper(database=configs.REDIS_CACHE_DB)
        if wrapper.connected:
            return RedisTTLCache(wrapper, prefix=configs.CACHE_PREFIX, default_ttl=configs.CACHE_TTL_SECONDS)
        logger.warning("cache_backend_fallback | redis unavailable, using in-memory cache")
    elif backend != "memory":
        logger.warning(f"cache_backend_unknown | backend={backend} using in-memory cache")
    return InMemoryTTLCache(default_ttl=configs.CACHE_TTL_SECONDS)
