"""
Caching System

Read-through cache for reference data snapshots (exchange rates and tax
rules). Values are plain JSON-compatible structures so the same payload
can live in process memory or in Redis.
"""

import json
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple

import redis

from .config import settings
from .exceptions import ConfigurationError
from .logging import get_logger

logger = get_logger(__name__)


class CacheBackend:
    """Abstract cache backend interface"""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        raise NotImplementedError

    def delete(self, key: str) -> bool:
        raise NotImplementedError

    def clear(self) -> int:
        raise NotImplementedError

    def close(self):
        pass


class MemoryBackend(CacheBackend):
    """In-process backend with per-key expiry"""

    def __init__(self):
        self._store: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= time.monotonic():
                del self._store[key]
                return None
            return value

    def set(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        expires_at = time.monotonic() + expire if expire else None
        with self._lock:
            self._store[key] = (value, expires_at)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._store.pop(key, None) is not None

    def clear(self) -> int:
        with self._lock:
            count = len(self._store)
            self._store.clear()
            return count


class RedisBackend(CacheBackend):
    """Redis cache backend implementation"""

    def __init__(self, client: Optional[redis.Redis] = None, prefix: Optional[str] = None):
        self.prefix = prefix if prefix is not None else settings.cache.CACHE_KEY_PREFIX
        self.redis = client or redis.Redis.from_url(
            settings.cache.REDIS_URL,
            socket_timeout=settings.cache.REDIS_SOCKET_TIMEOUT,
            decode_responses=True,
        )

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[Any]:
        try:
            value = self.redis.get(self._key(key))
        except redis.RedisError as e:
            logger.warning("Cache get failed", extra={'cache_key': key, 'error_message': str(e)})
            return None
        if value is None:
            return None
        return json.loads(value)

    def set(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        try:
            return bool(self.redis.set(self._key(key), json.dumps(value), ex=expire))
        except redis.RedisError as e:
            logger.warning("Cache set failed", extra={'cache_key': key, 'error_message': str(e)})
            return False

    def delete(self, key: str) -> bool:
        try:
            return bool(self.redis.delete(self._key(key)))
        except redis.RedisError as e:
            logger.warning("Cache delete failed", extra={'cache_key': key, 'error_message': str(e)})
            return False

    def clear(self) -> int:
        keys = list(self.redis.scan_iter(match=f"{self.prefix}*"))
        if not keys:
            return 0
        return int(self.redis.delete(*keys))

    def close(self):
        self.redis.close()


class ReferenceCache:
    """Read-through cache over a backend with a default TTL"""

    def __init__(self, backend: CacheBackend, default_ttl: Optional[int] = None):
        self.backend = backend
        self.default_ttl = default_ttl if default_ttl is not None else settings.cache.REFERENCE_CACHE_TTL

    def get_or_load(self, key: str, loader: Callable[[], Any], ttl: Optional[int] = None) -> Any:
        cached = self.backend.get(key)
        if cached is not None:
            return cached

        value = loader()
        self.backend.set(key, value, ttl if ttl is not None else self.default_ttl)
        return value

    def invalidate(self, key: str) -> bool:
        return self.backend.delete(key)

    def clear(self) -> int:
        return self.backend.clear()


def create_cache_backend(backend_name: Optional[str] = None) -> CacheBackend:
    """Build the configured backend"""
    name = (backend_name or settings.cache.CACHE_BACKEND).lower()
    if name == "memory":
        return MemoryBackend()
    if name == "redis":
        return RedisBackend()
    raise ConfigurationError(f"Unknown cache backend: {name}", {"backend": name})
