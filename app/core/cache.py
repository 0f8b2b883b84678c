"""Read-model cache.

Services never talk to a concrete cache: mutating operations name the keys
they invalidate (see ``my_bookings_key``) and call ``invalidate``.
"""
import json
import threading
import time
from typing import Any, Iterable, Protocol

from redis import Redis

from app.core.config import settings


def my_bookings_key(user_id: str) -> str:
    return f"my_bookings:{user_id}"


class Cache(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: int | None = None) -> None: ...

    def delete(self, key: str) -> None: ...

    def delete_many(self, keys: Iterable[str]) -> None: ...


class MemoryCache:
    """Process-local TTL map."""

    def __init__(self, default_ttl: int = 600):
        self.default_ttl = default_ttl
        self._data: dict[str, tuple[float, Any]] = {}
        self._mutex = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._mutex:
            item = self._data.get(key)
            if item is None:
                return None
            expires_at, value = item
            if expires_at <= time.monotonic():
                del self._data[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        with self._mutex:
            self._data[key] = (time.monotonic() + ttl, value)

    def delete(self, key: str) -> None:
        with self._mutex:
            self._data.pop(key, None)

    def delete_many(self, keys: Iterable[str]) -> None:
        with self._mutex:
            for k in keys:
                self._data.pop(k, None)

    def clear(self) -> None:
        with self._mutex:
            self._data.clear()


class RedisCache:
    """JSON values in Redis, shared between API processes."""

    def __init__(self, client: Redis, default_ttl: int = 600, prefix: str = "marquee:"):
        self.client = client
        self.default_ttl = default_ttl
        self.prefix = prefix

    def get(self, key: str) -> Any | None:
        raw = self.client.get(self.prefix + key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        self.client.set(self.prefix + key, json.dumps(value), ex=ttl or self.default_ttl)

    def delete(self, key: str) -> None:
        self.client.delete(self.prefix + key)

    def delete_many(self, keys: Iterable[str]) -> None:
        full = [self.prefix + k for k in keys]
        if full:
            self.client.delete(*full)


def invalidate(cache: Cache | None, keys: Iterable[str]) -> None:
    if cache is None:
        return
    cache.delete_many(list(keys))


_cache: Cache | None = None


def get_cache() -> Cache:
    global _cache
    if _cache is None:
        if settings.CACHE_BACKEND.lower() == "redis":
            _cache = RedisCache(Redis.from_url(settings.REDIS_URL), default_ttl=settings.CACHE_TTL_SECONDS)
        else:
            _cache = MemoryCache(default_ttl=settings.CACHE_TTL_SECONDS)
    return _cache
