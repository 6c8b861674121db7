# ABOUTME: Key-value cache port with TTL strings, JSON objects, and append-only lists.
# ABOUTME: In-memory LRU backend, Redis backend, and a failure-absorbing wrapper.

import asyncio
import json
import logging
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from pydantic import BaseModel

from questionrank.config import config

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cache entry with value and expiration."""

    value: str
    expires_at: float | None = None

    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return time.time() > self.expires_at


class KeyValueCache(Protocol):
    """Protocol for cache backends."""

    async def set_string(self, key: str, value: str, ttl: float | None = None) -> None: ...
    async def get_string(self, key: str) -> str | None: ...
    async def remove(self, key: str) -> bool: ...
    async def set_object(self, key: str, value: Any, ttl: float | None = None) -> None: ...
    async def get_object(self, key: str) -> Any | None: ...
    async def append_to_list(
        self, key: str, item: Any, max_length: int | None = None
    ) -> None: ...
    async def read_list(self, key: str) -> list[Any]: ...


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps_value(value: Any) -> str:
    """Serialize a value to the canonical JSON text stored in the cache."""
    return json.dumps(value, default=_json_default, ensure_ascii=False)


class BaseCache:
    """Object and list encoding shared by concrete backends.

    Subclasses provide the raw string and list primitives.
    """

    async def set_string(self, key: str, value: str, ttl: float | None = None) -> None:
        raise NotImplementedError

    async def get_string(self, key: str) -> str | None:
        raise NotImplementedError

    async def _push_raw(self, key: str, raw: str, max_length: int | None) -> None:
        raise NotImplementedError

    async def _range_raw(self, key: str) -> list[str]:
        raise NotImplementedError

    async def set_object(self, key: str, value: Any, ttl: float | None = None) -> None:
        if value is None:
            logger.warning(f"Cache: attempted to set null object for key '{key}'")
            return
        await self.set_string(key, dumps_value(value), ttl)

    async def get_object(self, key: str) -> Any | None:
        raw = await self.get_string(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Cache: could not decode object key '{key}': {e}")
            return None

    async def append_to_list(
        self, key: str, item: Any, max_length: int | None = None
    ) -> None:
        await self._push_raw(key, dumps_value(item), max_length)

    async def read_list(self, key: str) -> list[Any]:
        items = []
        for raw in await self._range_raw(key):
            try:
                items.append(json.loads(raw))
            except json.JSONDecodeError:
                logger.debug(f"Cache: skipping undecodable list item in '{key}'")
        return items


class InMemoryCache(BaseCache):
    """Async-safe in-memory LRU cache with TTL and unexpiring lists."""

    def __init__(self, max_size: int = 1000):
        self._cache: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lists: dict[str, deque[str]] = {}
        self._max_size = max_size
        self._lock = asyncio.Lock()

    async def get_string(self, key: str) -> str | None:
        async with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None
            if entry.is_expired():
                del self._cache[key]
                return None
            # Move to end (LRU)
            self._cache.move_to_end(key)
            return entry.value

    async def set_string(self, key: str, value: str, ttl: float | None = None) -> None:
        async with self._lock:
            self._cache[key] = CacheEntry(
                value=value,
                expires_at=time.time() + ttl if ttl is not None else None,
            )
            self._cache.move_to_end(key)
            # Evict oldest if over capacity
            while len(self._cache) > self._max_size:
                self._cache.popitem(last=False)

    async def remove(self, key: str) -> bool:
        async with self._lock:
            entry = self._cache.pop(key, None)
            removed_list = self._lists.pop(key, None)
            if entry is not None and not entry.is_expired():
                return True
            return removed_list is not None

    async def _push_raw(self, key: str, raw: str, max_length: int | None) -> None:
        async with self._lock:
            items = self._lists.get(key)
            if items is None or items.maxlen != max_length:
                items = deque(items or (), maxlen=max_length)
                self._lists[key] = items
            items.append(raw)

    async def _range_raw(self, key: str) -> list[str]:
        async with self._lock:
            return list(self._lists.get(key, ()))

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()
            self._lists.clear()

    def size(self) -> int:
        """Return current number of string entries."""
        return len(self._cache)


class RedisCache(BaseCache):
    """Redis-backed cache using redis.asyncio with string replies."""

    def __init__(self, client: Any):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        """Create a cache connected to the given Redis URL."""
        from redis.asyncio import Redis

        logger.info(f"Connecting Redis cache: {url}")
        return cls(Redis.from_url(url, decode_responses=True))

    async def set_string(self, key: str, value: str, ttl: float | None = None) -> None:
        if ttl is not None:
            await self._client.set(key, value, px=int(ttl * 1000))
        else:
            await self._client.set(key, value)
        logger.debug(f"Cache: set string key '{key}' with ttl '{ttl}'")

    async def get_string(self, key: str) -> str | None:
        value = await self._client.get(key)
        if value is None:
            logger.debug(f"Cache: key '{key}' not found")
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def remove(self, key: str) -> bool:
        removed = await self._client.delete(key)
        return bool(removed)

    async def _push_raw(self, key: str, raw: str, max_length: int | None) -> None:
        await self._client.rpush(key, raw)
        if max_length is not None:
            await self._client.ltrim(key, -max_length, -1)

    async def _range_raw(self, key: str) -> list[str]:
        values = await self._client.lrange(key, 0, -1)
        return [v.decode("utf-8") if isinstance(v, bytes) else v for v in values]

    async def close(self) -> None:
        await self._client.aclose()


class ResilientCache:
    """Cache wrapper that turns backend failures into logged misses and no-ops."""

    def __init__(self, backend: KeyValueCache):
        self._backend = backend
        self._failures = 0

    def _degraded(self, operation: str, key: str, error: Exception) -> None:
        self._failures += 1
        logger.warning(f"Cache: {operation} failed for key '{key}', continuing without cache: {error}")

    async def set_string(self, key: str, value: str, ttl: float | None = None) -> None:
        try:
            await self._backend.set_string(key, value, ttl)
        except Exception as e:
            self._degraded("set_string", key, e)

    async def get_string(self, key: str) -> str | None:
        try:
            return await self._backend.get_string(key)
        except Exception as e:
            self._degraded("get_string", key, e)
            return None

    async def remove(self, key: str) -> bool:
        try:
            return await self._backend.remove(key)
        except Exception as e:
            self._degraded("remove", key, e)
            return False

    async def set_object(self, key: str, value: Any, ttl: float | None = None) -> None:
        try:
            await self._backend.set_object(key, value, ttl)
        except Exception as e:
            self._degraded("set_object", key, e)

    async def get_object(self, key: str) -> Any | None:
        try:
            return await self._backend.get_object(key)
        except Exception as e:
            self._degraded("get_object", key, e)
            return None

    async def append_to_list(
        self, key: str, item: Any, max_length: int | None = None
    ) -> None:
        try:
            await self._backend.append_to_list(key, item, max_length)
        except Exception as e:
            self._degraded("append_to_list", key, e)

    async def read_list(self, key: str) -> list[Any]:
        try:
            return await self._backend.read_list(key)
        except Exception as e:
            self._degraded("read_list", key, e)
            return []

    async def close(self) -> None:
        """Release backend connections; backends without a close are left alone."""
        close = getattr(self._backend, "close", None)
        if close is None:
            return
        try:
            await close()
        except Exception as e:
            logger.warning(f"Cache: close failed: {e}")

    @property
    def failures(self) -> int:
        """Number of backend operations that failed and were absorbed."""
        return self._failures


def create_cache(backend: str | None = None) -> ResilientCache:
    """Build the configured cache backend wrapped in ResilientCache."""
    name = (backend or config.CACHE_BACKEND).lower()
    if name == "memory":
        return ResilientCache(InMemoryCache(max_size=config.CACHE_MAX_SIZE))
    if name == "redis":
        return ResilientCache(RedisCache.from_url(config.REDIS_URL))
    raise ValueError(f"Unknown cache backend: {name}")
