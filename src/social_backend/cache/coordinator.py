"""Read-through cache backed by Redis.

Reads go through ``get_or_compute``: a hit returns the stored JSON value, a
miss runs the compute function, stores its result with a TTL and returns it.
``None`` results are never cached.

Writes invalidate before they are acknowledged: the exact key of the changed
entity and every key under its collection prefix (list pages are dropped in
bulk rather than selectively).

Redis is never allowed to fail the caller's primary operation: a failing
read falls back to computing the value directly and a failing invalidation
is logged and treated as done.
"""

from collections.abc import Awaitable, Callable
from typing import Any

import redis.asyncio as redis
from loguru import logger
from pydantic_core import from_json, to_json
from redis.exceptions import RedisError

from social_backend.settings import Settings

# Errors raised by redis-py on connection problems are not all RedisError subclasses
CACHE_ERRORS = (RedisError, OSError)

_MISS = object()


def _escape_glob(prefix: str) -> str:
    """Escape Redis glob metacharacters so the prefix matches literally."""
    return "".join(f"\\{char}" if char in "*?[]\\" else char for char in prefix)


class CacheCoordinator:
    """Read-through cache with write-triggered invalidation."""

    def __init__(self, client: redis.Redis, *, scan_batch_size: int = 500) -> None:
        """Initialize the coordinator.

        Args:
            client: Async Redis client created with ``decode_responses=True``.
            scan_batch_size: ``COUNT`` hint for SCAN and batch size for prefix deletes.
        """
        self._client = client
        self._scan_batch_size = scan_batch_size

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheCoordinator":
        client = redis.from_url(settings.redis_url, decode_responses=True)
        return cls(client)

    @property
    def client(self) -> redis.Redis:
        return self._client

    async def get_or_compute(self, key: str, ttl: int, compute_fn: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for ``key`` or compute, store and return it.

        Args:
            key: Cache key.
            ttl: Time to live of a freshly stored entry, in seconds.
            compute_fn: Coroutine function producing a JSON-compatible value.

        Returns:
            The JSON-decoded value; hits and misses return the same shape.
        """
        cached = await self._read(key)
        if cached is not _MISS:
            logger.trace(f"Cache hit: {key}")
            return cached

        logger.trace(f"Cache miss: {key}")
        value = await compute_fn()
        if value is None:
            return None

        encoded = to_json(value)
        await self._write(key, encoded, ttl)
        return from_json(encoded)

    async def invalidate(self, *keys: str) -> int:
        """Delete the given keys.

        Returns:
            Number of keys removed; 0 when Redis is unavailable.
        """
        if not keys:
            return 0
        try:
            removed = await self._client.delete(*keys)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache invalidation of {keys} failed, assuming invalidated: {e}")
            return 0
        logger.debug(f"Invalidated {removed} cache key(s): {', '.join(keys)}")
        return removed

    async def invalidate_by_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``.

        Uses SCAN so that a large keyspace never blocks Redis.

        Returns:
            Number of keys removed; 0 when Redis is unavailable.
        """
        if not prefix:
            raise ValueError("Refusing to invalidate with an empty prefix")

        removed = 0
        batch: list[str] = []
        try:
            async for key in self._client.scan_iter(match=f"{_escape_glob(prefix)}*", count=self._scan_batch_size):
                batch.append(key)
                if len(batch) >= self._scan_batch_size:
                    removed += await self._client.delete(*batch)
                    batch.clear()
            if batch:
                removed += await self._client.delete(*batch)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache invalidation of prefix '{prefix}' failed, assuming invalidated: {e}")
            return removed

        logger.debug(f"Invalidated {removed} cache key(s) with prefix '{prefix}'")
        return removed

    async def invalidate_entity(self, key: str, collection_prefix: str) -> int:
        """Invalidate one entity: its exact key and every page of its collection."""
        return await self.invalidate(key) + await self.invalidate_by_prefix(collection_prefix)

    async def ping(self) -> bool:
        """Return True when Redis answers."""
        try:
            return bool(await self._client.ping())
        except CACHE_ERRORS as e:
            logger.warning(f"Cache ping failed: {e}")
            return False

    async def close(self) -> None:
        await self._client.aclose()

    async def _read(self, key: str) -> Any:
        try:
            raw = await self._client.get(key)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache read of {key} failed, bypassing cache: {e}")
            return _MISS

        if raw is None:
            return _MISS

        try:
            return from_json(raw)
        except ValueError as e:
            logger.warning(f"Discarding corrupt cache entry {key}: {e}")
            await self.invalidate(key)
            return _MISS

    async def _write(self, key: str, encoded: bytes, ttl: int) -> None:
        try:
            await self._client.set(key, encoded, ex=ttl)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache write of {key} failed: {e}")
