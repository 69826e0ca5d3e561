"""
Cache Backends

Key/value stores behind RecommendationCache. Values are JSON strings.

- InMemoryCacheBackend: process-local dict. Ignores TTL; expiry is evaluated
  lazily by RecommendationCache on read.
- RedisCacheBackend: redis.asyncio client with native TTL (SET EX) and
  SCAN-based pattern matching.

Backend failures are raised as CacheBackendError so the cache layer can treat
them uniformly.
"""

import fnmatch
import functools
import logging
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import redis.asyncio as redis
from redis.exceptions import RedisError

from ..logic.errors import CacheBackendError

logger = logging.getLogger(__name__)

# (key, value, ttl seconds)
BackendItem = Tuple[str, str, Optional[int]]


class CacheBackend(Protocol):
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def exists(self, key: str) -> bool: ...

    async def mget(self, keys: Sequence[str]) -> List[Optional[str]]: ...

    async def mset(self, items: Sequence[BackendItem]) -> None: ...

    async def keys(self, pattern: str) -> List[str]: ...

    async def memory_usage(self) -> int: ...

    async def flush(self) -> None: ...

    async def close(self) -> None: ...


class InMemoryCacheBackend:
    """Process-local backend. Safe for a single event loop."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        self._data[key] = value

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._data.pop(key, None) is not None:
                removed += 1
        return removed

    async def exists(self, key: str) -> bool:
        return key in self._data

    async def mget(self, keys: Sequence[str]) -> List[Optional[str]]:
        return [self._data.get(key) for key in keys]

    async def mset(self, items: Sequence[BackendItem]) -> None:
        for key, value, _ in items:
            self._data[key] = value

    async def keys(self, pattern: str) -> List[str]:
        return [key for key in self._data if fnmatch.fnmatchcase(key, pattern)]

    async def memory_usage(self) -> int:
        return sum(len(k) + len(v) for k, v in self._data.items())

    async def flush(self) -> None:
        self._data.clear()

    async def close(self) -> None:
        return None


def _wrap_redis_errors(method):
    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except (RedisError, OSError) as e:
            raise CacheBackendError(f"redis {method.__name__} failed: {e}") from e
    return wrapper


class RedisCacheBackend:
    """
    Redis-backed cache.

    Args:
        client: a redis.asyncio.Redis created with decode_responses=True
        scan_count: COUNT hint for SCAN when matching patterns
    """

    def __init__(self, client, scan_count: int = 100):
        self.client = client
        self.scan_count = scan_count

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisCacheBackend":
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
        )
        logger.info(f"✅ Redis cache backend configured: {url}")
        return cls(client, **kwargs)

    @_wrap_redis_errors
    async def get(self, key: str) -> Optional[str]:
        return await self.client.get(key)

    @_wrap_redis_errors
    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        if ttl:
            await self.client.set(key, value, ex=ttl)
        else:
            await self.client.set(key, value)

    @_wrap_redis_errors
    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self.client.delete(*keys))

    @_wrap_redis_errors
    async def exists(self, key: str) -> bool:
        return bool(await self.client.exists(key))

    @_wrap_redis_errors
    async def mget(self, keys: Sequence[str]) -> List[Optional[str]]:
        if not keys:
            return []
        return list(await self.client.mget(list(keys)))

    @_wrap_redis_errors
    async def mset(self, items: Sequence[BackendItem]) -> None:
        if not items:
            return
        async with self.client.pipeline(transaction=False) as pipe:
            for key, value, ttl in items:
                if ttl:
                    pipe.set(key, value, ex=ttl)
                else:
                    pipe.set(key, value)
            await pipe.execute()

    @_wrap_redis_errors
    async def keys(self, pattern: str) -> List[str]:
        return [key async for key in self.client.scan_iter(match=pattern, count=self.scan_count)]

    @_wrap_redis_errors
    async def memory_usage(self) -> int:
        info = await self.client.info("memory")
        return int(info.get("used_memory", 0))

    @_wrap_redis_errors
    async def flush(self) -> None:
        await self.client.flushdb()

    async def close(self) -> None:
        try:
            await self.client.aclose()
        except (RedisError, OSError) as e:
            logger.warning(f"Error closing Redis connection: {e}")
