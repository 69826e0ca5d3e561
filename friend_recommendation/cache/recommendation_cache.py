"""
Recommendation Cache

TTL key/value cache used by the recommendation engine. Every value is wrapped
in a CacheEntry carrying its creation time, TTL and access bookkeeping.

Expiry is evaluated lazily on read: an entry is stale once
`now - timestamp > ttl * 1000` (milliseconds). A read hit bumps the access
bookkeeping and rewrites the entry with its *remaining* TTL, so metadata
changes but the original expiry window does not slide.

Backend failures never propagate: reads become misses and writes report
False.
"""

import json
import logging
import math
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, ValidationError

from ..logic.constants import ALGORITHM_VERSION, CACHE_TTL
from ..logic.errors import CacheBackendError
from .backends import CacheBackend

logger = logging.getLogger(__name__)


KEY_PATTERNS: Dict[str, str] = {
    "recommendations": "rec:user:{user_id}:{hash}",
    "user_profile": "profile:user:{user_id}",
    "mutual_connections": "mutual:{user1}:{user2}",
    "university_data": "university:{university_id}",
    "interest_embeddings": "embedding:user:{user_id}",
    "algorithm_results": "algo:{algorithm}:{user_id}:{hash}",
    "batch_results": "batch:{batch_id}",
    "realtime_updates": "realtime:{user_id}",
    "ab_test_results": "abtest:{test_id}:{user_id}",
}

USER_KEY_PATTERNS: List[str] = [
    "rec:user:{user_id}:*",
    "profile:user:{user_id}",
    "mutual:{user_id}:*",
    "mutual:*:{user_id}",
    "embedding:user:{user_id}",
    "algo:*:{user_id}:*",
    "realtime:{user_id}",
]


_GLOB_ESCAPES: Dict[str, str] = {"*": "[*]", "?": "[?]", "[": "[[]", "\\": "[\\\\]"}


def escape_glob(value: str) -> str:
    """Match `value` literally in fnmatch and Redis MATCH patterns."""
    return "".join(_GLOB_ESCAPES.get(c, c) for c in value)


class CacheEntryMetadata(BaseModel):
    user_id: str = "unknown"
    algorithm_version: str = ALGORITHM_VERSION
    cache_type: str = "default"
    size: int = 0
    config_hash: Optional[str] = None  # scorer settings the data was computed with


class CacheEntry(BaseModel):
    data: Any = None
    timestamp: int  # ms since epoch
    ttl: int  # seconds
    access_count: int = 0
    last_accessed: int
    metadata: CacheEntryMetadata = Field(default_factory=CacheEntryMetadata)

    def is_expired(self, now_ms: int) -> bool:
        return now_ms - self.timestamp > self.ttl * 1000

    def remaining_ttl(self, now_ms: int) -> int:
        remaining = self.ttl - (now_ms - self.timestamp) / 1000.0
        return max(1, int(math.ceil(remaining)))


class CacheStats(BaseModel):
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0
    total_keys: int = 0
    memory_usage: int = 0
    operations: Dict[str, int] = Field(
        default_factory=lambda: {"get": 0, "set": 0, "del": 0, "exists": 0}
    )


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class RecommendationCache:
    """
    Read-through cache for recommendations and related lookups.

    Args:
        backend: key/value store (in-memory or Redis)
        key_prefix: prepended to every key
        ttl_config: per cache type TTL overrides (seconds)
        default_ttl: TTL used when neither `ttl` nor a known cache type is given
        clock: returns the current time in milliseconds
    """

    def __init__(
        self,
        backend: CacheBackend,
        key_prefix: str = "",
        ttl_config: Optional[Dict[str, int]] = None,
        default_ttl: int = 3600,
        clock: Callable[[], int] = _epoch_ms,
    ):
        self.backend = backend
        self.key_prefix = key_prefix
        self.ttl_config: Dict[str, int] = dict(CACHE_TTL)
        if ttl_config:
            self.ttl_config.update(ttl_config)
        self.default_ttl = default_ttl
        self._clock = clock
        self.stats = CacheStats()

    # =========================================================================
    # KEYS AND TTLS
    # =========================================================================

    @staticmethod
    def build_key(cache_type: str, **params: Any) -> str:
        """Format a logical key, e.g. build_key("user_profile", user_id="u1")."""
        if cache_type not in KEY_PATTERNS:
            raise KeyError(f"Unknown cache type: {cache_type}")
        return KEY_PATTERNS[cache_type].format(**params)

    def get_ttl(self, cache_type: str) -> int:
        return self.ttl_config.get(cache_type, self.default_ttl)

    def update_ttl(self, cache_type: str, ttl: int) -> None:
        if ttl <= 0:
            raise ValueError("TTL must be positive")
        self.ttl_config[cache_type] = ttl

    def _full_key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _now(self) -> int:
        return int(self._clock())

    def _build_entry(self, data: Any, ttl: int, metadata: Optional[Dict[str, Any]]) -> CacheEntry:
        now = self._now()
        metadata = metadata or {}
        return CacheEntry(
            data=data,
            timestamp=now,
            ttl=ttl,
            access_count=0,
            last_accessed=now,
            metadata=CacheEntryMetadata(
                user_id=metadata.get("user_id") or "unknown",
                algorithm_version=metadata.get("algorithm_version") or ALGORITHM_VERSION,
                cache_type=metadata.get("cache_type") or "default",
                size=len(json.dumps(data, default=str)),
                config_hash=metadata.get("config_hash"),
            ),
        )

    def _resolve_ttl(self, ttl: Optional[int], metadata: Optional[Dict[str, Any]]) -> int:
        if ttl:
            return ttl
        cache_type = (metadata or {}).get("cache_type")
        if cache_type:
            return self.get_ttl(cache_type)
        return self.default_ttl

    # =========================================================================
    # READ PATH
    # =========================================================================

    async def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Return the live entry for `key` (with bookkeeping updated) or None."""
        full_key = self._full_key(key)
        self.stats.operations["get"] += 1

        try:
            raw = await self.backend.get(full_key)
        except CacheBackendError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            self.stats.misses += 1
            return None

        if raw is None:
            self.stats.misses += 1
            return None

        entry = await self._parse(full_key, raw)
        if entry is None:
            self.stats.misses += 1
            return None

        now = self._now()
        if entry.is_expired(now):
            await self._delete_quietly(full_key)
            self.stats.misses += 1
            return None

        entry.access_count += 1
        entry.last_accessed = now
        try:
            await self.backend.set(full_key, entry.model_dump_json(), entry.remaining_ttl(now))
        except CacheBackendError as e:
            logger.warning(f"Cache bookkeeping write failed for {key}: {e}")

        self.stats.hits += 1
        return entry

    async def get(self, key: str) -> Optional[Any]:
        entry = await self.get_entry(key)
        return None if entry is None else entry.data

    async def mget(self, keys: Sequence[str]) -> List[Optional[Any]]:
        if not keys:
            return []
        full_keys = [self._full_key(k) for k in keys]
        self.stats.operations["get"] += len(keys)
        try:
            raws = await self.backend.mget(full_keys)
        except CacheBackendError as e:
            logger.warning(f"Cache mget failed: {e}")
            self.stats.misses += len(keys)
            return [None] * len(keys)

        now = self._now()
        results: List[Optional[Any]] = []
        for full_key, raw in zip(full_keys, raws):
            entry = await self._parse(full_key, raw) if raw is not None else None
            if entry is not None and entry.is_expired(now):
                await self._delete_quietly(full_key)
                entry = None
            if entry is None:
                self.stats.misses += 1
                results.append(None)
            else:
                self.stats.hits += 1
                results.append(entry.data)
        return results

    async def exists(self, key: str) -> bool:
        self.stats.operations["exists"] += 1
        try:
            return await self.backend.exists(self._full_key(key))
        except CacheBackendError as e:
            logger.warning(f"Cache exists failed for {key}: {e}")
            return False

    async def _parse(self, full_key: str, raw: str) -> Optional[CacheEntry]:
        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Dropping malformed cache entry {full_key}: {e.error_count()} errors")
            await self._delete_quietly(full_key)
            return None

    # =========================================================================
    # WRITE PATH
    # =========================================================================

    async def set(
        self,
        key: str,
        data: Any,
        ttl: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> bool:
        resolved_ttl = self._resolve_ttl(ttl, metadata)
        entry = self._build_entry(data, resolved_ttl, metadata)
        try:
            await self.backend.set(self._full_key(key), entry.model_dump_json(), resolved_ttl)
        except CacheBackendError as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False
        self.stats.operations["set"] += 1
        return True

    async def mset(self, entries: Sequence[Dict[str, Any]]) -> bool:
        """
        Write several entries in one round trip.

        Each item is a dict with `key`, `data` and optional `ttl` / `metadata`.
        """
        if not entries:
            return False
        items: List[Tuple[str, str, Optional[int]]] = []
        for item in entries:
            resolved_ttl = self._resolve_ttl(item.get("ttl"), item.get("metadata"))
            entry = self._build_entry(item["data"], resolved_ttl, item.get("metadata"))
            items.append((self._full_key(item["key"]), entry.model_dump_json(), resolved_ttl))
        try:
            await self.backend.mset(items)
        except CacheBackendError as e:
            logger.warning(f"Cache mset failed: {e}")
            return False
        self.stats.operations["set"] += len(items)
        return True

    async def delete(self, key: str) -> bool:
        self.stats.operations["del"] += 1
        try:
            return await self.backend.delete(self._full_key(key)) > 0
        except CacheBackendError as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            return False

    async def _delete_quietly(self, full_key: str) -> None:
        try:
            await self.backend.delete(full_key)
            self.stats.operations["del"] += 1
        except CacheBackendError as e:
            logger.warning(f"Cache delete failed for {full_key}: {e}")

    # =========================================================================
    # INVALIDATION
    # =========================================================================

    async def invalidate_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern. Returns the number removed."""
        try:
            keys = await self.backend.keys(self._full_key(pattern))
            if not keys:
                return 0
            removed = await self.backend.delete(*keys)
        except CacheBackendError as e:
            logger.warning(f"Cache invalidation failed for {pattern}: {e}")
            return 0
        self.stats.operations["del"] += removed
        return removed

    async def invalidate_user(self, user_id: str) -> int:
        total = 0
        for pattern in USER_KEY_PATTERNS:
            total += await self.invalidate_pattern(pattern.format(user_id=escape_glob(user_id)))
        logger.info(f"Invalidated {total} cache entries for user {user_id}")
        return total

    async def warmup(
        self,
        user_ids: Sequence[str],
        profile_loader: Callable[[str], Awaitable[Optional[Any]]],
    ) -> int:
        """
        Preload `profile:user:{id}` entries that are not already cached.

        Returns the number of profiles written.
        """
        logger.info(f"Warming up cache for {len(user_ids)} users")
        warmed = 0
        for user_id in user_ids:
            key = self.build_key("user_profile", user_id=user_id)
            if await self.exists(key):
                continue
            data = await profile_loader(user_id)
            if data is None:
                continue
            if await self.set(key, data, metadata={"user_id": user_id, "cache_type": "user_profile"}):
                warmed += 1
        logger.info(f"Cache warmup completed: {warmed} profiles loaded")
        return warmed

    # =========================================================================
    # STATS / MAINTENANCE
    # =========================================================================

    async def get_stats(self) -> CacheStats:
        total = self.stats.hits + self.stats.misses
        self.stats.hit_rate = self.stats.hits / total if total > 0 else 0.0
        try:
            self.stats.total_keys = len(await self.backend.keys(self._full_key("*")))
            self.stats.memory_usage = await self.backend.memory_usage()
        except CacheBackendError as e:
            logger.warning(f"Cache stats unavailable: {e}")
        return self.stats.model_copy(deep=True)

    async def clear(self) -> bool:
        try:
            if self.key_prefix:
                keys = await self.backend.keys(self._full_key("*"))
                if keys:
                    await self.backend.delete(*keys)
            else:
                await self.backend.flush()
        except CacheBackendError as e:
            logger.warning(f"Cache clear failed: {e}")
            return False
        self.stats = CacheStats()
        return True
