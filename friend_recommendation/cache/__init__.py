from .backends import CacheBackend, InMemoryCacheBackend, RedisCacheBackend
from .recommendation_cache import (
    CacheEntry,
    CacheStats,
    KEY_PATTERNS,
    RecommendationCache,
)
from ..config import Settings


def build_cache(settings: Settings) -> RecommendationCache:
    """Cache wired to the backend selected by CACHE_BACKEND."""
    if settings.cache_backend == "redis":
        backend = RedisCacheBackend.from_url(settings.redis_url)
    else:
        backend = InMemoryCacheBackend()
    return RecommendationCache(
        backend,
        key_prefix=settings.cache_key_prefix,
        default_ttl=settings.cache_default_ttl,
    )


__all__ = [
    "CacheBackend",
    "InMemoryCacheBackend",
    "RedisCacheBackend",
    "CacheEntry",
    "CacheStats",
    "KEY_PATTERNS",
    "RecommendationCache",
    "build_cache",
]
