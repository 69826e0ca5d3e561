import pytest

from friend_recommendation.cache import InMemoryCacheBackend, RecommendationCache
from friend_recommendation.logic.engine import RecommendationEngine
from friend_recommendation.store import InMemoryProfileStore

from .factories import ManualClock


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def cache(clock) -> RecommendationCache:
    return RecommendationCache(InMemoryCacheBackend(), clock=clock.millis)


@pytest.fixture
def engine(store, cache, clock) -> RecommendationEngine:
    return RecommendationEngine(store, cache=cache, clock=clock)
