"""
End-to-end tests for the recommendation engine against the in-memory store.
"""

import asyncio
import logging
from datetime import timedelta

import pytest

from friend_recommendation.logic.contracts import RecommendationRequest
from friend_recommendation.logic.engine import RecommendationEngine
from friend_recommendation.logic.errors import (
    ConfigurationError,
    DataAccessError,
    ProfileNotFoundError,
    RecommendationTimeoutError,
)
from friend_recommendation.logic.lookup_cache import LookupCache

from .factories import NOW, SEATTLE, FailingStore, make_profile, university


class SlowStore:
    """Counts candidate queries and yields to the loop while serving them."""

    def __init__(self, store, delay: float = 0.01):
        self._store = store
        self.delay = delay
        self.candidate_queries = 0

    def __getattr__(self, name):
        return getattr(self._store, name)

    async def get_candidates(self, candidate_filter):
        self.candidate_queries += 1
        await asyncio.sleep(self.delay)
        return await self._store.get_candidates(candidate_filter)


@pytest.fixture
def campus(store):
    """alice and bob share university, department, major and three friends."""
    store.add_user(make_profile("alice"))
    store.add_user(make_profile("bob"))
    for friend in ("c1", "c2", "c3"):
        store.add_user(make_profile(friend))
        store.connect("alice", friend)
        store.connect("bob", friend)
    return store


def generate(engine, **request):
    return asyncio.run(engine.generate_recommendations(RecommendationRequest(**request)))


def test_same_programme_with_three_mutual_friends(engine, campus):
    response = generate(engine, user_id="alice")

    assert response.total_candidates == 1
    [bob] = response.recommendations
    assert bob.user_id == "bob"
    assert bob.factors.university >= 0.9
    assert bob.factors.mutual_connections > 0
    assert bob.factors.interests > 0
    assert bob.factors.recency == 1.0
    assert bob.metadata.mutual_count == 3
    assert sorted(bob.metadata.shared_interests) == ["Music", "Programming"]
    assert "Same university: University A" in bob.explanations
    assert "3 mutual connections" in bob.explanations
    assert "Recently active" in bob.explanations
    assert response.cache_hit is False
    assert response.algorithm_version == "2.13.0"
    assert response.metadata.privacy == "university"
    assert response.metadata.timestamp == NOW


def test_unknown_requester(engine):
    with pytest.raises(ProfileNotFoundError):
        generate(engine, user_id="ghost")


def test_ranked_limited_and_bounded(engine, campus):
    for i in range(6):
        campus.add_user(make_profile(
            f"peer{i}",
            university=university(department_id=f"dept-{i}", graduation_year=2015 + i),
            interests=["Music"] if i % 2 else ["Yoga"],
            location=SEATTLE if i > 2 else None,
            profile_completeness=40 + i * 5,
        ))

    response = generate(engine, user_id="alice", limit=4, diversity_factor=0)

    scores = [r.score for r in response.recommendations]
    assert len(scores) == 4
    assert scores == sorted(scores, reverse=True)
    assert all(0 <= s <= 100 for s in scores)
    assert response.total_candidates == 7
    for rec in response.recommendations:
        for value in rec.factors.model_dump().values():
            assert 0.0 <= value <= 1.0


def test_min_score_filters_results(engine, campus):
    campus.add_user(make_profile("stranger", university=university(department_id="law"), interests=[],
                                 last_active=NOW - timedelta(days=60), profile_completeness=95))

    everyone = generate(engine, user_id="alice", diversity_factor=0)
    threshold = min(r.score for r in everyone.recommendations) + 0.01
    filtered = generate(engine, user_id="alice", diversity_factor=0, min_score=threshold)

    assert all(r.score >= threshold for r in filtered.recommendations)
    assert len(filtered.recommendations) < len(everyone.recommendations)


def test_repeat_request_is_served_from_cache(engine, campus):
    first = generate(engine, user_id="alice")
    second = generate(engine, user_id="alice")

    assert second.cache_hit is True
    assert second.recommendations == first.recommendations
    assert second.total_candidates == first.total_candidates


def test_request_normalisation_shares_cache_key(engine):
    a = RecommendationRequest(user_id="alice", exclude_users=["x", "y"])
    b = RecommendationRequest(user_id="alice", exclude_users=["y", "x", "x"])
    c = RecommendationRequest(user_id="alice", limit=5)
    assert engine.cache_key(a) == engine.cache_key(b)
    assert engine.cache_key(a) != engine.cache_key(c)
    assert engine.cache_key(a).startswith("rec:user:alice:")


def test_configuration_change_bypasses_cached_response(engine, campus):
    generate(engine, user_id="alice")
    engine.update_parameters({"recency": 0.04})

    response = generate(engine, user_id="alice")

    assert response.cache_hit is False
    assert response.metadata.bonus_factors["recency"] == 0.04


def test_mutual_parameter_change_rescores_cached_pairs(engine, campus):
    before = generate(engine, user_id="alice").recommendations[0].factors.mutual_connections
    engine.update_parameters({"mutual_connections": {"count_weight": 0.5, "max_mutual_connections": 3}})

    after = generate(engine, user_id="alice").recommendations[0].factors.mutual_connections

    assert after > before


def test_injected_lookup_caches_are_used(store, cache, clock):
    rankings = LookupCache("rankings")
    strengths = LookupCache("connection_strengths")
    embeddings = LookupCache("interest_embeddings")

    engine = RecommendationEngine(
        store, cache=cache, clock=clock,
        ranking_cache=rankings, strength_cache=strengths, embedding_cache=embeddings,
    )

    assert engine.university_scorer.ranking_cache is rankings
    assert engine.mutual_scorer.strength_cache is strengths
    assert engine.interest_scorer.embedding_cache is embeddings


def test_cached_response_expires(engine, campus, clock):
    generate(engine, user_id="alice")
    clock.advance(minutes=31)
    assert generate(engine, user_id="alice").cache_hit is False


def test_malformed_cached_response_is_recomputed(engine, campus):
    request = RecommendationRequest(user_id="alice")
    asyncio.run(engine.cache.set(engine.cache_key(request), {"recommendations": "nope"}))

    response = asyncio.run(engine.generate_recommendations(request))

    assert response.cache_hit is False
    assert response.recommendations[0].user_id == "bob"


def test_invalidate_user_drops_cached_response(engine, campus):
    generate(engine, user_id="alice")
    removed = asyncio.run(engine.invalidate_user("alice"))

    assert removed >= 2  # response and requester profile
    assert generate(engine, user_id="alice").cache_hit is False


def test_concurrent_identical_requests_share_work(campus, cache, clock):
    slow = SlowStore(campus)
    engine = RecommendationEngine(slow, cache=cache, clock=clock)
    request = RecommendationRequest(user_id="alice")

    async def scenario():
        return await asyncio.gather(*(engine.generate_recommendations(request) for _ in range(4)))

    responses = asyncio.run(scenario())

    assert slow.candidate_queries == 1
    assert all(r.recommendations == responses[0].recommendations for r in responses)


def test_timeout(campus, cache, clock):
    engine = RecommendationEngine(
        SlowStore(campus, delay=0.5), cache=cache, clock=clock, parameters={"request_timeout_seconds": 0.01}
    )
    with pytest.raises(RecommendationTimeoutError):
        generate(engine, user_id="alice")


def test_requester_lookup_failure(campus, cache, clock):
    engine = RecommendationEngine(FailingStore(campus, "get_user_profile"), cache=cache, clock=clock)
    with pytest.raises(DataAccessError):
        generate(engine, user_id="alice")


def test_candidate_sub_score_failure_is_recorded(campus, cache, clock):
    engine = RecommendationEngine(
        FailingStore(campus, "get_user_engagement_pattern", RuntimeError("patterns unavailable")),
        cache=cache,
        clock=clock,
    )

    response = generate(engine, user_id="alice")

    [bob] = response.recommendations
    assert bob.factors.engagement == 0.0
    assert bob.metadata.faults == ["engagement"]
    assert "Same university: University A" in bob.explanations


def test_empty_pool(engine, store):
    store.add_user(make_profile("alice"))
    response = generate(engine, user_id="alice")
    assert response.recommendations == []
    assert response.total_candidates == 0
    assert response.metadata.diversity == 0.0


def test_update_weights_validation(engine, caplog):
    with pytest.raises(ConfigurationError):
        engine.update_weights({"popularity": 0.1})
    with pytest.raises(ConfigurationError):
        engine.update_weights({"university": 1.5})

    with caplog.at_level(logging.WARNING, logger="friend_recommendation.logic.engine"):
        weights = engine.update_weights({"university": 0.5})

    assert weights["university"] == 0.5
    assert "sum to 1.100" in caplog.text


def test_update_parameters_validation(engine):
    with pytest.raises(ConfigurationError):
        engine.update_parameters({"batch_size": 0})
    with pytest.raises(ConfigurationError):
        engine.update_parameters({"unknown": 1})
    with pytest.raises(ConfigurationError):
        engine.update_parameters({"university_weights": {"same_university": 2}})
    with pytest.raises(ConfigurationError):
        engine.update_parameters({"mutual_connections": {"max_mutual_connections": 0}})

    config = engine.update_parameters({
        "batch_size": 10,
        "social_history": 0.01,
        "mutual_connections": {"count_weight": 0.35},
        "interest_weights": {"exact_match": 0.5},
    })

    assert config["parameters"]["batch_size"] == 10
    assert config["bonus_factors"]["social_history"] == 0.01
    assert config["mutual_connections"]["parameters"]["count_weight"] == 0.35
    assert config["interests"]["weights"]["exact_match"] == 0.5


def test_get_configuration(engine):
    config = engine.get_configuration()
    assert config["version"] == "2.13.0"
    assert sum(config["weights"].values()) == pytest.approx(1.0)
    assert sum(config["bonus_factors"].values()) == pytest.approx(0.10)
    assert config["cache_ttl"]["recommendations"] == 1800


def test_warmup(engine, campus):
    warmed = asyncio.run(engine.warmup(["alice", "ghost"]))

    assert warmed == 1
    assert asyncio.run(engine.cache.exists("profile:user:alice"))
    assert len(engine.interest_scorer.embedding_cache) == 1


def test_cache_stats(engine, campus):
    generate(engine, user_id="alice")
    generate(engine, user_id="alice")

    stats = asyncio.run(engine.get_cache_stats())

    assert stats["cache"]["hits"] >= 1
    assert {s["name"] for s in stats["lookups"]} == {"rankings", "connection_strengths", "interest_embeddings"}
