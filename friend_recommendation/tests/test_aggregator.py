"""
Tests for per-candidate scoring, fault isolation and batching.
"""

import asyncio

import pytest

from friend_recommendation.logic.aggregator import (
    ScoringContext,
    ScoringServices,
    batch_score,
    compute_final_score,
    guarded,
    score_candidate,
)
from friend_recommendation.logic.contracts import CandidateRow, ScoreFactors
from friend_recommendation.logic.interest_similarity import InterestSimilarityScorer
from friend_recommendation.logic.mutual_connection_scorer import MutualConnectionScorer
from friend_recommendation.logic.university_scorer import UniversityScorer

from .factories import NOW, make_profile


class ExplodingInterestScorer:
    def calculate_similarity(self, user, candidate):
        raise RuntimeError("embedding service down")


class RecordingStore:
    """Wraps a store and records the peak number of concurrent interaction lookups."""

    def __init__(self, store):
        self._store = store
        self.active = 0
        self.peak = 0

    def __getattr__(self, name):
        return getattr(self._store, name)

    async def get_user_interactions(self, user_id, target_user_id):
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0)
        self.active -= 1
        return await self._store.get_user_interactions(user_id, target_user_id)


def _context(requester):
    return ScoringContext(
        requester=requester,
        requester_university=requester.university,
        requester_pattern=None,
        requester_connections=[],
        now=NOW,
    )


def _services(store, clock, interest_scorer=None):
    return ScoringServices(
        store=store,
        university_scorer=UniversityScorer(store, clock=clock),
        mutual_scorer=MutualConnectionScorer(store, clock=clock),
        interest_scorer=interest_scorer or InterestSimilarityScorer(clock=clock),
    )


def _candidate(user_id, **kwargs) -> CandidateRow:
    return CandidateRow.model_validate(make_profile(user_id, **kwargs).model_dump())


def test_final_score_is_capped_at_100():
    all_ones = ScoreFactors(**{name: 1.0 for name in ScoreFactors.model_fields})
    assert compute_final_score(all_ones) == 100.0


def test_final_score_weights():
    factors = ScoreFactors(university=1.0, recency=1.0)
    assert compute_final_score(factors) == pytest.approx((0.40 + 0.05) * 100)


def test_guarded_turns_exceptions_into_faults():
    def broken():
        raise ValueError("bad data")

    result = asyncio.run(guarded("geography", "bob", broken))

    assert not result.ok
    assert result.fault.factor == "geography"
    assert result.fault.candidate_id == "bob"
    assert isinstance(result.fault.cause, ValueError)


def test_guarded_awaits_async_results():
    async def value():
        return 0.7

    assert asyncio.run(guarded("engagement", "bob", value)).value == 0.7


def test_failed_sub_score_counts_as_zero(store, clock):
    alice = store.add_user(make_profile("alice"))
    services = _services(store, clock, interest_scorer=ExplodingInterestScorer())

    scored = asyncio.run(score_candidate(_candidate("bob"), _context(alice), services))

    assert scored.factors.interests == 0.0
    assert scored.metadata.faults == ["interests"]
    assert scored.factors.university == 1.0
    assert 0.0 <= scored.score <= 100.0
    assert not any(e.startswith("Shared interests") for e in scored.explanations)


def test_scoring_time_explanations(store, clock):
    alice = store.add_user(make_profile("alice"))
    scored = asyncio.run(score_candidate(_candidate("bob"), _context(alice), _services(store, clock)))

    assert scored.explanations[0] == "Same university: University A"
    assert "Shared interests: Programming, Music" in scored.explanations
    assert "Geographic proximity" in scored.explanations
    assert scored.metadata.faults == []
    assert scored.metadata.shared_interests == ["Programming", "Music"]


def test_batches_run_sequentially_with_concurrency_inside(store, clock):
    alice = store.add_user(make_profile("alice"))
    recording = RecordingStore(store)
    candidates = [_candidate(f"user{i}") for i in range(7)]

    scored = asyncio.run(batch_score(candidates, _context(alice), _services(recording, clock), batch_size=3))

    assert [c.user_id for c in scored] == [f"user{i}" for i in range(7)]
    assert recording.peak == 3
