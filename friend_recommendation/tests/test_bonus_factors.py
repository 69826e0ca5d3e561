"""
Tests for engagement, geography and bonus factors.
"""

from datetime import timedelta

import pytest

from friend_recommendation.logic.bonus_factors import (
    engagement_similarity,
    geography_factor,
    profile_completion_bonus,
    recency_bonus,
    social_history_bonus,
)
from friend_recommendation.logic.contracts import (
    ActivityPattern,
    ContentPattern,
    EngagementPattern,
    Interaction,
    TimePattern,
)

from .factories import BOSTON, CAMBRIDGE, NOW, SEATTLE, make_profile


def _pattern(user_id: str, evening: bool = True) -> EngagementPattern:
    hours = [0.0] * 24
    hours[20 if evening else 8] = 5.0
    return EngagementPattern(
        user_id=user_id,
        time_pattern=TimePattern(hours=hours, days=[1.0] * 7),
        activity_pattern=ActivityPattern(post=2, like=10, comment=3),
        content_pattern=ContentPattern(text=4, image=6),
    )


def test_identical_engagement_patterns():
    assert engagement_similarity(_pattern("a"), _pattern("b")) == pytest.approx(1.0)


def test_engagement_needs_both_patterns():
    assert engagement_similarity(_pattern("a"), None) == 0.0
    assert engagement_similarity(None, None) == 0.0


def test_different_hours_lower_time_similarity():
    assert engagement_similarity(_pattern("a"), _pattern("b", evening=False)) < 1.0


def test_geography_factor():
    assert geography_factor(BOSTON, CAMBRIDGE) == 0.8
    assert geography_factor(BOSTON, SEATTLE) == 0.1
    assert geography_factor(BOSTON, None) == 0.0


@pytest.mark.parametrize(
    "days_ago, expected",
    [(0, 1.0), (0.5, 1.0), (1, 0.8), (6.9, 0.8), (7, 0.6), (29, 0.6), (30, 0.4), (89, 0.4), (90, 0.1)],
)
def test_recency_bonus_buckets(days_ago, expected):
    assert recency_bonus(NOW - timedelta(days=days_ago), NOW) == expected


def test_recency_bonus_without_activity():
    assert recency_bonus(None, NOW) == 0.0


def test_profile_completion_bonus():
    assert profile_completion_bonus(make_profile("a", profile_completeness=85)) == pytest.approx(0.85)
    assert profile_completion_bonus(make_profile("a", profile_completeness=0)) == 0.0


def _interaction(kind: str, days_ago: float) -> Interaction:
    return Interaction(user_id="alice", target_user_id="bob", type=kind, created_at=NOW - timedelta(days=days_ago))


def test_social_history_decays_over_a_year():
    interactions = [_interaction("share", 0), _interaction("mention", 182.5)]
    assert social_history_bonus(interactions, NOW) == pytest.approx(0.3 + 0.4 * 0.5)


def test_social_history_ignores_old_and_unweighted_interactions():
    assert social_history_bonus([_interaction("comment", 400)], NOW) == 0.0
    assert social_history_bonus([_interaction("message", 1)], NOW) == 0.0


def test_social_history_is_capped():
    interactions = [_interaction("mention", 0) for _ in range(5)]
    assert social_history_bonus(interactions, NOW) == 1.0
