"""
Candidate-level factors computed by the orchestrator alongside the three
scorers: engagement similarity, geography, and the recency, profile-completion
and social-history bonuses.
"""

from datetime import datetime
from typing import Optional, Sequence

from .constants import (
    RECENCY_DEFAULT,
    RECENCY_STEPS,
    SOCIAL_HISTORY_WEIGHTS,
    SOCIAL_HISTORY_WINDOW_DAYS,
)
from .contracts import EngagementPattern, GeoLocation, Interaction, UserProfile
from .utils import clamp, cosine_similarity, days_between, distance_between, geographic_score, step_below


def engagement_similarity(
    user_pattern: Optional[EngagementPattern],
    candidate_pattern: Optional[EngagementPattern],
) -> float:
    """
    Average cosine similarity of the time (hour + day), activity-type and
    content-type histograms. 0 when either pattern is missing.
    """
    if user_pattern is None or candidate_pattern is None:
        return 0.0

    time_similarity = cosine_similarity(
        list(user_pattern.time_pattern.hours) + list(user_pattern.time_pattern.days),
        list(candidate_pattern.time_pattern.hours) + list(candidate_pattern.time_pattern.days),
    )
    activity_similarity = cosine_similarity(
        user_pattern.activity_pattern.as_vector(),
        candidate_pattern.activity_pattern.as_vector(),
    )
    content_similarity = cosine_similarity(
        user_pattern.content_pattern.as_vector(),
        candidate_pattern.content_pattern.as_vector(),
    )
    return clamp((time_similarity + activity_similarity + content_similarity) / 3)


def geography_factor(user_location: Optional[GeoLocation], candidate_location: Optional[GeoLocation]) -> float:
    distance = distance_between(user_location, candidate_location)
    if distance is None:
        return 0.0
    return geographic_score(distance)


def recency_bonus(last_active: Optional[datetime], now: datetime) -> float:
    if last_active is None:
        return 0.0
    return step_below(days_between(last_active, now), RECENCY_STEPS, RECENCY_DEFAULT)


def profile_completion_bonus(candidate: UserProfile) -> float:
    return clamp((candidate.profile_completeness or 0.0) / 100)


def social_history_bonus(interactions: Sequence[Interaction], now: datetime) -> float:
    """Type-weighted interactions decayed linearly to zero over a year, capped at 1."""
    bonus = 0.0
    for interaction in interactions:
        weight = SOCIAL_HISTORY_WEIGHTS.get(interaction.type, 0.0)
        recency = max(0.0, 1 - days_between(interaction.created_at, now) / SOCIAL_HISTORY_WINDOW_DAYS)
        bonus += weight * recency
    return clamp(bonus)
