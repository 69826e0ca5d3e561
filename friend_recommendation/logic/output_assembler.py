"""
Output Assembler

Attaches threshold-based explanations to ranked candidates and builds the
final RecommendationResponse.
"""

from datetime import datetime
from typing import Dict, List, Sequence

from .constants import ALGORITHM_VERSION, EXPLANATION_THRESHOLDS
from .contracts import (
    PrivacyLevel,
    RecommendationCandidate,
    RecommendationResponse,
    ResponseMetadata,
)
from .ranker import calculate_diversity
from .utils import days_between


def generate_explanations(candidate: RecommendationCandidate, now: datetime) -> List[str]:
    """Threshold explanations, appended after the scoring-time ones."""
    explanations: List[str] = []
    factors = candidate.factors

    if factors.university > EXPLANATION_THRESHOLDS["university"]:
        explanations.append("Strong university connection")
    if factors.mutual_connections > EXPLANATION_THRESHOLDS["mutual_connections"]:
        explanations.append("High mutual connection overlap")
    if factors.interests > EXPLANATION_THRESHOLDS["interests"]:
        explanations.append("Strong interest alignment")
    if factors.engagement > EXPLANATION_THRESHOLDS["engagement"]:
        explanations.append("Similar activity patterns")
    if candidate.metadata.profile_completeness > EXPLANATION_THRESHOLDS["profile_completeness"]:
        explanations.append("Complete profile")

    last_active = candidate.metadata.last_active
    if last_active is not None and days_between(last_active, now) < EXPLANATION_THRESHOLDS["recently_active_days"]:
        explanations.append("Recently active")

    return explanations


def with_explanations(candidate: RecommendationCandidate, now: datetime) -> RecommendationCandidate:
    return candidate.model_copy(
        update={"explanations": list(candidate.explanations) + generate_explanations(candidate, now)}
    )


def assemble_output(
    recommendations: Sequence[RecommendationCandidate],
    total_candidates: int,
    weights: Dict[str, float],
    bonus_weights: Dict[str, float],
    privacy_level: str,
    now: datetime,
    processing_time_ms: float,
) -> RecommendationResponse:
    """
    Build the response for a freshly computed request.

    Args:
        recommendations: ranked, truncated candidates
        total_candidates: size of the retrieved pool before any filtering
        weights: active core factor weights
        bonus_weights: active bonus factor weights
        privacy_level: effective privacy level of the request
        now: generation timestamp
        processing_time_ms: pipeline wall time

    Returns:
        RecommendationResponse with cache_hit=False
    """
    explained = [with_explanations(c, now) for c in recommendations]
    return RecommendationResponse(
        recommendations=explained,
        total_candidates=total_candidates,
        algorithm_version=ALGORITHM_VERSION,
        processing_time_ms=round(processing_time_ms, 2),
        cache_hit=False,
        metadata=ResponseMetadata(
            factors=dict(weights),
            bonus_factors=dict(bonus_weights),
            diversity=calculate_diversity(explained),
            privacy=PrivacyLevel(privacy_level).value,
            timestamp=now,
        ),
    )
