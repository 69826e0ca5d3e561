"""
Score Aggregator

Scores one candidate across every factor and combines the factors into the
final 0-100 score. Each sub-score runs behind a guard: a failure becomes a
zero contribution plus a logged ScoringFault, never an exception escaping the
candidate.

Candidates are scored in fixed-size batches. All candidates in a batch run
concurrently; the next batch starts only after the previous one completes.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from .bonus_factors import (
    engagement_similarity,
    geography_factor,
    profile_completion_bonus,
    recency_bonus,
    social_history_bonus,
)
from .constants import BATCH_SIZE, BONUS_FACTORS, EXPLANATION_THRESHOLDS, FACTOR_WEIGHTS
from .contracts import (
    CandidateMetadata,
    CandidateRow,
    EngagementPattern,
    RecommendationCandidate,
    ScoreFactors,
    UniversityProfile,
    UserProfile,
)
from .errors import ScoringFault
from .utils import clamp

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class SubScoreResult(Generic[T]):
    """Outcome of one sub-score: a value, or a fault that counts as zero."""
    value: Optional[T] = None
    fault: Optional[ScoringFault] = None

    @property
    def ok(self) -> bool:
        return self.fault is None


async def guarded(factor: str, candidate_id: str, fn: Callable[[], Any]) -> SubScoreResult:
    """Run a sync or async sub-scorer, converting any failure into a fault."""
    try:
        value = fn()
        if inspect.isawaitable(value):
            value = await value
        return SubScoreResult(value=value)
    except Exception as e:
        fault = ScoringFault(factor, candidate_id, e)
        logger.error(f"❌ {fault}")
        return SubScoreResult(fault=fault)


@dataclass
class ScoringContext:
    """Read-only per-request inputs shared by every candidate."""
    requester: UserProfile
    requester_university: UniversityProfile
    requester_pattern: Optional[EngagementPattern]
    requester_connections: List[str]
    now: datetime
    weights: Dict[str, float] = field(default_factory=lambda: dict(FACTOR_WEIGHTS))
    bonus_weights: Dict[str, float] = field(default_factory=lambda: dict(BONUS_FACTORS))


@dataclass
class ScoringServices:
    store: Any
    university_scorer: Any
    mutual_scorer: Any
    interest_scorer: Any


def compute_final_score(
    factors: ScoreFactors,
    weights: Dict[str, float] = FACTOR_WEIGHTS,
    bonus_weights: Dict[str, float] = BONUS_FACTORS,
) -> float:
    """`min(100, (base + bonus) * 100)` with every factor clamped to [0,1]."""
    values = factors.model_dump()
    base = sum(clamp(values[name]) * weight for name, weight in weights.items())
    bonus = sum(clamp(values[name]) * weight for name, weight in bonus_weights.items())
    return clamp((base + bonus) * 100, 0.0, 100.0)


def _count_text(count: int) -> str:
    return f"{count} mutual connection" if count == 1 else f"{count} mutual connections"


async def score_candidate(
    candidate: CandidateRow,
    ctx: ScoringContext,
    services: ScoringServices,
) -> RecommendationCandidate:
    """
    Score one candidate against the requester.

    Scoring-time explanations are attached here; threshold explanations are
    added after ranking by the output assembler.
    """
    cid = candidate.user_id
    requester = ctx.requester

    async def engagement() -> float:
        candidate_pattern = await services.store.get_user_engagement_pattern(cid)
        return engagement_similarity(ctx.requester_pattern, candidate_pattern)

    async def social_history() -> float:
        interactions = await services.store.get_user_interactions(requester.user_id, cid)
        return social_history_bonus(interactions, ctx.now)

    university, mutual, interests, engagement_result, social = await asyncio.gather(
        guarded("university", cid, lambda: services.university_scorer.calculate_score(
            requester, candidate, ctx.requester_university
        )),
        guarded("mutual_connections", cid, lambda: services.mutual_scorer.calculate_score(
            requester, candidate, ctx.requester_connections
        )),
        guarded("interests", cid, lambda: services.interest_scorer.calculate_similarity(requester, candidate)),
        guarded("engagement", cid, engagement),
        guarded("social_history", cid, social_history),
    )
    geography = await guarded("geography", cid, lambda: geography_factor(requester.location, candidate.location))
    recency = await guarded("recency", cid, lambda: recency_bonus(candidate.last_active, ctx.now))
    completion = await guarded("profile_completion", cid, lambda: profile_completion_bonus(candidate))

    results = {
        "university": university,
        "mutual_connections": mutual,
        "interests": interests,
        "engagement": engagement_result,
        "geography": geography,
        "recency": recency,
        "profile_completion": completion,
        "social_history": social,
    }
    faults = [name for name, result in results.items() if not result.ok]

    factors = ScoreFactors(
        university=clamp(university.value.score) if university.ok else 0.0,
        mutual_connections=clamp(mutual.value.score) if mutual.ok else 0.0,
        interests=clamp(interests.value.score) if interests.ok else 0.0,
        engagement=clamp(engagement_result.value) if engagement_result.ok else 0.0,
        geography=clamp(geography.value) if geography.ok else 0.0,
        recency=clamp(recency.value) if recency.ok else 0.0,
        profile_completion=clamp(completion.value) if completion.ok else 0.0,
        social_history=clamp(social.value) if social.ok else 0.0,
    )

    explanations: List[str] = []
    uni = candidate.university
    if university.ok and university.value.factors.get("same_university", 0.0) >= 1.0:
        explanations.append(f"Same university: {uni.university_name or uni.university_id}")

    mutual_count = mutual.value.count if mutual.ok else 0
    if mutual_count > 0:
        explanations.append(_count_text(mutual_count))

    shared = list(interests.value.shared_interests) if interests.ok else []
    if shared:
        explanations.append(f"Shared interests: {', '.join(shared[:3])}")

    if factors.engagement > EXPLANATION_THRESHOLDS["engagement_reason"]:
        explanations.append("Similar engagement patterns")
    if factors.geography > EXPLANATION_THRESHOLDS["geography_reason"]:
        explanations.append("Geographic proximity")

    return RecommendationCandidate(
        user_id=cid,
        score=compute_final_score(factors, ctx.weights, ctx.bonus_weights),
        factors=factors,
        explanations=explanations,
        metadata=CandidateMetadata(
            university_id=uni.university_id,
            university_name=uni.university_name,
            department_id=uni.department_id,
            department_name=uni.department_name,
            mutual_count=mutual_count,
            shared_interests=shared,
            last_active=candidate.last_active,
            profile_completeness=candidate.profile_completeness,
            faults=faults,
        ),
    )


async def batch_score(
    candidates: Sequence[CandidateRow],
    ctx: ScoringContext,
    services: ScoringServices,
    batch_size: int = BATCH_SIZE,
) -> List[RecommendationCandidate]:
    """
    Score candidates in sequential batches with full concurrency inside a batch.

    Args:
        candidates: candidate pool in retrieval order
        ctx: shared scoring context
        services: scorers and store
        batch_size: candidates per batch

    Returns:
        Scored candidates in the same order as `candidates`
    """
    scored: List[RecommendationCandidate] = []
    for start in range(0, len(candidates), batch_size):
        batch = candidates[start:start + batch_size]
        results = await asyncio.gather(*(score_candidate(c, ctx, services) for c in batch))
        scored.extend(results)
        logger.debug(f"Scored batch {start // batch_size + 1} ({len(batch)} candidates)")
    return scored
