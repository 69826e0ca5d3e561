"""
Ranker

Filters, orders and thins scored candidates.

The diversity filter keeps its historical semantics: it caps the number of
*distinct* universities (5) and departments (10) admitted so far, after which
only candidates from already-seen groups are kept. It does not cap how many
candidates a single group contributes.
"""

import math
from typing import List, Sequence

from .constants import MAX_DISTINCT_DEPARTMENTS, MAX_DISTINCT_UNIVERSITIES
from .contracts import RecommendationCandidate


def filter_min_score(candidates: Sequence[RecommendationCandidate], min_score: float) -> List[RecommendationCandidate]:
    return [c for c in candidates if c.score >= min_score]


def rank_candidates(candidates: Sequence[RecommendationCandidate]) -> List[RecommendationCandidate]:
    """Sort by score descending; ties keep retrieval order."""
    return sorted(candidates, key=lambda c: c.score, reverse=True)


def apply_diversity_filter(
    ranked: Sequence[RecommendationCandidate],
    diversity_factor: float,
    max_universities: int = MAX_DISTINCT_UNIVERSITIES,
    max_departments: int = MAX_DISTINCT_DEPARTMENTS,
) -> List[RecommendationCandidate]:
    """
    Single left-to-right pass over score-sorted candidates.

    A candidate is kept when its university is unknown, already seen, or fewer
    than `max_universities` distinct universities have been seen, and the same
    holds for departments with `max_departments`. The pass stops once
    `ceil(len(ranked) * diversity_factor)` candidates are kept. A factor of 0
    disables the filter.
    """
    if diversity_factor <= 0:
        return list(ranked)

    target = math.ceil(len(ranked) * diversity_factor)
    seen_universities = set()
    seen_departments = set()
    kept: List[RecommendationCandidate] = []

    for candidate in ranked:
        if len(kept) >= target:
            break
        university = candidate.metadata.university_id or candidate.metadata.university_name
        department = candidate.metadata.department_id or candidate.metadata.department_name

        university_ok = (
            not university
            or university in seen_universities
            or len(seen_universities) < max_universities
        )
        department_ok = (
            not department
            or department in seen_departments
            or len(seen_departments) < max_departments
        )
        if university_ok and department_ok:
            kept.append(candidate)
            if university:
                seen_universities.add(university)
            if department:
                seen_departments.add(department)

    return kept


def calculate_diversity(recommendations: Sequence[RecommendationCandidate]) -> float:
    """(distinct universities + departments + shared interests) / (3 * n), capped at 1."""
    if not recommendations:
        return 0.0
    universities = {r.metadata.university_name or r.metadata.university_id for r in recommendations}
    departments = {r.metadata.department_name or r.metadata.department_id for r in recommendations}
    interests = {i for r in recommendations for i in r.metadata.shared_interests}
    universities.discard(None)
    departments.discard(None)
    return min(1.0, (len(universities) + len(departments) + len(interests)) / (len(recommendations) * 3))


def select_top(ranked: Sequence[RecommendationCandidate], limit: int) -> List[RecommendationCandidate]:
    return list(ranked[:limit])
