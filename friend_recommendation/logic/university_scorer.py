"""
University Affinity Scorer

Scores institutional overlap between two users: same university, department,
major, graduation-year proximity, alumni relationship, geographic proximity
and ranking proximity, followed by multiplicative bonuses.

`score_university_affinity` is a pure function over two UniversityProfiles.
`UniversityScorer` wraps it and resolves missing rankings from the Profile
Store through an injected LookupCache.
"""

from typing import Any, Dict, Optional

from .constants import (
    ALUMNI_NEITHER,
    ALUMNI_ONE_SIDED,
    ALUMNI_UNKNOWN_YEARS,
    ALUMNI_YEAR_DEFAULT,
    ALUMNI_YEAR_STEPS,
    DEPARTMENT_RANKING_STEPS,
    GRADUATION_YEAR_DEFAULT,
    GRADUATION_YEAR_STEPS,
    RANKING_DEFAULT,
    RECENT_GRADUATE_YEARS,
    TOP_TIER_RANK,
    UNIVERSITY_BONUSES,
    UNIVERSITY_RANKING_STEPS,
    UNIVERSITY_WEIGHTS,
)
from .contracts import UniversityProfile, UniversityScore, UserProfile
from .lookup_cache import LookupCache
from .utils import clamp, distance_between, geographic_score, step_at_most, utc_now


def is_alumni(profile: UniversityProfile, current_year: int) -> bool:
    return profile.graduation_year is not None and profile.graduation_year < current_year


def same_university(user: UniversityProfile, candidate: UniversityProfile) -> bool:
    return bool(user.university_id) and user.university_id == candidate.university_id


def graduation_year_score(user_year: int, candidate_year: int) -> float:
    return step_at_most(abs(user_year - candidate_year), GRADUATION_YEAR_STEPS, GRADUATION_YEAR_DEFAULT)


def alumni_connection_score(user: UniversityProfile, candidate: UniversityProfile, current_year: int) -> float:
    user_alumni = is_alumni(user, current_year)
    candidate_alumni = is_alumni(candidate, current_year)

    if user_alumni and candidate_alumni:
        if user.graduation_year is not None and candidate.graduation_year is not None:
            diff = abs(user.graduation_year - candidate.graduation_year)
            return step_at_most(diff, ALUMNI_YEAR_STEPS, ALUMNI_YEAR_DEFAULT)
        return ALUMNI_UNKNOWN_YEARS
    if user_alumni or candidate_alumni:
        return ALUMNI_ONE_SIDED
    return ALUMNI_NEITHER


def ranking_score(user_rank: Optional[int], candidate_rank: Optional[int], steps) -> float:
    if user_rank is None or candidate_rank is None:
        return 0.0
    return step_at_most(abs(user_rank - candidate_rank), steps, RANKING_DEFAULT)


def apply_bonuses(
    score: float,
    user: UniversityProfile,
    candidate: UniversityProfile,
    current_year: int,
    bonuses: Dict[str, float] = UNIVERSITY_BONUSES,
) -> float:
    if candidate.global_rank is not None and candidate.global_rank <= TOP_TIER_RANK:
        score *= bonuses["top_tier_university"]

    if candidate.institution_type == "research":
        score *= bonuses["research_university"]

    if (
        user.location is not None
        and candidate.location is not None
        and user.location.state
        and user.location.state == candidate.location.state
    ):
        score *= bonuses["same_state"]

    if candidate.graduation_year is not None and 0 <= current_year - candidate.graduation_year <= RECENT_GRADUATE_YEARS:
        score *= bonuses["recent_graduate"]

    if candidate.graduation_year is None or candidate.graduation_year >= current_year:
        score *= bonuses["current_student"]

    return score


def score_university_affinity(
    user: UniversityProfile,
    candidate: UniversityProfile,
    current_year: int,
    weights: Dict[str, float] = UNIVERSITY_WEIGHTS,
    bonuses: Dict[str, float] = UNIVERSITY_BONUSES,
) -> UniversityScore:
    """
    Score the institutional affinity of two users.

    Department, major, year and alumni terms only count when both users are at
    the same university. Geography and ranking terms are always evaluated.

    Args:
        user: requester's institutional profile
        candidate: candidate's institutional profile
        current_year: calendar year used for alumni/current-student checks

    Returns:
        UniversityScore with the clamped score and every sub-factor
    """
    factors: Dict[str, float] = {name: 0.0 for name in weights}
    total = 0.0

    if same_university(user, candidate):
        factors["same_university"] = 1.0

        if user.department_id and user.department_id == candidate.department_id:
            factors["same_department"] = 1.0
            if user.major and user.major == candidate.major:
                factors["same_major"] = 1.0

        if user.graduation_year is not None and candidate.graduation_year is not None:
            factors["graduation_year_proximity"] = graduation_year_score(
                user.graduation_year, candidate.graduation_year
            )

        factors["alumni_connection"] = alumni_connection_score(user, candidate, current_year)

    distance = distance_between(user.location, candidate.location)
    if distance is not None:
        factors["geographic_proximity"] = geographic_score(distance)

    factors["university_ranking"] = ranking_score(
        user.global_rank, candidate.global_rank, UNIVERSITY_RANKING_STEPS
    )
    if user.department_id and candidate.department_id:
        factors["department_ranking"] = ranking_score(
            user.department_rank, candidate.department_rank, DEPARTMENT_RANKING_STEPS
        )

    for name, value in factors.items():
        total += clamp(value) * weights.get(name, 0.0)

    total = apply_bonuses(total, user, candidate, current_year, bonuses)

    metadata: Dict[str, Any] = {
        "university_id": candidate.university_id,
        "university_name": candidate.university_name,
        "department_id": candidate.department_id,
        "department_name": candidate.department_name,
        "graduation_year": candidate.graduation_year,
        "major": candidate.major,
        "is_alumni": is_alumni(user, current_year),
        "distance_km": distance,
    }
    return UniversityScore(score=clamp(total), factors=factors, metadata=metadata)


class UniversityScorer:
    """
    Resolves rankings and delegates to `score_university_affinity`.

    Args:
        store: Profile Store used for ranking lookups (optional)
        ranking_cache: shared read-through cache for ranking lookups
        clock: returns the current datetime
    """

    def __init__(self, store=None, ranking_cache: Optional[LookupCache] = None, clock=utc_now):
        self.store = store
        self.ranking_cache = ranking_cache if ranking_cache is not None else LookupCache("rankings")
        self.clock = clock
        self.weights: Dict[str, float] = dict(UNIVERSITY_WEIGHTS)
        self.bonuses: Dict[str, float] = dict(UNIVERSITY_BONUSES)

    async def _university_rank(self, university_id: str) -> Optional[int]:
        return await self.ranking_cache.get_or_load(
            ("university", university_id),
            lambda: self.store.get_university_ranking(university_id),
        )

    async def _department_rank(self, department_id: str) -> Optional[int]:
        return await self.ranking_cache.get_or_load(
            ("department", department_id),
            lambda: self.store.get_department_ranking(department_id),
        )

    async def resolve(self, profile: UserProfile) -> UniversityProfile:
        """Institutional profile with rankings filled in and user location as fallback."""
        uni = profile.university
        updates: Dict[str, Any] = {}
        if uni.location is None and profile.location is not None:
            updates["location"] = profile.location
        if self.store is not None:
            if uni.global_rank is None and uni.university_id:
                updates["global_rank"] = await self._university_rank(uni.university_id)
            if uni.department_rank is None and uni.department_id:
                updates["department_rank"] = await self._department_rank(uni.department_id)
        return uni.model_copy(update=updates) if updates else uni

    async def calculate_score(
        self,
        user: UserProfile,
        candidate: UserProfile,
        user_university: Optional[UniversityProfile] = None,
    ) -> UniversityScore:
        user_uni = user_university or await self.resolve(user)
        candidate_uni = await self.resolve(candidate)
        return score_university_affinity(
            user_uni, candidate_uni, self.clock().year, self.weights, self.bonuses
        )

    def update_weights(self, new_weights: Dict[str, float]) -> None:
        self.weights = {**self.weights, **new_weights}

    def get_configuration(self) -> Dict[str, Any]:
        return {"weights": dict(self.weights), "bonuses": dict(self.bonuses)}

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.ranking_cache.stats()
