"""
Mutual-Connection Scorer

Scores the overlap between two users' connection sets. Each mutual connection
gets a relationship strength built from five sub-factors (direct interaction,
shared interests, university link, time decay and engagement). The set score
blends the mutual count, mean strength, share of high-quality connections and
interaction recency.

Per-connection strengths are memoized in an injected LookupCache keyed by
(connection, user, candidate). Whole results are stored in the shared
RecommendationCache under `mutual:{user}:{candidate}` when one is supplied;
entries written under other parameters are ignored.
"""

import asyncio
import hashlib
import json
import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from .constants import (
    CONNECTION_STRENGTH_WEIGHTS,
    INTERACTION_FREQUENCY_NORMALIZER,
    INTERACTION_TYPE_COUNT,
    INTERACTION_WEIGHTS,
    MUTUAL_CONNECTION_PARAMETERS,
)
from .contracts import (
    ConnectionStrength,
    ConnectionStrengthFactors,
    Interaction,
    MutualConnection,
    MutualConnectionAnalysis,
    MutualConnectionData,
    MutualConnectionMetadata,
    UserProfile,
)
from .errors import ConfigurationError
from .lookup_cache import LookupCache
from .utils import clamp, days_between, time_decay_factor, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# SUB-FACTORS
# =============================================================================

def direct_interaction_score(interactions: Sequence[Interaction], now: datetime) -> float:
    """Type-weighted, time-decayed interaction sum, capped at 1."""
    score = 0.0
    for interaction in interactions:
        weight = INTERACTION_WEIGHTS.get(interaction.type, 0.0)
        score += weight * time_decay_factor(days_between(interaction.created_at, now))
    return clamp(score)


def shared_interest_ratio(
    connection_interests: Sequence[str],
    user_interests: Sequence[str],
    candidate_interests: Sequence[str],
) -> float:
    common = set(user_interests) & set(candidate_interests)
    if not common:
        return 0.0
    return len(set(connection_interests) & common) / len(common)


def university_connection_score(connection: Optional[UserProfile], user: UserProfile, candidate: UserProfile) -> float:
    if connection is None:
        return 0.0
    university_id = connection.university.university_id
    if not university_id:
        return 0.0
    if university_id in (user.university.university_id, candidate.university.university_id):
        return 1.0
    return 0.0


def time_decay_score(interactions: Sequence[Interaction], now: datetime) -> float:
    if not interactions:
        return 0.0
    total = sum(time_decay_factor(days_between(i.created_at, now)) for i in interactions)
    return total / len(interactions)


def engagement_level_score(interactions: Sequence[Interaction]) -> float:
    """Average of interaction-type diversity and interaction frequency."""
    if not interactions:
        return 0.0
    diversity = len({i.type for i in interactions}) / INTERACTION_TYPE_COUNT
    frequency = min(1.0, len(interactions) / INTERACTION_FREQUENCY_NORMALIZER)
    return clamp((diversity + frequency) / 2)


def connection_strength(
    connection_id: str,
    connection: Optional[UserProfile],
    user: UserProfile,
    candidate: UserProfile,
    interactions: Sequence[Interaction],
    now: datetime,
    weights: Dict[str, float] = CONNECTION_STRENGTH_WEIGHTS,
) -> ConnectionStrength:
    factors = ConnectionStrengthFactors(
        direct_interaction=direct_interaction_score(interactions, now),
        shared_interests=shared_interest_ratio(
            connection.interests if connection else [], user.interests, candidate.interests
        ),
        university_connection=university_connection_score(connection, user, candidate),
        time_decay=time_decay_score(interactions, now),
        engagement_level=engagement_level_score(interactions),
    )
    strength = sum(clamp(value) * weights[name] for name, value in factors.model_dump().items())

    return ConnectionStrength(
        user_id=connection_id,
        strength=clamp(strength),
        factors=factors,
        last_interaction=max((i.created_at for i in interactions), default=None),
        interaction_count=len(interactions),
        interaction_types=dict(Counter(i.type for i in interactions)),
    )


# =============================================================================
# SET-LEVEL SCORING
# =============================================================================

def recency_score(strengths: Sequence[ConnectionStrength], now: datetime) -> float:
    """Mean decay of each connection's latest interaction; connections without one count as 0."""
    if not strengths:
        return 0.0
    total = sum(
        time_decay_factor(days_between(s.last_interaction, now))
        for s in strengths
        if s.last_interaction is not None
    )
    return total / len(strengths)


def analyze_connections(
    connections: Dict[str, Optional[UserProfile]],
    strengths: Sequence[ConnectionStrength],
    high_quality_threshold: float,
) -> MutualConnectionAnalysis:
    analysis = MutualConnectionAnalysis()
    if not strengths:
        return analysis

    count = len(strengths)
    analysis.average_strength = sum(s.strength for s in strengths) / count
    analysis.interaction_frequency = sum(s.interaction_count for s in strengths) / count
    analysis.connection_quality = sum(1 for s in strengths if s.strength > high_quality_threshold) / count

    universities: Counter = Counter()
    departments: Counter = Counter()
    years: Counter = Counter()
    for profile in connections.values():
        if profile is None:
            continue
        uni = profile.university
        if uni.university_name or uni.university_id:
            universities[uni.university_name or uni.university_id] += 1
        if uni.department_name or uni.department_id:
            departments[uni.department_name or uni.department_id] += 1
        if uni.graduation_year is not None:
            years[str(uni.graduation_year)] += 1
    analysis.university_distribution = dict(universities)
    analysis.department_distribution = dict(departments)
    analysis.year_distribution = dict(years)
    return analysis


def final_score(
    count: int,
    analysis: MutualConnectionAnalysis,
    recency: float,
    parameters: Dict[str, float] = MUTUAL_CONNECTION_PARAMETERS,
) -> float:
    if count == 0:
        return 0.0
    count_score = min(1.0, count / parameters["max_mutual_connections"])
    score = (
        count_score * parameters["count_weight"]
        + clamp(analysis.average_strength) * parameters["strength_weight"]
        + clamp(analysis.connection_quality) * parameters["quality_weight"]
        + clamp(recency) * parameters["recency_weight"]
    )
    return clamp(score)


def build_metadata(
    strengths: Sequence[ConnectionStrength],
    requester_connection_count: int,
) -> MutualConnectionMetadata:
    by_strength = sorted(strengths, key=lambda s: s.strength, reverse=True)
    by_date = sorted(
        (s for s in strengths if s.last_interaction is not None),
        key=lambda s: s.last_interaction,
        reverse=True,
    )
    percentage = 0.0
    if requester_connection_count > 0:
        percentage = len(strengths) / requester_connection_count * 100
    return MutualConnectionMetadata(
        total_connections=len(strengths),
        mutual_percentage=round(percentage, 2),
        strongest_connection=by_strength[0].user_id if by_strength else None,
        weakest_connection=by_strength[-1].user_id if by_strength else None,
        most_recent_connection=by_date[0].user_id if by_date else None,
        oldest_connection=by_date[-1].user_id if by_date else None,
    )


class MutualConnectionScorer:
    """
    Args:
        store: Profile Store providing connections, profiles and interactions
        cache: optional RecommendationCache for whole-result caching
        strength_cache: LookupCache for per-connection strengths
        clock: returns the current datetime
    """

    def __init__(self, store, cache=None, strength_cache: Optional[LookupCache] = None, clock=utc_now):
        self.store = store
        self.cache = cache
        self.strength_cache = (
            strength_cache if strength_cache is not None else LookupCache("connection_strengths", ttl_seconds=900)
        )
        self.clock = clock
        self.parameters: Dict[str, float] = dict(MUTUAL_CONNECTION_PARAMETERS)
        self.strength_weights: Dict[str, float] = dict(CONNECTION_STRENGTH_WEIGHTS)

    async def _interactions_with_either(self, connection_id: str, user_id: str, candidate_id: str) -> List[Interaction]:
        with_user, with_candidate = await asyncio.gather(
            self.store.get_user_interactions(connection_id, user_id),
            self.store.get_user_interactions(connection_id, candidate_id),
        )
        return list(with_user) + list(with_candidate)

    async def _strength(
        self,
        connection_id: str,
        connection: Optional[UserProfile],
        user: UserProfile,
        candidate: UserProfile,
        now: datetime,
    ) -> ConnectionStrength:
        key = (connection_id, user.user_id, candidate.user_id)
        cached = self.strength_cache.get(key)
        if cached is not None:
            return cached
        interactions = await self._interactions_with_either(connection_id, user.user_id, candidate.user_id)
        strength = connection_strength(
            connection_id, connection, user, candidate, interactions, now, self.strength_weights
        )
        self.strength_cache.set(key, strength)
        return strength

    def config_hash(self) -> str:
        payload = json.dumps(self.get_configuration(), sort_keys=True)
        return hashlib.sha256(payload.encode()).hexdigest()[:16]

    async def _cached_result(self, key: str) -> Optional[MutualConnectionData]:
        if self.cache is None:
            return None
        entry = await self.cache.get_entry(key)
        if entry is None:
            return None
        # Computed under other parameters
        if entry.metadata.config_hash != self.config_hash():
            return None
        try:
            return MutualConnectionData.model_validate(entry.data)
        except ValidationError:
            logger.warning(f"Ignoring malformed mutual connection cache entry {key}")
            await self.cache.delete(key)
            return None

    async def calculate_score(
        self,
        user: UserProfile,
        candidate: UserProfile,
        user_connections: Optional[Sequence[str]] = None,
    ) -> MutualConnectionData:
        """
        Score the mutual connections of `user` and `candidate`.

        Args:
            user: requester profile
            candidate: candidate profile
            user_connections: requester's connections if already fetched

        Returns:
            MutualConnectionData; a zero result when there are no mutual connections
        """
        cache_key = f"mutual:{user.user_id}:{candidate.user_id}"
        cached = await self._cached_result(cache_key)
        if cached is not None:
            return cached

        if user_connections is None:
            user_connections = await self.store.get_existing_connections(user.user_id)
        candidate_connections = await self.store.get_existing_connections(candidate.user_id)

        mutual_ids = sorted(
            (set(user_connections) & set(candidate_connections)) - {user.user_id, candidate.user_id}
        )
        if not mutual_ids:
            result = MutualConnectionData()
        else:
            result = await self._score_mutual(user, candidate, mutual_ids, len(set(user_connections)))

        if self.cache is not None:
            await self.cache.set(
                cache_key,
                result.model_dump(mode="json"),
                ttl=self.cache.get_ttl("mutual_connections"),
                metadata={
                    "user_id": user.user_id,
                    "cache_type": "mutual_connections",
                    "config_hash": self.config_hash(),
                },
            )
        return result

    async def _score_mutual(
        self,
        user: UserProfile,
        candidate: UserProfile,
        mutual_ids: List[str],
        requester_connection_count: int,
    ) -> MutualConnectionData:
        now = self.clock()
        profiles = await asyncio.gather(*(self.store.get_user_profile(cid) for cid in mutual_ids))
        connections: Dict[str, Optional[UserProfile]] = dict(zip(mutual_ids, profiles))

        strengths = list(
            await asyncio.gather(
                *(self._strength(cid, connections[cid], user, candidate, now) for cid in mutual_ids)
            )
        )

        analysis = analyze_connections(connections, strengths, self.parameters["high_quality_threshold"])
        score = final_score(len(mutual_ids), analysis, recency_score(strengths, now), self.parameters)

        return MutualConnectionData(
            score=score,
            count=len(mutual_ids),
            connections=[
                MutualConnection(
                    user_id=strength.user_id,
                    display_name=connections[strength.user_id].display_name if connections[strength.user_id] else None,
                    university_name=(
                        connections[strength.user_id].university.university_name
                        if connections[strength.user_id] else None
                    ),
                    department_name=(
                        connections[strength.user_id].university.department_name
                        if connections[strength.user_id] else None
                    ),
                    relationship_strength=strength.strength,
                    last_interaction=strength.last_interaction,
                )
                for strength in strengths
            ],
            analysis=analysis,
            metadata=build_metadata(strengths, requester_connection_count),
        )

    def validate_parameters(self, new_parameters: Dict[str, float]) -> None:
        unknown = set(new_parameters) - set(self.parameters)
        if unknown:
            raise ConfigurationError(f"Unknown mutual connection parameters: {sorted(unknown)}")
        if new_parameters.get("max_mutual_connections", 1) <= 0:
            raise ConfigurationError("max_mutual_connections must be positive")

    def update_parameters(self, new_parameters: Dict[str, float]) -> None:
        self.validate_parameters(new_parameters)
        self.parameters = {**self.parameters, **new_parameters}
        self.strength_cache.clear()

    def get_configuration(self) -> Dict[str, Any]:
        return {
            "parameters": dict(self.parameters),
            "strength_factors": dict(self.strength_weights),
        }
