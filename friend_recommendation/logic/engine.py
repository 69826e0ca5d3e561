"""
Recommendation Engine

Main orchestrator that combines all scoring components into a single pipeline.
This is the primary entry point for generating friend recommendations.
"""

import asyncio
import hashlib
import json
import logging
import time
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..cache import InMemoryCacheBackend, RecommendationCache
from .aggregator import ScoringContext, ScoringServices, batch_score, guarded
from .candidate_generator import generate_candidates
from .constants import (
    ALGORITHM_VERSION,
    BATCH_SIZE,
    BONUS_FACTORS,
    EMBEDDING_LOOKUP_TTL,
    FACTOR_WEIGHTS,
    LOOKUP_CACHE_MAX_SIZE,
    MAX_CANDIDATES,
    MAX_DISTINCT_DEPARTMENTS,
    MAX_DISTINCT_UNIVERSITIES,
    MIN_PROFILE_COMPLETENESS,
    RANKING_LOOKUP_TTL,
    RECOMMENDATION_CACHE_MAX_AGE,
    RECOMMENDATION_CACHE_TTL,
)
from .contracts import RecommendationRequest, RecommendationResponse, UserProfile
from .errors import (
    ConfigurationError,
    DataAccessError,
    ProfileNotFoundError,
    RecommendationTimeoutError,
)
from .interest_similarity import InterestSimilarityScorer
from .lookup_cache import LookupCache
from .mutual_connection_scorer import MutualConnectionScorer
from .output_assembler import assemble_output
from .ranker import apply_diversity_filter, filter_min_score, rank_candidates, select_top
from .single_flight import SingleFlight
from .university_scorer import UniversityScorer
from .utils import utc_now

logger = logging.getLogger(__name__)


DEFAULT_PARAMETERS: Dict[str, Any] = {
    "batch_size": BATCH_SIZE,
    "cache_ttl": RECOMMENDATION_CACHE_TTL,
    "cache_max_age": RECOMMENDATION_CACHE_MAX_AGE,
    "max_candidates": MAX_CANDIDATES,
    "min_profile_completeness": MIN_PROFILE_COMPLETENESS,
    "max_distinct_universities": MAX_DISTINCT_UNIVERSITIES,
    "max_distinct_departments": MAX_DISTINCT_DEPARTMENTS,
    "request_timeout_seconds": None,
}

# Positive integer parameters
_INT_PARAMETERS = {
    "batch_size",
    "cache_ttl",
    "cache_max_age",
    "max_candidates",
    "max_distinct_universities",
    "max_distinct_departments",
}


def _validate_weights(kind: str, allowed: Dict[str, float], new_values: Dict[str, float]) -> None:
    unknown = set(new_values) - set(allowed)
    if unknown:
        raise ConfigurationError(f"Unknown {kind}: {sorted(unknown)}")
    for name, value in new_values.items():
        if not isinstance(value, (int, float)) or isinstance(value, bool) or not 0.0 <= value <= 1.0:
            raise ConfigurationError(f"{kind} '{name}' must be a number in [0, 1], got {value!r}")


class RecommendationEngine:
    """
    Friend recommendation engine.

    Pipeline flow:
    1. Cache check - return a fresh cached response for an identical request
    2. Requester lookup - fail with ProfileNotFoundError if absent
    3. Candidate retrieval - filtered, ordered, capped pool
    4. Scoring - sequential batches, concurrent within a batch
    5. Filtering - min score, then diversity
    6. Ranking - sort and truncate to the requested limit
    7. Output assembly - explanations, diversity metric, cache write
    """

    def __init__(
        self,
        store,
        cache: Optional[RecommendationCache] = None,
        clock=utc_now,
        ranking_cache: Optional[LookupCache] = None,
        embedding_cache: Optional[LookupCache] = None,
        strength_cache: Optional[LookupCache] = None,
        parameters: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize the recommendation engine.

        Args:
            store: Profile Store implementation
            cache: RecommendationCache; defaults to a process-local one
            clock: returns the current timezone-aware datetime
            ranking_cache / embedding_cache / strength_cache: injected lookup caches
            parameters: overrides for DEFAULT_PARAMETERS
        """
        self.store = store
        self.cache = cache if cache is not None else RecommendationCache(InMemoryCacheBackend())
        self.clock = clock
        self.version = ALGORITHM_VERSION

        self.weights: Dict[str, float] = dict(FACTOR_WEIGHTS)
        self.bonus_factors: Dict[str, float] = dict(BONUS_FACTORS)
        self.parameters: Dict[str, Any] = dict(DEFAULT_PARAMETERS)

        if ranking_cache is None:
            ranking_cache = LookupCache("rankings", max_size=LOOKUP_CACHE_MAX_SIZE, ttl_seconds=RANKING_LOOKUP_TTL)
        if embedding_cache is None:
            embedding_cache = LookupCache(
                "interest_embeddings", max_size=LOOKUP_CACHE_MAX_SIZE, ttl_seconds=EMBEDDING_LOOKUP_TTL
            )

        self.university_scorer = UniversityScorer(store, ranking_cache, clock)
        self.mutual_scorer = MutualConnectionScorer(store, self.cache, strength_cache, clock)
        self.interest_scorer = InterestSimilarityScorer(embedding_cache=embedding_cache, clock=clock)
        self._single_flight = SingleFlight()
        if parameters:
            self.update_parameters(parameters)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def generate_recommendations(self, request: RecommendationRequest) -> RecommendationResponse:
        """
        Generate friend recommendations for `request.user_id`.

        Identical concurrent requests share one computation.

        Raises:
            ProfileNotFoundError: requester does not exist
            DataAccessError: Profile Store failure while loading the requester or candidates
            RecommendationTimeoutError: the pipeline exceeded `request_timeout_seconds`
        """
        start_time = time.perf_counter()
        cache_key = self.cache_key(request)

        cached = await self._cached_response(cache_key)
        if cached is not None:
            cached.cache_hit = True
            cached.processing_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.info(f"Cache hit for recommendations of {request.user_id}")
            return cached

        return await self._single_flight.do(
            cache_key, lambda: self._compute_with_deadline(request, cache_key, start_time)
        )

    def cache_key(self, request: RecommendationRequest) -> str:
        """
        Deterministic `rec:user:{id}:{hash}` key.

        The hash covers the normalized request (all defaults applied, lists
        sorted) and the active scoring configuration.
        """
        payload = request.model_dump(mode="json")
        for field in ("exclude_users", "include_types", "exclude_types"):
            payload[field] = sorted(set(payload[field]))
        payload["_config"] = {
            "version": self.version,
            "weights": self.weights,
            "bonus_factors": self.bonus_factors,
            "parameters": {k: v for k, v in self.parameters.items() if k != "request_timeout_seconds"},
            "university": self.university_scorer.get_configuration(),
            "mutual": self.mutual_scorer.get_configuration(),
            "interests": self.interest_scorer.weights,
        }
        digest = hashlib.sha256(json.dumps(payload, sort_keys=True, default=str).encode()).hexdigest()[:16]
        return RecommendationCache.build_key("recommendations", user_id=request.user_id, hash=digest)

    # =========================================================================
    # PIPELINE
    # =========================================================================

    async def _compute_with_deadline(
        self, request: RecommendationRequest, cache_key: str, start_time: float
    ) -> RecommendationResponse:
        timeout = self.parameters.get("request_timeout_seconds")
        if not timeout:
            return await self._compute(request, cache_key, start_time)
        try:
            return await asyncio.wait_for(self._compute(request, cache_key, start_time), timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"❌ Recommendation for {request.user_id} timed out after {timeout}s")
            raise RecommendationTimeoutError(request.user_id, timeout) from e

    async def _compute(
        self, request: RecommendationRequest, cache_key: str, start_time: float
    ) -> RecommendationResponse:
        now = self.clock()
        requester = await self.load_requester(request.user_id)

        pool = await generate_candidates(
            self.store,
            request,
            requester,
            now,
            max_candidates=self.parameters["max_candidates"],
            min_completeness=self.parameters["min_profile_completeness"],
        )
        logger.info(f"Retrieved {len(pool.candidates)} candidates for {request.user_id}")

        university = await guarded(
            "university", request.user_id, lambda: self.university_scorer.resolve(requester)
        )
        pattern = await guarded(
            "engagement", request.user_id, lambda: self.store.get_user_engagement_pattern(request.user_id)
        )

        ctx = ScoringContext(
            requester=requester,
            requester_university=university.value if university.ok else requester.university,
            requester_pattern=pattern.value if pattern.ok else None,
            requester_connections=pool.connections,
            now=now,
            weights=dict(self.weights),
            bonus_weights=dict(self.bonus_factors),
        )
        services = ScoringServices(
            store=self.store,
            university_scorer=self.university_scorer,
            mutual_scorer=self.mutual_scorer,
            interest_scorer=self.interest_scorer,
        )
        scored = await batch_score(pool.candidates, ctx, services, self.parameters["batch_size"])

        ranked = rank_candidates(filter_min_score(scored, request.min_score))
        diverse = apply_diversity_filter(
            ranked,
            request.diversity_factor,
            self.parameters["max_distinct_universities"],
            self.parameters["max_distinct_departments"],
        )
        top = select_top(rank_candidates(diverse), request.limit)

        response = assemble_output(
            recommendations=top,
            total_candidates=len(pool.candidates),
            weights=ctx.weights,
            bonus_weights=ctx.bonus_weights,
            privacy_level=request.privacy_level,
            now=now,
            processing_time_ms=(time.perf_counter() - start_time) * 1000,
        )

        await self.cache.set(
            cache_key,
            response.model_dump(mode="json"),
            ttl=self.parameters["cache_ttl"],
            metadata={
                "user_id": request.user_id,
                "algorithm_version": self.version,
                "cache_type": "recommendations",
            },
        )
        logger.info(
            f"✅ Generated {len(response.recommendations)} recommendations for {request.user_id} "
            f"in {response.processing_time_ms:.2f}ms"
        )
        return response

    async def _cached_response(self, cache_key: str) -> Optional[RecommendationResponse]:
        data = await self.cache.get(cache_key)
        if data is None:
            return None
        try:
            response = RecommendationResponse.model_validate(data)
        except ValidationError:
            logger.warning(f"Dropping malformed cached response {cache_key}")
            await self.cache.delete(cache_key)
            return None
        age_seconds = (self.clock() - response.metadata.timestamp).total_seconds()
        if age_seconds > self.parameters["cache_max_age"]:
            return None
        return response

    async def load_requester(self, user_id: str) -> UserProfile:
        """Read-through load of the requester profile via `profile:user:{id}`."""
        key = RecommendationCache.build_key("user_profile", user_id=user_id)
        data = await self.cache.get(key)
        if data is not None:
            try:
                return UserProfile.model_validate(data)
            except ValidationError:
                logger.warning(f"Dropping malformed cached profile {key}")
                await self.cache.delete(key)

        try:
            profile = await self.store.get_user_profile(user_id)
        except DataAccessError:
            raise
        except Exception as e:
            raise DataAccessError("get_user_profile", e) from e
        if profile is None:
            raise ProfileNotFoundError(user_id)

        await self.cache.set(
            key,
            profile.model_dump(mode="json"),
            ttl=self.cache.get_ttl("user_profile"),
            metadata={"user_id": user_id, "cache_type": "user_profile"},
        )
        return profile

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def update_weights(self, new_weights: Dict[str, float]) -> Dict[str, float]:
        """
        Update core factor weights at runtime.

        Raises:
            ConfigurationError: unknown factor or a weight outside [0, 1]
        """
        _validate_weights("factor weight", self.weights, new_weights)
        self.weights = {**self.weights, **new_weights}
        total = sum(self.weights.values())
        if abs(total - 1.0) > 1e-6:
            logger.warning(f"⚠️ Core factor weights sum to {total:.3f}, expected 1.0")
        logger.info(f"Updated factor weights: {self.weights}")
        return dict(self.weights)

    def update_parameters(self, new_parameters: Dict[str, Any]) -> Dict[str, Any]:
        """
        Update bonus weights, pipeline parameters and nested scorer settings.

        Accepted keys: bonus factor names, DEFAULT_PARAMETERS keys, and the
        nested dicts `university_weights`, `mutual_connections`, `interest_weights`.

        Raises:
            ConfigurationError: unknown key or invalid value
        """
        nested = {"university_weights", "mutual_connections", "interest_weights"}
        allowed = set(BONUS_FACTORS) | set(DEFAULT_PARAMETERS) | nested
        unknown = set(new_parameters) - allowed
        if unknown:
            raise ConfigurationError(f"Unknown parameters: {sorted(unknown)}")

        bonus = {k: v for k, v in new_parameters.items() if k in BONUS_FACTORS}
        _validate_weights("bonus factor", self.bonus_factors, bonus)

        pipeline = {k: v for k, v in new_parameters.items() if k in DEFAULT_PARAMETERS}
        for name, value in pipeline.items():
            if name == "request_timeout_seconds":
                if value is not None and (not isinstance(value, (int, float)) or value <= 0):
                    raise ConfigurationError("request_timeout_seconds must be positive or null")
            elif name in _INT_PARAMETERS:
                if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                    raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
            elif not isinstance(value, (int, float)) or value < 0:
                raise ConfigurationError(f"{name} must be a non-negative number, got {value!r}")

        if "university_weights" in new_parameters:
            _validate_weights(
                "university weight", self.university_scorer.weights, new_parameters["university_weights"]
            )
        if "interest_weights" in new_parameters:
            _validate_weights(
                "interest weight", self.interest_scorer.weights, new_parameters["interest_weights"]
            )
        if "mutual_connections" in new_parameters:
            self.mutual_scorer.validate_parameters(new_parameters["mutual_connections"])

        self.bonus_factors = {**self.bonus_factors, **bonus}
        self.parameters = {**self.parameters, **pipeline}
        if "university_weights" in new_parameters:
            self.university_scorer.update_weights(new_parameters["university_weights"])
        if "mutual_connections" in new_parameters:
            self.mutual_scorer.update_parameters(new_parameters["mutual_connections"])
        if "interest_weights" in new_parameters:
            self.interest_scorer.update_weights(new_parameters["interest_weights"])

        logger.info(f"Updated engine parameters: {sorted(new_parameters)}")
        return self.get_configuration()

    def get_configuration(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "weights": dict(self.weights),
            "bonus_factors": dict(self.bonus_factors),
            "parameters": dict(self.parameters),
            "university": self.university_scorer.get_configuration(),
            "mutual_connections": self.mutual_scorer.get_configuration(),
            "interests": self.interest_scorer.get_configuration(),
            "cache_ttl": dict(self.cache.ttl_config),
        }

    # =========================================================================
    # CACHE MAINTENANCE
    # =========================================================================

    async def invalidate_user(self, user_id: str) -> int:
        return await self.cache.invalidate_user(user_id)

    async def warmup(self, user_ids: List[str]) -> int:
        """Preload requester profiles into the cache and their interest embeddings."""
        async def load(user_id: str):
            profile = await self.store.get_user_profile(user_id)
            if profile is None:
                return None
            self.interest_scorer.warm_embedding(profile)
            return profile.model_dump(mode="json")

        return await self.cache.warmup(user_ids, load)

    async def get_cache_stats(self) -> Dict[str, Any]:
        stats = await self.cache.get_stats()
        return {
            "cache": stats.model_dump(),
            "lookups": [
                self.university_scorer.ranking_cache.stats(),
                self.mutual_scorer.strength_cache.stats(),
                self.interest_scorer.embedding_cache.stats(),
            ],
        }
