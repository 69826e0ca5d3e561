"""
Interest Similarity Scorer

Combines five similarity measures between two users' interests:
exact match (Jaccard), category overlap, semantic similarity over summed
interest embeddings, behavioural similarity over activity count maps and
temporal similarity over recent, trending and seasonal interest lists.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np

from .constants import (
    BEHAVIORAL_MAPS,
    EMBEDDING_LOOKUP_TTL,
    INTEREST_CATEGORIES,
    INTEREST_RECENCY_WINDOW_DAYS,
    INTEREST_WEIGHTS,
    LOOKUP_CACHE_MAX_SIZE,
    SEASONS,
)
from .contracts import (
    InterestSimilarityMetadata,
    InterestSimilarityResult,
    UserInterestProfile,
    UserProfile,
)
from .embeddings import DEFAULT_EMBEDDINGS, EmbeddingTable
from .errors import ConfigurationError
from .lookup_cache import LookupCache
from .utils import clamp, cosine_similarity, days_between, jaccard, sparse_cosine_similarity, utc_now


def current_season(now: datetime) -> str:
    return SEASONS[now.month]


def interest_profile_for(user: UserProfile) -> UserInterestProfile:
    """The user's interest profile, or one built from the flat interest list."""
    if user.interest_profile is not None:
        profile = user.interest_profile
        if not profile.interests and user.interests:
            profile = profile.model_copy(update={"interests": list(user.interests)})
        return profile
    return UserInterestProfile(user_id=user.user_id, interests=list(user.interests))


def categorize_interests(interests: List[str]) -> Dict[str, List[str]]:
    """Group interests by category name using the fixed category membership lists."""
    categories: Dict[str, List[str]] = {}
    for category in INTEREST_CATEGORIES.values():
        members = [i for i in interests if i in category["interests"]]
        if members:
            categories[category["name"]] = members
    return categories


def user_categories(profile: UserInterestProfile) -> Dict[str, List[str]]:
    return profile.categories or categorize_interests(profile.interests)


def exact_match_similarity(user: UserInterestProfile, candidate: UserInterestProfile) -> float:
    return jaccard(user.interests, candidate.interests)


def category_similarity(user: UserInterestProfile, candidate: UserInterestProfile) -> Dict[str, Any]:
    """
    Per-category Jaccard similarity.

    The overall value is the category-weighted sum divided by the number of
    categories in which either user has any interest.
    """
    user_cats = user_categories(user)
    candidate_cats = user_categories(candidate)
    by_category: Dict[str, float] = {}
    total = 0.0
    counted = 0

    for category in INTEREST_CATEGORIES.values():
        name = category["name"]
        user_members = user_cats.get(name, [])
        candidate_members = candidate_cats.get(name, [])
        if not user_members and not candidate_members:
            by_category[name] = 0.0
            continue
        similarity = jaccard(user_members, candidate_members)
        by_category[name] = similarity
        total += similarity * category["weight"]
        counted += 1

    return {"overall": total / counted if counted else 0.0, "by_category": by_category}


def behavioral_similarity(user: UserInterestProfile, candidate: UserInterestProfile) -> float:
    user_data = user.behavioral_data
    candidate_data = candidate.behavioral_data
    scores = [
        sparse_cosine_similarity(getattr(user_data, field), getattr(candidate_data, field))
        for field in BEHAVIORAL_MAPS
    ]
    return sum(scores) / len(scores)


def temporal_similarity(user: UserInterestProfile, candidate: UserInterestProfile, now: datetime) -> float:
    season = current_season(now)
    scores = [
        jaccard(user.temporal_data.recent_interests, candidate.temporal_data.recent_interests),
        jaccard(user.temporal_data.trending_interests, candidate.temporal_data.trending_interests),
        jaccard(
            user.temporal_data.seasonal_interests.get(season, []),
            candidate.temporal_data.seasonal_interests.get(season, []),
        ),
    ]
    return sum(scores) / len(scores)


def shared_interests(user: UserInterestProfile, candidate: UserInterestProfile) -> List[str]:
    """Interests present in both lists, in the requester's order."""
    candidate_set = set(candidate.interests)
    seen = set()
    shared = []
    for interest in user.interests:
        if interest in candidate_set and interest not in seen:
            shared.append(interest)
            seen.add(interest)
    return shared


def category_overlap(user: UserInterestProfile, candidate: UserInterestProfile) -> float:
    user_cats = set(user_categories(user))
    candidate_cats = set(user_categories(candidate))
    union = user_cats | candidate_cats
    return len(user_cats & candidate_cats) / len(union) if union else 0.0


def interest_diversity(user: UserInterestProfile, candidate: UserInterestProfile) -> float:
    combined = list(user.interests) + list(candidate.interests)
    return len(set(combined)) / len(combined) if combined else 0.0


def profile_recency(user: UserInterestProfile, candidate: UserInterestProfile, now: datetime) -> float:
    """Linear decay to zero over 30 days since each profile's last update, averaged."""
    def score(profile: UserInterestProfile) -> float:
        if profile.last_updated is None:
            return 0.0
        age = days_between(profile.last_updated, now)
        return max(0.0, 1 - age / INTEREST_RECENCY_WINDOW_DAYS)

    return (score(user) + score(candidate)) / 2


class InterestSimilarityScorer:
    """
    Args:
        embeddings: static interest embedding table
        embedding_cache: LookupCache for per-user embedding vectors
        clock: returns the current datetime
    """

    def __init__(
        self,
        embeddings: EmbeddingTable = DEFAULT_EMBEDDINGS,
        embedding_cache: Optional[LookupCache] = None,
        clock=utc_now,
    ):
        self.embeddings = embeddings
        if embedding_cache is None:
            embedding_cache = LookupCache(
                "interest_embeddings", max_size=LOOKUP_CACHE_MAX_SIZE, ttl_seconds=EMBEDDING_LOOKUP_TTL
            )
        self.embedding_cache = embedding_cache
        self.clock = clock
        self.weights: Dict[str, float] = dict(INTEREST_WEIGHTS)

    def user_embedding(self, profile: UserInterestProfile) -> np.ndarray:
        # Keyed on user and interest set
        key = (profile.user_id, tuple(sorted(set(profile.interests))))
        vector = self.embedding_cache.get(key)
        if vector is None:
            vector = self.embeddings.embed(profile.interests)
            self.embedding_cache.set(key, vector)
        return vector

    def semantic_similarity(self, user: UserInterestProfile, candidate: UserInterestProfile) -> float:
        return clamp(cosine_similarity(self.user_embedding(user), self.user_embedding(candidate)))

    def calculate_similarity(self, user: UserProfile, candidate: UserProfile) -> InterestSimilarityResult:
        """
        Score interest similarity between requester and candidate.

        Returns:
            InterestSimilarityResult with the weighted score, each component and
            metadata (shared interests, category overlap, diversity, recency)
        """
        now = self.clock()
        user_profile = interest_profile_for(user)
        candidate_profile = interest_profile_for(candidate)

        exact = exact_match_similarity(user_profile, candidate_profile)
        categories = category_similarity(user_profile, candidate_profile)
        semantic = self.semantic_similarity(user_profile, candidate_profile)
        behavioral = clamp(behavioral_similarity(user_profile, candidate_profile))
        temporal = temporal_similarity(user_profile, candidate_profile, now)

        score = (
            clamp(exact) * self.weights["exact_match"]
            + clamp(categories["overall"]) * self.weights["category_match"]
            + semantic * self.weights["semantic_similarity"]
            + behavioral * self.weights["behavioral_similarity"]
            + clamp(temporal) * self.weights["temporal_similarity"]
        )

        shared = shared_interests(user_profile, candidate_profile)
        return InterestSimilarityResult(
            score=clamp(score),
            shared_interests=shared,
            exact_match=exact,
            category_similarity=categories["by_category"],
            category_score=categories["overall"],
            semantic_similarity=semantic,
            behavioral_similarity=behavioral,
            temporal_similarity=temporal,
            metadata=InterestSimilarityMetadata(
                total_interests=len(user_profile.interests) + len(candidate_profile.interests),
                shared_count=len(shared),
                category_overlap=category_overlap(user_profile, candidate_profile),
                interest_diversity=interest_diversity(user_profile, candidate_profile),
                recency_score=profile_recency(user_profile, candidate_profile, now),
            ),
        )

    def warm_embedding(self, user: UserProfile) -> np.ndarray:
        return self.user_embedding(interest_profile_for(user))

    def update_weights(self, new_weights: Dict[str, float]) -> None:
        unknown = set(new_weights) - set(self.weights)
        if unknown:
            raise ConfigurationError(f"Unknown interest weights: {sorted(unknown)}")
        self.weights = {**self.weights, **new_weights}

    def get_configuration(self) -> Dict[str, Any]:
        return {
            "weights": dict(self.weights),
            "categories": {c["name"]: c["weight"] for c in INTEREST_CATEGORIES.values()},
            "embedding_dimensions": self.embeddings.dimensions,
            "known_interests": len(self.embeddings),
        }
