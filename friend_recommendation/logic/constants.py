"""
Scoring Engine Constants

Defines all weights, decay buckets, thresholds, interest categories and cache
TTLs used by the friend recommendation engine. All values are deterministic.
"""

from typing import Dict, List, Tuple

ALGORITHM_VERSION = "2.13.0"

# =============================================================================
# TOP-LEVEL FACTOR WEIGHTS
# =============================================================================

# Core factors (must sum to 1.0)
FACTOR_WEIGHTS: Dict[str, float] = {
    "university": 0.40,
    "mutual_connections": 0.25,
    "interests": 0.20,
    "engagement": 0.10,
    "geography": 0.05,
}

# Bonus factors are additive on top of the core score (sum to 0.10)
BONUS_FACTORS: Dict[str, float] = {
    "recency": 0.05,
    "profile_completion": 0.03,
    "social_history": 0.02,
}

# =============================================================================
# PIPELINE PARAMETERS
# =============================================================================

DEFAULT_LIMIT = 20
DEFAULT_MAX_AGE_DAYS = 90
DEFAULT_DIVERSITY_FACTOR = 0.8
DEFAULT_PRIVACY_LEVEL = "university"

BATCH_SIZE = 50
MAX_CANDIDATES = 1000
MIN_PROFILE_COMPLETENESS = 30

# Diversity filter caps on distinct groups seen so far
MAX_DISTINCT_UNIVERSITIES = 5
MAX_DISTINCT_DEPARTMENTS = 10

RECOMMENDATION_CACHE_TTL = 1800  # 30 minutes
RECOMMENDATION_CACHE_MAX_AGE = 1800

# =============================================================================
# UNIVERSITY AFFINITY
# =============================================================================

UNIVERSITY_WEIGHTS: Dict[str, float] = {
    "same_university": 0.40,
    "same_department": 0.25,
    "same_major": 0.10,
    "graduation_year_proximity": 0.15,
    "alumni_connection": 0.05,
    "geographic_proximity": 0.03,
    "university_ranking": 0.01,
    "department_ranking": 0.01,
}

UNIVERSITY_BONUSES: Dict[str, float] = {
    "top_tier_university": 1.2,
    "research_university": 1.1,
    "same_state": 1.05,
    "recent_graduate": 1.1,
    "current_student": 1.15,
}

TOP_TIER_RANK = 100
RECENT_GRADUATE_YEARS = 2

# (max year difference, score); anything beyond falls to the default
GRADUATION_YEAR_STEPS: List[Tuple[int, float]] = [(0, 1.0), (1, 0.8), (2, 0.6), (5, 0.4)]
GRADUATION_YEAR_DEFAULT = 0.2

ALUMNI_YEAR_STEPS: List[Tuple[int, float]] = [(5, 1.0), (10, 0.8), (20, 0.6)]
ALUMNI_YEAR_DEFAULT = 0.4
ALUMNI_UNKNOWN_YEARS = 0.8
ALUMNI_ONE_SIDED = 0.6
ALUMNI_NEITHER = 0.4

# (distance km upper bound exclusive, score)
GEOGRAPHIC_STEPS: List[Tuple[float, float]] = [
    (1, 1.0),
    (10, 0.8),
    (50, 0.6),
    (200, 0.4),
    (1000, 0.2),
]
GEOGRAPHIC_DEFAULT = 0.1

UNIVERSITY_RANKING_STEPS: List[Tuple[int, float]] = [(50, 1.0), (100, 0.8), (200, 0.6), (500, 0.4)]
DEPARTMENT_RANKING_STEPS: List[Tuple[int, float]] = [(10, 1.0), (25, 0.8), (50, 0.6), (100, 0.4)]
RANKING_DEFAULT = 0.2

EARTH_RADIUS_KM = 6371.0

# =============================================================================
# MUTUAL CONNECTIONS
# =============================================================================

MUTUAL_CONNECTION_PARAMETERS: Dict[str, float] = {
    "max_mutual_connections": 50,
    "count_weight": 0.30,
    "strength_weight": 0.40,
    "quality_weight": 0.20,
    "recency_weight": 0.10,
    "high_quality_threshold": 0.7,
}

CONNECTION_STRENGTH_WEIGHTS: Dict[str, float] = {
    "direct_interaction": 0.30,
    "shared_interests": 0.25,
    "university_connection": 0.20,
    "time_decay": 0.15,
    "engagement_level": 0.10,
}

# Interaction type weights for direct connection strength
INTERACTION_WEIGHTS: Dict[str, float] = {
    "like": 0.1,
    "comment": 0.3,
    "share": 0.5,
    "mention": 0.4,
    "message": 0.6,
    "follow": 0.8,
}

INTERACTION_TYPE_COUNT = 6
INTERACTION_FREQUENCY_NORMALIZER = 10

# (max days since interaction inclusive, decay factor)
TIME_DECAY_STEPS: List[Tuple[int, float]] = [
    (7, 1.0),
    (30, 0.9),
    (90, 0.7),
    (365, 0.5),
    (730, 0.3),
]
TIME_DECAY_DEFAULT = 0.1

# =============================================================================
# INTEREST SIMILARITY
# =============================================================================

INTEREST_WEIGHTS: Dict[str, float] = {
    "exact_match": 0.40,
    "category_match": 0.25,
    "semantic_similarity": 0.20,
    "behavioral_similarity": 0.10,
    "temporal_similarity": 0.05,
}

INTEREST_CATEGORIES: Dict[str, Dict] = {
    "academic": {
        "name": "Academic",
        "weight": 0.30,
        "interests": [
            "Computer Science", "Mathematics", "Physics", "Chemistry", "Biology",
            "Engineering", "Medicine", "Law", "Business", "Economics",
        ],
    },
    "technology": {
        "name": "Technology",
        "weight": 0.25,
        "interests": [
            "Programming", "AI/ML", "Web Development", "Mobile Apps", "Data Science",
            "Cybersecurity", "Blockchain", "IoT", "Robotics", "Gaming",
        ],
    },
    "arts": {
        "name": "Arts & Culture",
        "weight": 0.20,
        "interests": [
            "Music", "Art", "Literature", "Film", "Theater",
            "Photography", "Design", "Fashion", "Architecture", "Museums",
        ],
    },
    "sports": {
        "name": "Sports & Fitness",
        "weight": 0.15,
        "interests": [
            "Football", "Basketball", "Soccer", "Tennis", "Swimming",
            "Running", "Gym", "Yoga", "Martial Arts", "Outdoor Activities",
        ],
    },
    "lifestyle": {
        "name": "Lifestyle",
        "weight": 0.10,
        "interests": [
            "Travel", "Food", "Cooking", "Fashion", "Beauty",
            "Health", "Wellness", "Home Decor", "Gardening", "Pets",
        ],
    },
}

EMBEDDING_DIMENSIONS = 50
INTEREST_RECENCY_WINDOW_DAYS = 30

BEHAVIORAL_MAPS: List[str] = [
    "post_interests",
    "like_interests",
    "share_interests",
    "search_interests",
    "time_spent",
]

# Month (1-12) to season
SEASONS: Dict[int, str] = {
    3: "spring", 4: "spring", 5: "spring",
    6: "summer", 7: "summer", 8: "summer",
    9: "autumn", 10: "autumn", 11: "autumn",
    12: "winter", 1: "winter", 2: "winter",
}

# =============================================================================
# BONUS FACTORS
# =============================================================================

# (days since last active exclusive, score)
RECENCY_STEPS: List[Tuple[float, float]] = [(1, 1.0), (7, 0.8), (30, 0.6), (90, 0.4)]
RECENCY_DEFAULT = 0.1

SOCIAL_HISTORY_WEIGHTS: Dict[str, float] = {
    "like": 0.1,
    "comment": 0.2,
    "share": 0.3,
    "mention": 0.4,
}
SOCIAL_HISTORY_WINDOW_DAYS = 365

# =============================================================================
# EXPLANATION THRESHOLDS
# =============================================================================

EXPLANATION_THRESHOLDS: Dict[str, float] = {
    "university": 0.8,
    "mutual_connections": 0.7,
    "interests": 0.6,
    "engagement": 0.5,
    "profile_completeness": 80,
    "recently_active_days": 7,
    "engagement_reason": 0.5,
    "geography_reason": 0.3,
}

# =============================================================================
# CACHE
# =============================================================================

CACHE_TTL: Dict[str, int] = {
    "recommendations": 1800,
    "user_profile": 3600,
    "mutual_connections": 900,
    "university_data": 86400,
    "interest_embeddings": 7200,
    "algorithm_results": 1800,
    "batch_results": 3600,
    "realtime_updates": 300,
    "ab_test_results": 604800,
}

# Lookup caches (in-process, read-mostly)
LOOKUP_CACHE_MAX_SIZE = 10000
RANKING_LOOKUP_TTL = 86400
EMBEDDING_LOOKUP_TTL = 7200
