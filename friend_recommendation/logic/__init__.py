"""
Recommendation Logic Module

Scoring components, contracts and errors for friend recommendations.
The engine lives in `engine.py` and is re-exported by the top-level package.
"""

from .contracts import (
    CandidateFilter,
    CandidateRow,
    EngagementPattern,
    GeoLocation,
    Interaction,
    PrivacyLevel,
    RecommendationCandidate,
    RecommendationRequest,
    RecommendationResponse,
    ScoreFactors,
    UniversityProfile,
    UserProfile,
)
from .errors import (
    ConfigurationError,
    DataAccessError,
    ProfileNotFoundError,
    RecommendationError,
    RecommendationTimeoutError,
    ScoringFault,
)

__all__ = [
    # Contracts
    "CandidateFilter",
    "CandidateRow",
    "EngagementPattern",
    "GeoLocation",
    "Interaction",
    "PrivacyLevel",
    "RecommendationCandidate",
    "RecommendationRequest",
    "RecommendationResponse",
    "ScoreFactors",
    "UniversityProfile",
    "UserProfile",

    # Errors
    "ConfigurationError",
    "DataAccessError",
    "ProfileNotFoundError",
    "RecommendationError",
    "RecommendationTimeoutError",
    "ScoringFault",
]
