"""
Data Contracts for the Friend Recommendation Engine

Defines Pydantic models for the Profile Store boundary (profiles, candidate rows,
interactions, engagement patterns), the request/response API and the
intermediate results produced by each scorer. The engine never works on raw
dicts: store implementations convert their rows into these models.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .constants import (
    ALGORITHM_VERSION,
    DEFAULT_DIVERSITY_FACTOR,
    DEFAULT_LIMIT,
    DEFAULT_MAX_AGE_DAYS,
)


class PrivacyLevel(str, Enum):
    """Requester privacy level controlling how far the candidate pool reaches."""
    PUBLIC = "public"
    UNIVERSITY = "university"
    FRIENDS = "friends"
    PRIVATE = "private"


class InteractionType(str, Enum):
    LIKE = "like"
    COMMENT = "comment"
    SHARE = "share"
    MENTION = "mention"
    MESSAGE = "message"
    FOLLOW = "follow"


# =============================================================================
# PROFILE STORE RECORDS
# =============================================================================

class GeoLocation(BaseModel):
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class UniversityProfile(BaseModel):
    """Institutional attributes of a user, as consumed by the university scorer."""
    university_id: Optional[str] = None
    university_name: Optional[str] = None
    department_id: Optional[str] = None
    department_name: Optional[str] = None
    major: Optional[str] = None
    graduation_year: Optional[int] = None
    location: Optional[GeoLocation] = None
    global_rank: Optional[int] = None
    department_rank: Optional[int] = None
    institution_type: Optional[str] = None  # public/private/community/research


class BehavioralData(BaseModel):
    """Sparse interest -> count maps collected from user activity."""
    post_interests: Dict[str, float] = Field(default_factory=dict)
    like_interests: Dict[str, float] = Field(default_factory=dict)
    share_interests: Dict[str, float] = Field(default_factory=dict)
    search_interests: Dict[str, float] = Field(default_factory=dict)
    time_spent: Dict[str, float] = Field(default_factory=dict)


class TemporalData(BaseModel):
    recent_interests: List[str] = Field(default_factory=list)
    trending_interests: List[str] = Field(default_factory=list)
    seasonal_interests: Dict[str, List[str]] = Field(default_factory=dict)  # season -> interests


class UserInterestProfile(BaseModel):
    """Interest signals for one user. `categories` is keyed by category name."""
    user_id: str
    interests: List[str] = Field(default_factory=list)
    categories: Dict[str, List[str]] = Field(default_factory=dict)
    weights: Dict[str, float] = Field(default_factory=dict)
    behavioral_data: BehavioralData = Field(default_factory=BehavioralData)
    temporal_data: TemporalData = Field(default_factory=TemporalData)
    last_updated: Optional[datetime] = None


class TimePattern(BaseModel):
    hours: List[float] = Field(default_factory=lambda: [0.0] * 24)
    days: List[float] = Field(default_factory=lambda: [0.0] * 7)


class ActivityPattern(BaseModel):
    post: float = 0.0
    like: float = 0.0
    comment: float = 0.0
    share: float = 0.0
    follow: float = 0.0
    message: float = 0.0

    def as_vector(self) -> List[float]:
        return [self.post, self.like, self.comment, self.share, self.follow, self.message]


class ContentPattern(BaseModel):
    text: float = 0.0
    image: float = 0.0
    video: float = 0.0
    link: float = 0.0
    poll: float = 0.0

    def as_vector(self) -> List[float]:
        return [self.text, self.image, self.video, self.link, self.poll]


class EngagementPattern(BaseModel):
    """Behavioural histograms of a user (hour/day, activity type, content type)."""
    user_id: str
    time_pattern: TimePattern = Field(default_factory=TimePattern)
    activity_pattern: ActivityPattern = Field(default_factory=ActivityPattern)
    content_pattern: ContentPattern = Field(default_factory=ContentPattern)


class Interaction(BaseModel):
    """A single interaction event between two users."""
    user_id: str
    target_user_id: str
    type: str
    created_at: datetime


class UserProfile(BaseModel):
    """
    Requester (or connection) profile as returned by the Profile Store.
    """
    user_id: str
    display_name: Optional[str] = None
    user_type: Optional[str] = None  # student/alumni/faculty/staff
    email_verified: bool = True
    university: UniversityProfile = Field(default_factory=UniversityProfile)
    interests: List[str] = Field(default_factory=list)
    interest_profile: Optional[UserInterestProfile] = None
    location: Optional[GeoLocation] = None
    profile_completeness: float = Field(default=0.0, ge=0.0, le=100.0)
    last_active: Optional[datetime] = None


class CandidateRow(UserProfile):
    """Candidate as returned by `get_candidates`, already past store-side filters."""
    pass


class CandidateFilter(BaseModel):
    """Filter handed to the Profile Store when retrieving candidates."""
    exclude_user_ids: List[str] = Field(default_factory=list)
    university_id: Optional[str] = None
    include_types: List[str] = Field(default_factory=list)
    exclude_types: List[str] = Field(default_factory=list)
    active_since: Optional[datetime] = None
    min_completeness: float = 0.0
    require_email_verified: bool = True
    limit: int = 1000


# =============================================================================
# REQUEST / RESPONSE CONTRACTS
# =============================================================================

class RecommendationRequest(BaseModel):
    """
    Input contract for the recommendation engine.
    Immutable once constructed; every optional field carries its effective default
    so the cache key always sees the normalized request.
    """
    user_id: str
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=100)
    exclude_users: List[str] = Field(default_factory=list)
    include_types: List[str] = Field(default_factory=list)
    exclude_types: List[str] = Field(default_factory=list)
    min_score: float = Field(default=0.0, ge=0.0, le=100.0)
    max_age_days: int = Field(default=DEFAULT_MAX_AGE_DAYS, ge=1)
    diversity_factor: float = Field(default=DEFAULT_DIVERSITY_FACTOR, ge=0.0, le=1.0)
    privacy_level: PrivacyLevel = PrivacyLevel.UNIVERSITY.value

    class Config:
        frozen = True
        use_enum_values = True


class ScoreFactors(BaseModel):
    """The eight [0,1] signals behind a candidate's score."""
    university: float = Field(default=0.0, ge=0.0, le=1.0)
    mutual_connections: float = Field(default=0.0, ge=0.0, le=1.0)
    interests: float = Field(default=0.0, ge=0.0, le=1.0)
    engagement: float = Field(default=0.0, ge=0.0, le=1.0)
    geography: float = Field(default=0.0, ge=0.0, le=1.0)
    recency: float = Field(default=0.0, ge=0.0, le=1.0)
    profile_completion: float = Field(default=0.0, ge=0.0, le=1.0)
    social_history: float = Field(default=0.0, ge=0.0, le=1.0)


class CandidateMetadata(BaseModel):
    university_id: Optional[str] = None
    university_name: Optional[str] = None
    department_id: Optional[str] = None
    department_name: Optional[str] = None
    mutual_count: int = 0
    shared_interests: List[str] = Field(default_factory=list)
    last_active: Optional[datetime] = None
    profile_completeness: float = 0.0
    faults: List[str] = Field(default_factory=list)  # sub-scores that failed and defaulted to 0


class RecommendationCandidate(BaseModel):
    user_id: str
    score: float = Field(ge=0.0, le=100.0)
    factors: ScoreFactors
    explanations: List[str] = Field(default_factory=list)
    metadata: CandidateMetadata = Field(default_factory=CandidateMetadata)


class ResponseMetadata(BaseModel):
    factors: Dict[str, float]
    bonus_factors: Dict[str, float]
    diversity: float = Field(default=0.0, ge=0.0, le=1.0)
    privacy: str
    timestamp: datetime


class RecommendationResponse(BaseModel):
    """Output contract of `generate_recommendations`."""
    recommendations: List[RecommendationCandidate] = Field(default_factory=list)
    total_candidates: int = 0
    algorithm_version: str = ALGORITHM_VERSION
    processing_time_ms: float = 0.0
    cache_hit: bool = False
    metadata: ResponseMetadata


# =============================================================================
# SCORER RESULTS
# =============================================================================

class UniversityScore(BaseModel):
    score: float = Field(ge=0.0, le=1.0)
    factors: Dict[str, float]
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ConnectionStrengthFactors(BaseModel):
    direct_interaction: float = 0.0
    shared_interests: float = 0.0
    university_connection: float = 0.0
    time_decay: float = 0.0
    engagement_level: float = 0.0


class ConnectionStrength(BaseModel):
    user_id: str
    strength: float = Field(ge=0.0, le=1.0)
    factors: ConnectionStrengthFactors = Field(default_factory=ConnectionStrengthFactors)
    last_interaction: Optional[datetime] = None
    interaction_count: int = 0
    interaction_types: Dict[str, int] = Field(default_factory=dict)


class MutualConnection(BaseModel):
    user_id: str
    display_name: Optional[str] = None
    university_name: Optional[str] = None
    department_name: Optional[str] = None
    relationship_strength: float = 0.0
    last_interaction: Optional[datetime] = None


class MutualConnectionAnalysis(BaseModel):
    average_strength: float = 0.0
    university_distribution: Dict[str, int] = Field(default_factory=dict)
    department_distribution: Dict[str, int] = Field(default_factory=dict)
    year_distribution: Dict[str, int] = Field(default_factory=dict)
    interaction_frequency: float = 0.0
    connection_quality: float = 0.0


class MutualConnectionMetadata(BaseModel):
    total_connections: int = 0
    mutual_percentage: float = 0.0
    strongest_connection: Optional[str] = None
    weakest_connection: Optional[str] = None
    most_recent_connection: Optional[str] = None
    oldest_connection: Optional[str] = None


class MutualConnectionData(BaseModel):
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    count: int = 0
    connections: List[MutualConnection] = Field(default_factory=list)
    analysis: MutualConnectionAnalysis = Field(default_factory=MutualConnectionAnalysis)
    metadata: MutualConnectionMetadata = Field(default_factory=MutualConnectionMetadata)


class InterestSimilarityMetadata(BaseModel):
    total_interests: int = 0
    shared_count: int = 0
    category_overlap: float = 0.0
    interest_diversity: float = 0.0
    recency_score: float = 0.0


class InterestSimilarityResult(BaseModel):
    score: float = Field(default=0.0, ge=0.0, le=1.0)
    shared_interests: List[str] = Field(default_factory=list)
    exact_match: float = 0.0
    category_similarity: Dict[str, float] = Field(default_factory=dict)
    category_score: float = 0.0
    semantic_similarity: float = 0.0
    behavioral_similarity: float = 0.0
    temporal_similarity: float = 0.0
    metadata: InterestSimilarityMetadata = Field(default_factory=InterestSimilarityMetadata)
