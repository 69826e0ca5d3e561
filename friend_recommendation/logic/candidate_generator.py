"""
Candidate Generator

Fetches the filtered, ordered and capped candidate pool for a requester from
the Profile Store. Store failures abort retrieval with DataAccessError; no
partial pool is ever returned.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Awaitable, List, Optional, TypeVar

from .constants import MAX_CANDIDATES, MIN_PROFILE_COMPLETENESS
from .contracts import CandidateFilter, CandidateRow, PrivacyLevel, RecommendationRequest, UserProfile
from .errors import DataAccessError

logger = logging.getLogger(__name__)

T = TypeVar("T")

INSTITUTION_SCOPED_LEVELS = (PrivacyLevel.UNIVERSITY, PrivacyLevel.FRIENDS)


@dataclass
class CandidatePool:
    candidates: List[CandidateRow] = field(default_factory=list)
    # Requester's existing connections, reused by mutual-connection scoring
    connections: List[str] = field(default_factory=list)
    blocked: List[str] = field(default_factory=list)


async def _guarded(operation: str, call: Awaitable[T]) -> T:
    try:
        return await call
    except DataAccessError:
        raise
    except Exception as e:
        logger.error(f"❌ Candidate retrieval failed during {operation}: {e}")
        raise DataAccessError(operation, e) from e


def build_candidate_filter(
    request: RecommendationRequest,
    requester: UserProfile,
    blocked: List[str],
    connections: List[str],
    now: datetime,
    max_candidates: int = MAX_CANDIDATES,
    min_completeness: float = MIN_PROFILE_COMPLETENESS,
) -> CandidateFilter:
    """
    Translate a request into a store filter.

    - excludes the requester, explicit exclusions, blocked users and existing connections
    - restricts to the requester's university for `university` / `friends` privacy
    - completeness floor is the larger of the base floor and `min_score`
    """
    excluded = [request.user_id, *request.exclude_users, *blocked, *connections]
    university_id = None
    if request.privacy_level in INSTITUTION_SCOPED_LEVELS:
        university_id = requester.university.university_id

    return CandidateFilter(
        exclude_user_ids=list(dict.fromkeys(excluded)),
        university_id=university_id,
        include_types=list(request.include_types),
        exclude_types=list(request.exclude_types),
        active_since=now - timedelta(days=request.max_age_days),
        min_completeness=max(min_completeness, request.min_score),
        require_email_verified=True,
        limit=max_candidates,
    )


async def generate_candidates(
    store,
    request: RecommendationRequest,
    requester: UserProfile,
    now: datetime,
    max_candidates: int = MAX_CANDIDATES,
    min_completeness: float = MIN_PROFILE_COMPLETENESS,
) -> CandidatePool:
    """
    Retrieve the candidate pool for `requester`.

    Args:
        store: Profile Store
        request: normalized recommendation request
        requester: requester's profile
        now: reference time for the activity window

    Returns:
        CandidatePool with candidates (ordered by completeness then last activity)
        and the requester's blocked/connection lists
    """
    blocked, connections = await asyncio.gather(
        _guarded("get_blocked_users", store.get_blocked_users(request.user_id)),
        _guarded("get_existing_connections", store.get_existing_connections(request.user_id)),
    )

    if request.privacy_level in INSTITUTION_SCOPED_LEVELS and not requester.university.university_id:
        logger.info(f"Requester {request.user_id} has no institution; {request.privacy_level} scope is empty")
        return CandidatePool(candidates=[], connections=list(connections), blocked=list(blocked))

    candidate_filter = build_candidate_filter(
        request, requester, blocked, connections, now, max_candidates, min_completeness
    )
    candidates = await _guarded("get_candidates", store.get_candidates(candidate_filter))

    # Cap applies even if the store ignores the limit
    return CandidatePool(
        candidates=list(candidates)[:max_candidates],
        connections=list(connections),
        blocked=list(blocked),
    )
