"""
In-memory Profile Store.

Backs tests and local runs without a database. Applies the same filters and
ordering as SqlProfileStore.
"""

from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set

from ..logic.contracts import (
    CandidateFilter,
    CandidateRow,
    EngagementPattern,
    Interaction,
    UserProfile,
)
from ..logic.utils import ensure_utc

INTERACTION_LIMIT = 100


class InMemoryProfileStore:
    def __init__(self):
        self.profiles: Dict[str, UserProfile] = {}
        self.blocked: Dict[str, Set[str]] = defaultdict(set)
        self.connections: Dict[str, Set[str]] = defaultdict(set)
        self.interactions: List[Interaction] = []
        self.engagement_patterns: Dict[str, EngagementPattern] = {}
        self.university_rankings: Dict[str, int] = {}
        self.department_rankings: Dict[str, int] = {}

    # -------------------------------------------------------------------------
    # Fixture helpers
    # -------------------------------------------------------------------------

    def add_user(self, profile: UserProfile) -> UserProfile:
        self.profiles[profile.user_id] = profile
        return profile

    def connect(self, user_a: str, user_b: str) -> None:
        self.connections[user_a].add(user_b)
        self.connections[user_b].add(user_a)

    def block(self, user_id: str, blocked_user_id: str) -> None:
        self.blocked[user_id].add(blocked_user_id)

    def add_interaction(self, user_id: str, target_user_id: str, type: str, created_at: datetime) -> None:
        self.interactions.append(
            Interaction(user_id=user_id, target_user_id=target_user_id, type=type, created_at=created_at)
        )

    def set_engagement_pattern(self, pattern: EngagementPattern) -> None:
        self.engagement_patterns[pattern.user_id] = pattern

    # -------------------------------------------------------------------------
    # ProfileStore
    # -------------------------------------------------------------------------

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        profile = self.profiles.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    async def get_blocked_users(self, user_id: str) -> List[str]:
        return sorted(self.blocked.get(user_id, set()))

    async def get_existing_connections(self, user_id: str) -> List[str]:
        return sorted(self.connections.get(user_id, set()))

    async def get_candidates(self, candidate_filter: CandidateFilter) -> List[CandidateRow]:
        excluded = set(candidate_filter.exclude_user_ids)
        active_since = ensure_utc(candidate_filter.active_since) if candidate_filter.active_since else None
        rows: List[CandidateRow] = []
        for profile in self.profiles.values():
            if profile.user_id in excluded:
                continue
            if candidate_filter.require_email_verified and not profile.email_verified:
                continue
            if profile.profile_completeness < candidate_filter.min_completeness:
                continue
            if candidate_filter.university_id is not None and (
                profile.university.university_id != candidate_filter.university_id
            ):
                continue
            if candidate_filter.include_types and profile.user_type not in candidate_filter.include_types:
                continue
            if candidate_filter.exclude_types and profile.user_type in candidate_filter.exclude_types:
                continue
            if active_since is not None and (
                profile.last_active is None or ensure_utc(profile.last_active) < active_since
            ):
                continue
            rows.append(CandidateRow.model_validate(profile.model_dump()))

        oldest = datetime.min.replace(tzinfo=timezone.utc)
        rows.sort(
            key=lambda r: (
                r.profile_completeness,
                ensure_utc(r.last_active) if r.last_active else oldest,
            ),
            reverse=True,
        )
        return rows[: candidate_filter.limit]

    async def get_user_interactions(self, user_id: str, target_user_id: str) -> List[Interaction]:
        pair = {user_id, target_user_id}
        matches = [
            i for i in self.interactions
            if {i.user_id, i.target_user_id} == pair and i.user_id != i.target_user_id
        ]
        matches.sort(key=lambda i: ensure_utc(i.created_at), reverse=True)
        return matches[:INTERACTION_LIMIT]

    async def get_user_engagement_pattern(self, user_id: str) -> Optional[EngagementPattern]:
        return self.engagement_patterns.get(user_id)

    async def get_university_ranking(self, university_id: str) -> Optional[int]:
        return self.university_rankings.get(university_id)

    async def get_department_ranking(self, department_id: str) -> Optional[int]:
        return self.department_rankings.get(department_id)
