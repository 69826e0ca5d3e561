"""
Profile Store boundary.

The engine only talks to user data through this protocol. Implementations
return typed records from logic.contracts and raise DataAccessError when the
underlying store fails.
"""

from typing import List, Optional, Protocol

from ..logic.contracts import CandidateFilter, CandidateRow, EngagementPattern, Interaction, UserProfile


class ProfileStore(Protocol):
    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]: ...

    async def get_blocked_users(self, user_id: str) -> List[str]: ...

    async def get_existing_connections(self, user_id: str) -> List[str]: ...

    async def get_candidates(self, candidate_filter: CandidateFilter) -> List[CandidateRow]: ...

    async def get_user_interactions(self, user_id: str, target_user_id: str) -> List[Interaction]: ...

    async def get_user_engagement_pattern(self, user_id: str) -> Optional[EngagementPattern]: ...

    async def get_university_ranking(self, university_id: str) -> Optional[int]: ...

    async def get_department_ranking(self, department_id: str) -> Optional[int]: ...
