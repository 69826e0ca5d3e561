"""
SQLAlchemy Profile Store.

Reads users, profiles, institutions, relationships, interactions and engagement
patterns through the ORM models. Each call opens its own Session and runs in a
worker thread so the event loop is never blocked. SQLAlchemy errors surface as
DataAccessError.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, TypeVar

from pydantic import ValidationError
from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..logic.contracts import (
    ActivityPattern,
    CandidateFilter,
    CandidateRow,
    ContentPattern,
    EngagementPattern,
    GeoLocation,
    Interaction,
    TimePattern,
    UniversityProfile,
    UserInterestProfile,
    UserProfile,
)
from ..logic.errors import DataAccessError
from ..models import (
    Department,
    SocialRelationship,
    University,
    User,
    UserEngagementPattern,
    UserInteraction,
)
from ..models import UserProfile as UserProfileRow
from .memory_store import INTERACTION_LIMIT

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _to_naive_utc(value: datetime) -> datetime:
    """Columns are stored as naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _to_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _location(lat, lon, city=None, state=None, country=None) -> Optional[GeoLocation]:
    """Stored coordinates as a GeoLocation; out-of-range values are dropped."""
    if lat is None or lon is None:
        return None
    try:
        return GeoLocation(latitude=lat, longitude=lon, city=city, state=state, country=country)
    except ValidationError:
        logger.warning(f"⚠️ Ignoring invalid coordinates ({lat}, {lon})")
        return None


class SqlProfileStore:
    """
    Args:
        session_factory: sessionmaker bound to the application engine
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def _run(self, operation: str, fn: Callable[[Session], T]) -> T:
        def work() -> T:
            with self.session_factory() as session:
                return fn(session)

        try:
            return await asyncio.to_thread(work)
        except SQLAlchemyError as e:
            logger.error(f"❌ Profile store {operation} failed: {e}")
            raise DataAccessError(operation, e) from e

    # =========================================================================
    # ROW MAPPING
    # =========================================================================

    @staticmethod
    def _profile_query():
        return (
            select(User, UserProfileRow, University, Department)
            .join(UserProfileRow, UserProfileRow.user_id == User.id)
            .outerjoin(University, University.id == UserProfileRow.university_id)
            .outerjoin(Department, Department.id == UserProfileRow.department_id)
        )

    @staticmethod
    def _to_profile(user: User, row: UserProfileRow, university: Optional[University],
                    department: Optional[Department], model=UserProfile) -> UserProfile:
        interest_profile = None
        if row.interest_profile:
            interest_profile = UserInterestProfile.model_validate(
                {**row.interest_profile, "user_id": user.id, "interests": row.interests or []}
            )
            if interest_profile.last_updated is None:
                interest_profile.last_updated = _to_aware(row.updated_at)

        uni_profile = UniversityProfile(
            university_id=row.university_id,
            university_name=university.name if university else None,
            department_id=row.department_id,
            department_name=department.name if department else None,
            major=row.major,
            graduation_year=row.graduation_year,
            location=_location(
                university.latitude, university.longitude,
                university.city, university.state, university.country,
            ) if university else None,
            global_rank=university.global_rank if university else None,
            department_rank=department.ranking if department else None,
            institution_type=university.institution_type if university else None,
        )
        return model(
            user_id=user.id,
            display_name=user.display_name,
            user_type=row.user_type,
            email_verified=bool(user.email_verified),
            university=uni_profile,
            interests=row.interests or [],
            interest_profile=interest_profile,
            location=_location(row.latitude, row.longitude, row.city, row.state, row.country),
            profile_completeness=row.profile_completion_score or 0.0,
            last_active=_to_aware(row.last_active),
        )

    # =========================================================================
    # PROFILE STORE
    # =========================================================================

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        def query(session: Session) -> Optional[UserProfile]:
            result = session.execute(self._profile_query().where(User.id == user_id)).first()
            if result is None:
                return None
            return self._to_profile(*result)

        return await self._run("get_user_profile", query)

    async def get_blocked_users(self, user_id: str) -> List[str]:
        def query(session: Session) -> List[str]:
            stmt = select(SocialRelationship.following_id).where(
                SocialRelationship.follower_id == user_id,
                SocialRelationship.relationship_type == "block",
                SocialRelationship.status == "active",
            )
            return list(session.scalars(stmt))

        return await self._run("get_blocked_users", query)

    async def get_existing_connections(self, user_id: str) -> List[str]:
        def query(session: Session) -> List[str]:
            active_follow = and_(
                SocialRelationship.relationship_type == "follow",
                SocialRelationship.status == "active",
            )
            following = select(SocialRelationship.following_id).where(
                active_follow, SocialRelationship.follower_id == user_id
            )
            followers = select(SocialRelationship.follower_id).where(
                active_follow, SocialRelationship.following_id == user_id
            )
            ids = set(session.scalars(following)) | set(session.scalars(followers))
            ids.discard(user_id)
            return sorted(ids)

        return await self._run("get_existing_connections", query)

    async def get_candidates(self, candidate_filter: CandidateFilter) -> List[CandidateRow]:
        def query(session: Session) -> List[CandidateRow]:
            stmt = self._profile_query().where(
                UserProfileRow.profile_completion_score >= candidate_filter.min_completeness
            )
            if candidate_filter.exclude_user_ids:
                stmt = stmt.where(User.id.notin_(candidate_filter.exclude_user_ids))
            if candidate_filter.require_email_verified:
                stmt = stmt.where(User.email_verified.is_(True))
            if candidate_filter.university_id is not None:
                stmt = stmt.where(UserProfileRow.university_id == candidate_filter.university_id)
            if candidate_filter.include_types:
                stmt = stmt.where(UserProfileRow.user_type.in_(candidate_filter.include_types))
            if candidate_filter.exclude_types:
                stmt = stmt.where(
                    or_(
                        UserProfileRow.user_type.is_(None),
                        UserProfileRow.user_type.notin_(candidate_filter.exclude_types),
                    )
                )
            if candidate_filter.active_since is not None:
                stmt = stmt.where(UserProfileRow.last_active >= _to_naive_utc(candidate_filter.active_since))

            stmt = stmt.order_by(
                UserProfileRow.profile_completion_score.desc(),
                UserProfileRow.last_active.desc(),
            ).limit(candidate_filter.limit)

            candidates: List[CandidateRow] = []
            for row in session.execute(stmt):
                try:
                    candidates.append(self._to_profile(*row, model=CandidateRow))
                except ValidationError as e:
                    logger.warning(
                        f"⚠️ Skipping candidate {row[0].id} with invalid profile data: {e.error_count()} errors"
                    )
            return candidates

        return await self._run("get_candidates", query)

    async def get_user_interactions(self, user_id: str, target_user_id: str) -> List[Interaction]:
        def query(session: Session) -> List[Interaction]:
            stmt = (
                select(UserInteraction)
                .where(
                    or_(
                        and_(UserInteraction.user_id == user_id, UserInteraction.target_user_id == target_user_id),
                        and_(UserInteraction.user_id == target_user_id, UserInteraction.target_user_id == user_id),
                    )
                )
                .order_by(UserInteraction.created_at.desc())
                .limit(INTERACTION_LIMIT)
            )
            return [
                Interaction(
                    user_id=row.user_id,
                    target_user_id=row.target_user_id,
                    type=row.type,
                    created_at=_to_aware(row.created_at),
                )
                for row in session.scalars(stmt)
            ]

        return await self._run("get_user_interactions", query)

    async def get_user_engagement_pattern(self, user_id: str) -> Optional[EngagementPattern]:
        def query(session: Session) -> Optional[EngagementPattern]:
            row = session.get(UserEngagementPattern, user_id)
            if row is None:
                return None
            return EngagementPattern(
                user_id=user_id,
                time_pattern=TimePattern(hours=row.hours or [0.0] * 24, days=row.days or [0.0] * 7),
                activity_pattern=ActivityPattern(**(row.activities or {})),
                content_pattern=ContentPattern(**(row.content_types or {})),
            )

        return await self._run("get_user_engagement_pattern", query)

    async def get_university_ranking(self, university_id: str) -> Optional[int]:
        def query(session: Session) -> Optional[int]:
            return session.scalar(select(University.global_rank).where(University.id == university_id))

        return await self._run("get_university_ranking", query)

    async def get_department_ranking(self, department_id: str) -> Optional[int]:
        def query(session: Session) -> Optional[int]:
            return session.scalar(select(Department.ranking).where(Department.id == department_id))

        return await self._run("get_department_ranking", query)
