from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String

from .base import Base


class SocialRelationship(Base):
    __tablename__ = "social_relationships"

    id = Column(Integer, primary_key=True, autoincrement=True)
    follower_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    following_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    relationship_type = Column(String(16), nullable=False)  # follow/block
    status = Column(String(16), default="active", nullable=False)
    created_at = Column(DateTime(timezone=False), default=datetime.utcnow, nullable=False)


class UserInteraction(Base):
    __tablename__ = "user_interactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    target_user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    type = Column(String(32), nullable=False)
    content_id = Column(String(64))
    created_at = Column(DateTime(timezone=False), default=datetime.utcnow, nullable=False, index=True)


class UserEngagementPattern(Base):
    __tablename__ = "user_engagement_patterns"

    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    hours = Column(JSON)  # 24 activity counts
    days = Column(JSON)  # 7 activity counts
    activities = Column(JSON)  # activity type -> count
    content_types = Column(JSON)  # content type -> count
    updated_at = Column(DateTime(timezone=False), default=datetime.utcnow, onupdate=datetime.utcnow)
