from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String

from .base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    email = Column(String(255), unique=True, index=True)
    display_name = Column(String(255))
    email_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=False), default=datetime.utcnow, nullable=False)


class UserProfile(Base):
    __tablename__ = "user_profiles"

    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    user_type = Column(String(32), index=True)  # student/alumni/faculty/staff
    university_id = Column(String(64), ForeignKey("universities.id"), index=True)
    department_id = Column(String(64), ForeignKey("departments.id"))
    major = Column(String(255))
    graduation_year = Column(Integer)
    interests = Column(JSON, default=list)
    # Categories, behavioural counts and temporal interest lists
    interest_profile = Column(JSON)
    latitude = Column(Float)
    longitude = Column(Float)
    city = Column(String(128))
    state = Column(String(128))
    country = Column(String(128))
    profile_completion_score = Column(Float, default=0.0, nullable=False, index=True)
    last_active = Column(DateTime(timezone=False), index=True)
    updated_at = Column(DateTime(timezone=False), default=datetime.utcnow, onupdate=datetime.utcnow)
