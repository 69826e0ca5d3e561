# Export all recommendation models for easy imports
from .base import Base
from .user import User, UserProfile
from .university import University, Department
from .social import SocialRelationship, UserInteraction, UserEngagementPattern

__all__ = [
    "Base",
    "User",
    "UserProfile",
    "University",
    "Department",
    "SocialRelationship",
    "UserInteraction",
    "UserEngagementPattern",
]
