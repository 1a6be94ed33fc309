from .base import Base
from .core import User
from .user_role import UserRole
from .membership import MembershipPlan, UserMembership
from .course import Course, CourseRegistration

__all__ = [
    "Base",
    "User",
    "UserRole",
    "MembershipPlan",
    "UserMembership",
    "Course",
    "CourseRegistration",
]
