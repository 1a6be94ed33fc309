from sqlalchemy import Column, String
from sqlalchemy.orm import relationship

from .base import Base


class User(Base):
    """Local mirror of a Supabase Auth user."""
    __tablename__ = "users"

    email = Column(String, nullable=True, unique=True)
    display_name = Column(String, nullable=True)

    # Relationships
    roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan")
    memberships = relationship("UserMembership", back_populates="user")
    registrations = relationship("CourseRegistration", back_populates="user")
