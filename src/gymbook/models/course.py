from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Enum as SQLEnum, ForeignKey, Integer, String, Time, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from gymbook.models.base import Base
from gymbook.schemas.enums import CourseStatus, RegistrationStatus


class Course(Base):
    """A scheduled course session."""
    __tablename__ = "courses"

    title = Column(String, nullable=False)
    trainer = Column(String, nullable=True)
    course_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    max_participants = Column(Integer, nullable=False)
    registration_deadline_minutes = Column(Integer, nullable=True, default=0)
    cancellation_deadline_minutes = Column(Integer, nullable=True, default=0)
    is_cancelled = Column(Boolean, default=False, nullable=False)
    status = Column(
        SQLEnum(CourseStatus, name="course_status", values_callable=lambda e: [m.value for m in e]),
        default=CourseStatus.ACTIVE,
        nullable=False,
    )

    # Relationships
    registrations = relationship("CourseRegistration", back_populates="course")


class CourseRegistration(Base):
    """Registration of a user for a course; cancelled rows are kept for history."""
    __tablename__ = "course_registrations"
    __table_args__ = (UniqueConstraint("course_id", "user_id", name="uq_course_registrations_course_user"),)

    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(
        SQLEnum(RegistrationStatus, name="registration_status", values_callable=lambda e: [m.value for m in e]),
        default=RegistrationStatus.REGISTERED,
        nullable=False,
    )
    registered_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    course = relationship("Course", back_populates="registrations")
    user = relationship("User", back_populates="registrations")
