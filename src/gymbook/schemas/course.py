from datetime import date, datetime, time
from typing import Optional
from uuid import UUID

from .base import BaseSchema
from .enums import RegistrationStatus


class CourseSummary(BaseSchema):
    """Upcoming course as shown in the course list and calendar."""
    id: UUID
    title: str
    trainer: Optional[str] = None
    course_date: date
    start_time: time
    end_time: time
    max_participants: int
    registration_deadline_minutes: Optional[int] = None
    cancellation_deadline_minutes: Optional[int] = None
    registered_count: int = 0
    waitlist_count: int = 0
    is_registered: bool = False
    is_waitlisted: bool = False


class Participant(BaseSchema):
    """One row of a course participant list."""
    user_id: UUID
    display_name: Optional[str] = None
    status: RegistrationStatus
    registered_at: datetime
