"""
Read side of the course schedule: the upcoming list and participant lists.
"""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

import pytz
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.config import settings
from gymbook.crud.crud_course import course as crud_course
from gymbook.crud.crud_registration import registration as crud_registration
from gymbook.schemas.course import CourseSummary, Participant
from gymbook.schemas.enums import RegistrationStatus

logger = logging.getLogger(__name__)


class CourseCatalog:
    async def list_upcoming(
        self,
        db: AsyncSession,
        *,
        user_id: UUID,
        now: Optional[datetime] = None,
        max_days: Optional[int] = None,
    ) -> list[CourseSummary]:
        """
        Get upcoming courses with roster counts and the caller's own status.

        Args:
            db: Database session
            user_id: Member viewing the list
            now: Current instant (defaults to now); converted to the gym's timezone
            max_days: Number of distinct course days to return

        Returns:
            list[CourseSummary]: Ordered by date and start time
        """
        tz = pytz.timezone(settings.GYM_TIMEZONE)
        local_now = (now or datetime.now(pytz.utc)).astimezone(tz)
        courses = await crud_course.get_upcoming(
            db,
            today=local_now.date(),
            now_time=local_now.time().replace(tzinfo=None),
            max_days=max_days or settings.UPCOMING_COURSE_DAYS,
        )
        course_ids = [c.id for c in courses]
        counts = await crud_course.get_status_counts(db, course_ids=course_ids)
        own = await crud_registration.get_user_statuses(db, user_id=user_id, course_ids=course_ids)

        summaries = []
        for c in courses:
            course_counts = counts.get(c.id, {})
            summary = CourseSummary.model_validate(c)
            summary.registered_count = course_counts.get(RegistrationStatus.REGISTERED, 0)
            summary.waitlist_count = course_counts.get(RegistrationStatus.WAITLIST, 0)
            summary.is_registered = own.get(c.id) == RegistrationStatus.REGISTERED
            summary.is_waitlisted = own.get(c.id) == RegistrationStatus.WAITLIST
            summaries.append(summary)
        logger.info(f"Listed {len(summaries)} upcoming courses for user {user_id}")
        return summaries

    async def participants(self, db: AsyncSession, *, course_id: UUID) -> list[Participant]:
        """Registered and waitlisted members of a course, in booking order."""
        rows = await crud_registration.get_participants(db, course_id=course_id)
        return [
            Participant(
                user_id=registration.user_id,
                display_name=display_name,
                status=registration.status,
                registered_at=registration.registered_at,
            )
            for registration, display_name in rows
        ]


course_catalog = CourseCatalog()
