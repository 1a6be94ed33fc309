from datetime import date, time
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.crud.base import CRUDBase
from gymbook.models.course import Course, CourseRegistration
from gymbook.schemas.enums import RegistrationStatus


class CRUDCourse(CRUDBase[Course, Any, Any]):
    """Read access to scheduled courses."""

    async def get_fresh(self, db: AsyncSession, *, id: UUID) -> Course | None:
        """Get a course, bypassing anything already loaded in the session."""
        stmt = select(Course).where(Course.id == id).execution_options(populate_existing=True)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_upcoming(
        self,
        db: AsyncSession,
        *,
        today: date,
        now_time: time,
        max_days: int | None = None,
    ) -> list[Course]:
        """Get non-cancelled courses that have not ended yet.

        Args:
            db: Database session
            today: Current date in the gym's timezone
            now_time: Current wall-clock time in the gym's timezone
            max_days: Keep only the first N distinct course dates

        Returns:
            list[Course]: Courses ordered by date and start time
        """
        stmt = (
            select(Course)
            .where(
                Course.is_cancelled == False,  # noqa: E712
                or_(
                    Course.course_date > today,
                    and_(Course.course_date == today, Course.end_time > now_time),
                ),
            )
            .order_by(Course.course_date, Course.start_time)
        )
        result = await db.execute(stmt)
        courses = list(result.scalars().all())
        if max_days is None:
            return courses

        dates: list[date] = []
        kept = []
        for course in courses:
            if course.course_date not in dates:
                if len(dates) >= max_days:
                    break
                dates.append(course.course_date)
            kept.append(course)
        return kept

    async def get_status_counts(
        self, db: AsyncSession, *, course_ids: list[UUID]
    ) -> dict[UUID, dict[RegistrationStatus, int]]:
        """Count registrations per course and status."""
        if not course_ids:
            return {}
        stmt = (
            select(CourseRegistration.course_id, CourseRegistration.status, func.count())
            .where(CourseRegistration.course_id.in_(course_ids))
            .group_by(CourseRegistration.course_id, CourseRegistration.status)
        )
        result = await db.execute(stmt)
        counts: dict[UUID, dict[RegistrationStatus, int]] = {}
        for course_id, status, total in result.all():
            counts.setdefault(course_id, {})[status] = total
        return counts


course = CRUDCourse(Course)
