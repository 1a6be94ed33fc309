from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.crud.base import CRUDBase
from gymbook.models.core import User
from gymbook.models.course import Course, CourseRegistration
from gymbook.schemas.enums import RegistrationStatus


class CRUDRegistration(CRUDBase[CourseRegistration, Any, Any]):
    """Queries and mutations on course registrations."""

    async def get_for_user(
        self, db: AsyncSession, *, course_id: UUID, user_id: UUID
    ) -> CourseRegistration | None:
        """Get the registration row of a user for a course, whatever its status."""
        stmt = (
            select(CourseRegistration)
            .where(
                CourseRegistration.course_id == course_id,
                CourseRegistration.user_id == user_id,
            )
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def count_registered(self, db: AsyncSession, *, course_id: UUID) -> int:
        """Count roster (registered) rows of a course."""
        stmt = select(func.count()).select_from(CourseRegistration).where(
            CourseRegistration.course_id == course_id,
            CourseRegistration.status == RegistrationStatus.REGISTERED,
        )
        result = await db.execute(stmt)
        return result.scalar_one()

    async def count_registered_between(
        self, db: AsyncSession, *, user_id: UUID, start: date, end: date
    ) -> int:
        """Count a user's registered rows whose course date lies in [start, end]."""
        stmt = (
            select(func.count())
            .select_from(CourseRegistration)
            .join(Course, Course.id == CourseRegistration.course_id)
            .where(
                CourseRegistration.user_id == user_id,
                CourseRegistration.status == RegistrationStatus.REGISTERED,
                Course.course_date >= start,
                Course.course_date <= end,
            )
        )
        result = await db.execute(stmt)
        return result.scalar_one()

    async def upsert(
        self,
        db: AsyncSession,
        *,
        course_id: UUID,
        user_id: UUID,
        status: RegistrationStatus,
        existing: CourseRegistration | None = None,
    ) -> CourseRegistration:
        """Write the registration row for (course, user) and commit.

        A previous row is reused so that a pair never has more than one row.
        """
        now = datetime.utcnow()
        if existing is not None:
            existing.status = status
            existing.registered_at = now
            registration = existing
        else:
            registration = CourseRegistration(
                course_id=course_id,
                user_id=user_id,
                status=status,
                registered_at=now,
            )
        db.add(registration)
        await db.commit()
        return registration

    async def set_status(
        self, db: AsyncSession, *, registration: CourseRegistration, status: RegistrationStatus
    ) -> CourseRegistration:
        """Change the status of a registration row and commit."""
        registration.status = status
        db.add(registration)
        await db.commit()
        return registration

    async def get_user_statuses(
        self, db: AsyncSession, *, user_id: UUID, course_ids: list[UUID]
    ) -> dict[UUID, RegistrationStatus]:
        """Map course id to the user's registration status for those courses."""
        if not course_ids:
            return {}
        stmt = select(CourseRegistration.course_id, CourseRegistration.status).where(
            CourseRegistration.user_id == user_id,
            CourseRegistration.course_id.in_(course_ids),
        )
        result = await db.execute(stmt)
        return {course_id: status for course_id, status in result.all()}

    async def get_participants(self, db: AsyncSession, *, course_id: UUID) -> list[tuple[CourseRegistration, str | None]]:
        """Get non-cancelled registrations of a course with the member's display name."""
        stmt = (
            select(CourseRegistration, User.display_name)
            .join(User, User.id == CourseRegistration.user_id, isouter=True)
            .where(
                CourseRegistration.course_id == course_id,
                CourseRegistration.status != RegistrationStatus.CANCELLED,
            )
            .order_by(CourseRegistration.registered_at)
        )
        result = await db.execute(stmt)
        return [(registration, display_name) for registration, display_name in result.all()]


registration = CRUDRegistration(CourseRegistration)
