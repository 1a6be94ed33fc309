from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from gymbook.core.pbac import require_permission
from gymbook.crud.crud_course import course as crud_course
from gymbook.db.session import SessionDep
from gymbook.schemas import BookingResult, CourseSummary, CurrentUser, EligibilityResult, Participant
from gymbook.services.booking_engine import booking_engine
from gymbook.services.course_catalog import course_catalog
from gymbook.services.eligibility import BookingError, eligibility_service

router = APIRouter()


def _raise_on_failure(result: BookingResult) -> BookingResult:
    if not result.success:
        raise BookingError(result.reason)
    return result


@router.get("", response_model=list[CourseSummary])
async def read_upcoming_courses(
    current_user: Annotated[CurrentUser, Depends(require_permission("read", "courses"))],
    db: SessionDep,
    days: int | None = None,
) -> list[CourseSummary]:
    """Get upcoming courses with roster counts and the caller's own status."""
    return await course_catalog.list_upcoming(db, user_id=current_user.id, max_days=days)


@router.get("/{course_id}/participants", response_model=list[Participant])
async def read_course_participants(
    course_id: UUID,
    current_user: Annotated[CurrentUser, Depends(require_permission("read", "participants"))],
    db: SessionDep,
) -> list[Participant]:
    """Get the registered and waitlisted members of a course."""
    if not await crud_course.exists(db, id=course_id):
        raise HTTPException(status_code=404, detail="Course not found")
    return await course_catalog.participants(db, course_id=course_id)


@router.get("/{course_id}/eligibility", response_model=EligibilityResult)
async def read_course_eligibility(
    course_id: UUID,
    current_user: Annotated[CurrentUser, Depends(require_permission("read", "courses"))],
    db: SessionDep,
) -> EligibilityResult:
    """Check whether the caller may book a course. Advisory only."""
    return await eligibility_service.check_eligibility(db, user_id=current_user.id, course_id=course_id)


@router.post("/{course_id}/registration", response_model=BookingResult)
async def register_for_course(
    course_id: UUID,
    current_user: Annotated[CurrentUser, Depends(require_permission("book", "courses"))],
    db: SessionDep,
) -> BookingResult:
    """Register the caller for a course, or waitlist them if it is full."""
    result = await booking_engine.register(db, user_id=current_user.id, course_id=course_id)
    return _raise_on_failure(result)


@router.delete("/{course_id}/registration", response_model=BookingResult)
async def cancel_course_registration(
    course_id: UUID,
    current_user: Annotated[CurrentUser, Depends(require_permission("book", "courses"))],
    db: SessionDep,
) -> BookingResult:
    """Cancel the caller's registration or waitlist entry."""
    result = await booking_engine.cancel(db, user_id=current_user.id, course_id=course_id)
    return _raise_on_failure(result)
