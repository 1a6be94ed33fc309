"""
Course registration and cancellation.

Both member surfaces (course list and calendar day view) book through this
service. A registration is a two-step write: the credit deduction (credits
plans only) and the registration row. They are separate commits, so an
insert failure after a successful deduction is compensated by refunding the
credit before the error is reported.
"""
import logging
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID

import pytz
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.crud.crud_course import course as crud_course
from gymbook.crud.crud_registration import registration as crud_registration
from gymbook.schemas.booking import BookingResult
from gymbook.schemas.booking_rule import CreditsRule
from gymbook.schemas.enums import BookingFailureReason, RegistrationStatus
from gymbook.services.credit_ledger import CreditLedger, NotACreditsMembership, credit_ledger
from gymbook.services.deadline import is_before
from gymbook.services.eligibility import USER_MESSAGES, BookingError, EligibilityService, eligibility_service
from gymbook.services.registration_events import RegistrationChanged, RegistrationEventBus, registration_events
from gymbook.services.supabase_gateway import SupabaseGateway, supabase_gateway

logger = logging.getLogger(__name__)

SUCCESS_MESSAGES = {
    RegistrationStatus.REGISTERED: "You are registered for the course.",
    RegistrationStatus.WAITLIST: "The course is full. You have been put on the waitlist.",
    RegistrationStatus.CANCELLED: "Your registration has been cancelled.",
}


def _utcnow() -> datetime:
    return datetime.now(pytz.utc)


class BookingEngine:
    def __init__(
        self,
        eligibility: Optional[EligibilityService] = None,
        ledger: Optional[CreditLedger] = None,
        gateway: Optional[SupabaseGateway] = None,
        events: Optional[RegistrationEventBus] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.eligibility = eligibility or eligibility_service
        self.ledger = ledger or credit_ledger
        self.gateway = gateway or supabase_gateway
        self.events = events or registration_events
        self.clock = clock or _utcnow

    async def register(self, db: AsyncSession, *, user_id: UUID, course_id: UUID) -> BookingResult:
        """
        Register a user for a course, or put them on the waitlist if it is full.

        Args:
            db: Database session
            user_id: Member registering
            course_id: Target course

        Returns:
            BookingResult: ``success`` with the resulting status, or the reason
            the attempt was refused
        """
        try:
            return await self._register(db, user_id, course_id)
        except BookingError as e:
            logger.info(f"Registration of user {user_id} for course {course_id} refused: {e.reason.value}")
            return self._failure(user_id, course_id, e.reason)
        except SQLAlchemyError as e:
            logger.error(f"Database error registering user {user_id} for course {course_id}: {e}")
            await db.rollback()
            return self._failure(user_id, course_id, BookingFailureReason.TRANSIENT_FAILURE)

    async def cancel(self, db: AsyncSession, *, user_id: UUID, course_id: UUID) -> BookingResult:
        """
        Cancel a user's registration or waitlist entry.

        Once the deadline check passes the cancellation always stands; a
        failed credit refund is logged, never rolled back into the booking.
        """
        try:
            return await self._cancel(db, user_id, course_id)
        except BookingError as e:
            logger.info(f"Cancellation of user {user_id} for course {course_id} refused: {e.reason.value}")
            return self._failure(user_id, course_id, e.reason)
        except SQLAlchemyError as e:
            logger.error(f"Database error cancelling user {user_id} for course {course_id}: {e}")
            await db.rollback()
            return self._failure(user_id, course_id, BookingFailureReason.TRANSIENT_FAILURE)

    async def _register(self, db: AsyncSession, user_id: UUID, course_id: UUID) -> BookingResult:
        decision = await self.eligibility.evaluate(db, user_id=user_id, course_id=course_id)
        eligibility = decision.result
        if not eligibility.can_register and not eligibility.can_waitlist:
            raise BookingError(eligibility.reason or BookingFailureReason.NO_MEMBERSHIP)

        existing = await crud_registration.get_for_user(db, course_id=course_id, user_id=user_id)
        previous_status = existing.status if existing is not None else None
        if previous_status is not None and previous_status != RegistrationStatus.CANCELLED:
            raise BookingError(BookingFailureReason.ALREADY_REGISTERED)

        course = await crud_course.get_fresh(db, id=course_id)
        if course is None:
            raise BookingError(BookingFailureReason.NOT_FOUND)
        if not is_before(course.course_date, course.start_time, course.registration_deadline_minutes, now=self.clock()):
            raise BookingError(
                BookingFailureReason.DEADLINE_PASSED,
                f"Registration closes {course.registration_deadline_minutes or 0} minutes before start",
            )

        # Read-then-act: two concurrent registrations can both see a free slot
        registered_count = await crud_registration.count_registered(db, course_id=course_id)
        if not eligibility.can_register or registered_count >= course.max_participants:
            status = RegistrationStatus.WAITLIST
        else:
            status = RegistrationStatus.REGISTERED

        charged = (
            status == RegistrationStatus.REGISTERED
            and decision.policy is not None
            and isinstance(decision.policy.rule, CreditsRule)
        )
        remaining_credits = eligibility.remaining_credits
        if charged:
            remaining_credits = await self.ledger.deduct(db, user_id=user_id)

        try:
            await crud_registration.upsert(
                db, course_id=course_id, user_id=user_id, status=status, existing=existing
            )
        except SQLAlchemyError as e:
            logger.error(f"Writing registration of user {user_id} for course {course_id} failed: {e}")
            await db.rollback()
            if charged:
                await self._refund_after_failed_insert(db, user_id, course_id)
            raise BookingError(BookingFailureReason.TRANSIENT_FAILURE, str(e)) from e

        logger.info(f"User {user_id} -> course {course_id}: {status.value} ({registered_count} registered before)")

        if status == RegistrationStatus.REGISTERED:
            self._mark_active(user_id)
        self.events.publish(
            RegistrationChanged(course_id=course_id, user_id=user_id, status=status, previous_status=previous_status)
        )
        return BookingResult(
            success=True,
            course_id=course_id,
            user_id=user_id,
            status=status,
            message=SUCCESS_MESSAGES[status],
            remaining_credits=remaining_credits,
        )

    async def _cancel(self, db: AsyncSession, user_id: UUID, course_id: UUID) -> BookingResult:
        registration = await crud_registration.get_for_user(db, course_id=course_id, user_id=user_id)
        if registration is None or registration.status == RegistrationStatus.CANCELLED:
            raise BookingError(BookingFailureReason.NOT_FOUND)

        course = await crud_course.get_fresh(db, id=course_id)
        if course is None:
            raise BookingError(BookingFailureReason.NOT_FOUND)
        if not is_before(course.course_date, course.start_time, course.cancellation_deadline_minutes, now=self.clock()):
            raise BookingError(
                BookingFailureReason.DEADLINE_PASSED,
                f"Cancellation closes {course.cancellation_deadline_minutes or 0} minutes before start",
            )

        previous_status = registration.status
        await crud_registration.set_status(db, registration=registration, status=RegistrationStatus.CANCELLED)
        logger.info(f"User {user_id} cancelled course {course_id} (was {previous_status.value})")

        remaining_credits = None
        if previous_status == RegistrationStatus.REGISTERED:
            remaining_credits = await self._refund_after_cancel(db, user_id, course_id)
            self._promote_waitlist(course_id)

        self.events.publish(
            RegistrationChanged(
                course_id=course_id,
                user_id=user_id,
                status=RegistrationStatus.CANCELLED,
                previous_status=previous_status,
            )
        )
        return BookingResult(
            success=True,
            course_id=course_id,
            user_id=user_id,
            status=RegistrationStatus.CANCELLED,
            message=SUCCESS_MESSAGES[RegistrationStatus.CANCELLED],
            remaining_credits=remaining_credits,
        )

    async def _refund_after_failed_insert(self, db: AsyncSession, user_id: UUID, course_id: UUID) -> None:
        try:
            await self.ledger.refund(db, user_id=user_id)
            logger.info(f"Refunded credit of user {user_id} after failed registration for course {course_id}")
        except (BookingError, NotACreditsMembership, SQLAlchemyError) as e:
            await db.rollback()
            logger.critical(
                f"Credit of user {user_id} was deducted for course {course_id} but could not be refunded: {e}"
            )

    async def _refund_after_cancel(self, db: AsyncSession, user_id: UUID, course_id: UUID) -> Optional[int]:
        try:
            policy = await self.eligibility.resolve_policy(db, user_id=user_id)
            if policy is None or not isinstance(policy.rule, CreditsRule):
                return None
            return await self.ledger.refund(db, user_id=user_id)
        except (BookingError, NotACreditsMembership, SQLAlchemyError) as e:
            await db.rollback()
            logger.error(f"Credit refund for user {user_id} after cancelling course {course_id} failed: {e}")
            return None

    def _promote_waitlist(self, course_id: UUID) -> None:
        try:
            self.gateway.promote_from_waitlist(course_id)
        except Exception as e:
            logger.error(f"Waitlist promotion for course {course_id} failed: {e}")

    def _mark_active(self, user_id: UUID) -> None:
        try:
            self.gateway.mark_user_as_active(user_id)
        except Exception as e:
            logger.warning(f"mark_user_as_active for user {user_id} failed: {e}")

    def _failure(self, user_id: UUID, course_id: UUID, reason: BookingFailureReason) -> BookingResult:
        return BookingResult(
            success=False,
            course_id=course_id,
            user_id=user_id,
            reason=reason,
            message=USER_MESSAGES[reason],
        )


booking_engine = BookingEngine()
