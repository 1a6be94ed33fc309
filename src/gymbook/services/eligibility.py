"""
Decides whether a user's membership allows booking a given course.

This is the single place the credit/limit rules are evaluated; the booking
engine re-runs it at commit time and the eligibility endpoint exposes it for
provisional UI feedback.
"""
import logging
from typing import NamedTuple, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.crud.crud_course import course as crud_course
from gymbook.crud.crud_membership import user_membership as crud_user_membership
from gymbook.crud.crud_registration import registration as crud_registration
from gymbook.crud.crud_role import user_role as crud_user_role
from gymbook.models.course import Course
from gymbook.schemas.booking import EligibilityResult
from gymbook.schemas.booking_rule import CreditsRule, LimitedRule, OpenGymOnlyRule, UnlimitedRule
from gymbook.schemas.enums import BookingFailureReason, BookingRuleType, CourseStatus
from gymbook.services.booking_period import period_window
from gymbook.services.membership_policy import ResolvedPolicy, resolve

logger = logging.getLogger(__name__)


USER_MESSAGES = {
    BookingFailureReason.NO_MEMBERSHIP: "You need an active membership to book courses.",
    BookingFailureReason.OPEN_GYM_ONLY_RESTRICTION: (
        "Your membership only includes Open Gym. For courses you need an extended membership."
    ),
    BookingFailureReason.LIMIT_REACHED: "You have reached the booking limit of your membership for this period.",
    BookingFailureReason.NO_CREDITS: "You have no credits left. Please top up your credits at the reception.",
    BookingFailureReason.DEADLINE_PASSED: "The deadline for this course has passed.",
    BookingFailureReason.NOT_FOUND: "No matching registration or course was found.",
    BookingFailureReason.ALREADY_REGISTERED: "You are already registered or on the waitlist for this course.",
    BookingFailureReason.COURSE_CANCELLED: "This course has been cancelled.",
    BookingFailureReason.TRANSIENT_FAILURE: "Something went wrong. Please try again.",
}


class BookingError(Exception):
    """A booking attempt was refused for a known reason."""

    def __init__(self, reason: BookingFailureReason, detail: Optional[str] = None):
        self.reason = reason
        self.detail = detail
        super().__init__(detail or reason.value)

    @property
    def user_message(self) -> str:
        return USER_MESSAGES[self.reason]


class EligibilityDecision(NamedTuple):
    result: EligibilityResult
    course: Optional[Course]
    policy: Optional[ResolvedPolicy]


def _refused(reason: BookingFailureReason, rule_type: Optional[BookingRuleType] = None, **extra) -> EligibilityResult:
    return EligibilityResult(can_register=False, can_waitlist=False, reason=reason, rule_type=rule_type, **extra)


class EligibilityService:
    """Credit and limit checks for course registration."""

    async def resolve_policy(self, db: AsyncSession, *, user_id: UUID) -> Optional[ResolvedPolicy]:
        """Get the authoritative membership of a user, if any."""
        memberships = await crud_user_membership.get_active_for_user(db, user_id=user_id)
        return resolve(memberships)

    async def evaluate(self, db: AsyncSession, *, user_id: UUID, course_id: UUID) -> EligibilityDecision:
        """
        Run the eligibility rules and keep the loaded course and policy.

        Args:
            db: Database session
            user_id: Member trying to book
            course_id: Target course

        Returns:
            EligibilityDecision: The result plus the course and policy it was based on
        """
        course = await crud_course.get_fresh(db, id=course_id)
        if course is None:
            return EligibilityDecision(_refused(BookingFailureReason.NOT_FOUND), None, None)
        if course.is_cancelled or course.status != CourseStatus.ACTIVE:
            return EligibilityDecision(_refused(BookingFailureReason.COURSE_CANCELLED), course, None)

        policy = await self.resolve_policy(db, user_id=user_id)
        if policy is None:
            if await crud_user_role.has_elevated_role(db, user_id=user_id):
                logger.info(f"User {user_id} has no membership but an elevated role - unlimited booking")
                result = EligibilityResult(can_register=True, rule_type=BookingRuleType.UNLIMITED)
            else:
                result = _refused(BookingFailureReason.NO_MEMBERSHIP)
            return EligibilityDecision(result, course, None)

        rule = policy.rule
        if isinstance(rule, OpenGymOnlyRule):
            result = _refused(BookingFailureReason.OPEN_GYM_ONLY_RESTRICTION, BookingRuleType.OPEN_GYM_ONLY)
        elif isinstance(rule, UnlimitedRule):
            result = EligibilityResult(can_register=True, rule_type=BookingRuleType.UNLIMITED)
        elif isinstance(rule, LimitedRule):
            window = period_window(rule.limit.period, course.course_date, policy.membership.start_date)
            used = await crud_registration.count_registered_between(
                db, user_id=user_id, start=window.start, end=window.end
            )
            details = dict(
                remaining_credits=max(0, rule.limit.count - used),
                used_in_period=used,
                period_limit=rule.limit.count,
                period_start=window.start,
                period_end=window.end,
            )
            if used < rule.limit.count:
                result = EligibilityResult(can_register=True, rule_type=BookingRuleType.LIMITED, **details)
            else:
                # Limited plans never fall back to the waitlist when over quota
                result = _refused(BookingFailureReason.LIMIT_REACHED, BookingRuleType.LIMITED, **details)
        elif isinstance(rule, CreditsRule):
            remaining = int((policy.membership.membership_data or {}).get("remaining_credits") or 0)
            if remaining > 0:
                result = EligibilityResult(
                    can_register=True, rule_type=BookingRuleType.CREDITS, remaining_credits=remaining
                )
            else:
                result = _refused(BookingFailureReason.NO_CREDITS, BookingRuleType.CREDITS, remaining_credits=0)
        else:
            raise TypeError(f"Unhandled booking rule {rule!r}")

        logger.info(
            f"Eligibility for user {user_id} on course {course_id}: "
            f"rule={result.rule_type} can_register={result.can_register} reason={result.reason}"
        )
        return EligibilityDecision(result, course, policy)

    async def check_eligibility(self, db: AsyncSession, *, user_id: UUID, course_id: UUID) -> EligibilityResult:
        """Whether the user may register (or join the waitlist) for the course."""
        decision = await self.evaluate(db, user_id=user_id, course_id=course_id)
        return decision.result


eligibility_service = EligibilityService()
