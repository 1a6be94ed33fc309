from datetime import date
from typing import Optional
from uuid import UUID

from .base import BaseSchema
from .enums import BookingFailureReason, BookingRuleType, RegistrationStatus


class EligibilityResult(BaseSchema):
    """Outcome of the credit/limit eligibility check for one course."""
    can_register: bool
    can_waitlist: bool = False
    rule_type: Optional[BookingRuleType] = None
    reason: Optional[BookingFailureReason] = None
    remaining_credits: Optional[int] = None
    used_in_period: Optional[int] = None
    period_limit: Optional[int] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None


class BookingResult(BaseSchema):
    """Discriminated outcome of a register or cancel call."""
    success: bool
    course_id: UUID
    user_id: UUID
    status: Optional[RegistrationStatus] = None
    reason: Optional[BookingFailureReason] = None
    message: str
    remaining_credits: Optional[int] = None
