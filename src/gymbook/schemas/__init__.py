from .base import BaseSchema, TimestampSchema, IDSchema, BaseResponseSchema, UpdateBase
from .enums import (
    AppRole,
    BookingFailureReason,
    BookingRuleType,
    CourseStatus,
    CreditAction,
    LimitPeriod,
    MembershipStatus,
    RefillSchedule,
    RegistrationStatus,
)
from .booking_rule import BookingRule, UnlimitedRule, LimitedRule, CreditsRule, OpenGymOnlyRule, parse_booking_rule
from .membership import (
    MembershipPlanCreate,
    MembershipPlanUpdate,
    MembershipPlanResponse,
    CreditAdjustRequest,
    CreditAdjustResponse,
    CreditRefillResponse,
    MembershipUsage,
)
from .course import CourseSummary, Participant
from .booking import EligibilityResult, BookingResult
from .user import User, CurrentUser
