from enum import Enum


class AppRole(str, Enum):
    """Application roles assigned in user_roles."""
    ADMIN = "admin"
    MEMBER = "member"
    TRAINER = "trainer"
    OPEN_GYM = "open_gym"
    BASIC_MEMBER = "basic_member"
    PREMIUM_MEMBER = "premium_member"


# Roles that may always book courses, with or without a membership
ELEVATED_ROLES = frozenset({AppRole.ADMIN, AppRole.TRAINER})


class MembershipStatus(str, Enum):
    """Lifecycle status of a user membership."""
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    PAUSED = "paused"
    PENDING_ACTIVATION = "pending_activation"
    PAYMENT_FAILED = "payment_failed"
    SUPERSEDED = "superseded"
    UPGRADED = "upgraded"


class BookingRuleType(str, Enum):
    """Accounting model of a membership plan."""
    UNLIMITED = "unlimited"
    LIMITED = "limited"
    CREDITS = "credits"
    OPEN_GYM_ONLY = "open_gym_only"


class LimitPeriod(str, Enum):
    """Quota period of a limited plan."""
    WEEK = "week"
    MONTH = "month"


class RefillSchedule(str, Enum):
    """How a credits plan tops its balance up."""
    MONTHLY = "monthly"
    NEVER = "never"


class CourseStatus(str, Enum):
    """Status of a course session."""
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class RegistrationStatus(str, Enum):
    """Status of a course registration."""
    REGISTERED = "registered"
    WAITLIST = "waitlist"
    CANCELLED = "cancelled"


class CreditAction(str, Enum):
    """Admin credit adjustment actions."""
    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


class BookingFailureReason(str, Enum):
    """Why a registration or cancellation was refused."""
    NO_MEMBERSHIP = "no_membership"
    OPEN_GYM_ONLY_RESTRICTION = "open_gym_only_restriction"
    LIMIT_REACHED = "limit_reached"
    NO_CREDITS = "no_credits"
    DEADLINE_PASSED = "deadline_passed"
    NOT_FOUND = "not_found"
    ALREADY_REGISTERED = "already_registered"
    COURSE_CANCELLED = "course_cancelled"
    TRANSIENT_FAILURE = "transient_failure"
