from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import Field

from .base import BaseSchema, BaseResponseSchema, UpdateBase
from .booking_rule import BookingRule
from .enums import BookingRuleType, CreditAction


# request
class MembershipPlanCreate(BaseSchema):
    """Schema for creating a membership plan."""
    name: str
    description: Optional[str] = None
    booking_rules: BookingRule
    includes_open_gym: bool = False
    is_active: bool = True
    upgrade_priority: Optional[int] = None
    price_monthly: Optional[Decimal] = None
    duration_months: int = Field(1, ge=1)


class MembershipPlanUpdate(UpdateBase):
    """Schema for updating a membership plan."""
    name: Optional[str] = None
    description: Optional[str] = None
    booking_rules: Optional[BookingRule] = None
    includes_open_gym: Optional[bool] = None
    is_active: Optional[bool] = None
    upgrade_priority: Optional[int] = None
    price_monthly: Optional[Decimal] = None


class CreditAdjustRequest(BaseSchema):
    """Admin request to change a member's credit balance."""
    user_id: UUID
    credits: int = Field(..., ge=0)
    action: CreditAction = CreditAction.ADD


# response
class MembershipPlanResponse(BaseResponseSchema):
    """Schema for membership plan response."""
    name: str
    description: Optional[str] = None
    booking_rules: BookingRule
    includes_open_gym: bool
    is_active: bool
    upgrade_priority: Optional[int] = None
    price_monthly: Optional[Decimal] = None
    duration_months: int


class CreditAdjustResponse(BaseSchema):
    """Result of an admin credit adjustment."""
    success: bool
    user_id: UUID
    previous_credits: int
    new_credits: int
    action: CreditAction
    amount: int


class CreditRefillResponse(BaseSchema):
    """Result of a monthly credit refill run."""
    refilled: int
    run_at: datetime


class MembershipUsage(BaseSchema):
    """What the member dashboard shows about the booking allowance."""
    user_id: UUID
    has_membership: bool
    plan_name: Optional[str] = None
    rule_type: Optional[BookingRuleType] = None
    remaining_credits: Optional[int] = None
    used_in_period: Optional[int] = None
    period_limit: Optional[int] = None
    period_start: Optional[date] = None
    period_end: Optional[date] = None
    includes_open_gym: bool = False
