"""Booking rules stored in ``membership_plans_v2.booking_rules``.

The JSON column holds a tagged union keyed by ``type``::

    {"type": "unlimited"}
    {"type": "limited", "limit": {"count": 8, "period": "month"}}
    {"type": "credits", "credits": {"initial_amount": 10, "refill_schedule": "monthly"}}
    {"type": "open_gym_only"}
"""
from typing import Annotated, Any, Literal, Union

from pydantic import Field, TypeAdapter

from .base import BaseSchema
from .enums import LimitPeriod, RefillSchedule


class UnlimitedRule(BaseSchema):
    type: Literal["unlimited"] = "unlimited"


class PeriodLimit(BaseSchema):
    count: int = Field(..., ge=0)
    period: LimitPeriod = LimitPeriod.MONTH


class LimitedRule(BaseSchema):
    type: Literal["limited"] = "limited"
    limit: PeriodLimit


class CreditAllowance(BaseSchema):
    initial_amount: int = Field(..., ge=0)
    refill_schedule: RefillSchedule = RefillSchedule.MONTHLY


class CreditsRule(BaseSchema):
    type: Literal["credits"] = "credits"
    credits: CreditAllowance


class OpenGymOnlyRule(BaseSchema):
    type: Literal["open_gym_only"] = "open_gym_only"


BookingRule = Annotated[
    Union[UnlimitedRule, LimitedRule, CreditsRule, OpenGymOnlyRule],
    Field(discriminator="type"),
]

_booking_rule_adapter = TypeAdapter(BookingRule)


def parse_booking_rule(raw: Any) -> BookingRule:
    """Validate raw ``booking_rules`` JSON into a rule model.

    Raises:
        pydantic.ValidationError: If the payload is not a known rule
    """
    return _booking_rule_adapter.validate_python(raw)


def dump_booking_rule(rule: BookingRule) -> dict:
    """Serialize a rule model back to the stored JSON shape."""
    return rule.model_dump(mode="json")
