import logging
from datetime import date, datetime
from typing import Optional
from uuid import UUID

import pytz
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.config import settings
from gymbook.crud.crud_registration import registration as crud_registration
from gymbook.schemas.booking_rule import CreditsRule, LimitedRule
from gymbook.schemas.membership import MembershipUsage
from gymbook.services.booking_period import period_window
from gymbook.services.eligibility import EligibilityService, eligibility_service

logger = logging.getLogger(__name__)


class MembershipUsageService:
    def __init__(self, eligibility: Optional[EligibilityService] = None):
        self.eligibility = eligibility or eligibility_service

    async def usage_summary(
        self, db: AsyncSession, *, user_id: UUID, on_date: Optional[date] = None
    ) -> MembershipUsage:
        """
        Summarize the booking allowance of a member.

        For credits plans ``remaining_credits`` is the stored balance; for
        limited plans it is what is left of the quota in the window that
        contains ``on_date`` (today in the gym's timezone by default).
        """
        policy = await self.eligibility.resolve_policy(db, user_id=user_id)
        if policy is None:
            return MembershipUsage(user_id=user_id, has_membership=False)

        usage = MembershipUsage(
            user_id=user_id,
            has_membership=True,
            plan_name=policy.plan.name,
            rule_type=policy.rule.type,
            includes_open_gym=bool(policy.plan.includes_open_gym),
        )
        rule = policy.rule
        if isinstance(rule, CreditsRule):
            usage.remaining_credits = int((policy.membership.membership_data or {}).get("remaining_credits") or 0)
        elif isinstance(rule, LimitedRule):
            if on_date is None:
                on_date = datetime.now(pytz.timezone(settings.GYM_TIMEZONE)).date()
            window = period_window(rule.limit.period, on_date, policy.membership.start_date)
            used = await crud_registration.count_registered_between(
                db, user_id=user_id, start=window.start, end=window.end
            )
            usage.used_in_period = used
            usage.period_limit = rule.limit.count
            usage.remaining_credits = max(0, rule.limit.count - used)
            usage.period_start = window.start
            usage.period_end = window.end
        return usage


membership_usage_service = MembershipUsageService()
