"""
Server-validated changes to the credit balance of credits memberships.

The balance lives in ``membership_data.remaining_credits``. Every change is
an optimistic update guarded by the membership's ``version``: the row is
re-read and the update retried when another writer got there first, so a
balance can never be driven below zero by concurrent deductions.
"""
import logging
from datetime import date, datetime
from typing import Callable, NamedTuple, Optional
from uuid import UUID

import pytz
from sqlalchemy.ext.asyncio import AsyncSession

from gymbook.core.config import settings
from gymbook.crud.crud_membership import user_membership as crud_user_membership
from gymbook.schemas.booking_rule import CreditsRule
from gymbook.schemas.enums import BookingFailureReason, CreditAction, RefillSchedule
from gymbook.services.eligibility import BookingError
from gymbook.services.membership_policy import ResolvedPolicy, resolve

logger = logging.getLogger(__name__)


class NotACreditsMembership(Exception):
    """The user's authoritative membership does not use credits."""


class CreditChange(NamedTuple):
    previous: int
    new: int


def _balance(policy: ResolvedPolicy) -> int:
    return int((policy.membership.membership_data or {}).get("remaining_credits") or 0)


class CreditLedger:
    def __init__(self, max_retries: Optional[int] = None):
        self.max_retries = max_retries or settings.CREDIT_UPDATE_MAX_RETRIES

    async def _credits_policy(self, db: AsyncSession, user_id: UUID) -> ResolvedPolicy:
        policy = resolve(await crud_user_membership.get_active_for_user(db, user_id=user_id))
        if policy is None:
            raise BookingError(BookingFailureReason.NO_MEMBERSHIP, f"User {user_id} has no active membership")
        if not isinstance(policy.rule, CreditsRule):
            raise NotACreditsMembership(f"Membership {policy.membership.id} uses {policy.rule.type} booking")
        return policy

    async def _apply(
        self,
        db: AsyncSession,
        user_id: UUID,
        change: Callable[[int], Optional[int]],
        extra: Optional[dict] = None,
    ) -> CreditChange:
        """Apply ``change`` to the balance; ``change`` returns None to refuse."""
        for attempt in range(1, self.max_retries + 1):
            policy = await self._credits_policy(db, user_id)
            membership = policy.membership
            previous = _balance(policy)
            new = change(previous)
            if new is None:
                raise BookingError(BookingFailureReason.NO_CREDITS, f"User {user_id} has {previous} credits")

            membership_data = dict(membership.membership_data or {})
            membership_data.update(extra or {})
            membership_data["remaining_credits"] = new
            membership_data["last_credit_update"] = datetime.utcnow().isoformat()

            updated = await crud_user_membership.replace_membership_data(
                db,
                membership_id=membership.id,
                expected_version=membership.version,
                membership_data=membership_data,
            )
            if updated:
                logger.info(f"Credits for user {user_id}: {previous} -> {new}")
                return CreditChange(previous, new)
            logger.warning(
                f"Concurrent update on membership {membership.id} (attempt {attempt}/{self.max_retries})"
            )

        raise BookingError(
            BookingFailureReason.TRANSIENT_FAILURE,
            f"Could not update credits of user {user_id} after {self.max_retries} attempts",
        )

    async def deduct(self, db: AsyncSession, *, user_id: UUID) -> int:
        """Take one credit. Refuses with NO_CREDITS at a zero balance.

        Returns:
            int: The new balance
        """
        try:
            change = await self._apply(db, user_id, lambda credits: credits - 1 if credits > 0 else None)
        except BookingError as e:
            if e.reason == BookingFailureReason.TRANSIENT_FAILURE:
                # Lost every race: the balance was being drained concurrently
                raise BookingError(BookingFailureReason.NO_CREDITS, e.detail) from e
            raise
        except NotACreditsMembership as e:
            raise BookingError(BookingFailureReason.NO_CREDITS, str(e)) from e
        return change.new

    async def refund(self, db: AsyncSession, *, user_id: UUID) -> int:
        """Give one credit back.

        Returns:
            int: The new balance
        """
        change = await self._apply(db, user_id, lambda credits: credits + 1)
        return change.new

    async def adjust(self, db: AsyncSession, *, user_id: UUID, amount: int, action: CreditAction) -> CreditChange:
        """
        Admin credit correction.

        ``subtract`` and ``set`` never go below zero.

        Raises:
            BookingError: NO_MEMBERSHIP if the user has no active membership
            NotACreditsMembership: If the membership does not use credits
        """
        if action == CreditAction.ADD:
            change = lambda credits: credits + amount  # noqa: E731
        elif action == CreditAction.SUBTRACT:
            change = lambda credits: max(0, credits - amount)  # noqa: E731
        else:
            change = lambda credits: max(0, amount)  # noqa: E731
        result = await self._apply(db, user_id, change)
        logger.info(f"Admin credit {action.value} of {amount} for user {user_id}: {result.previous} -> {result.new}")
        return result

    async def refill_due(self, db: AsyncSession, *, today: Optional[date] = None) -> int:
        """
        Reset monthly-refill credit balances to the plan allowance.

        Each membership is refilled at most once per calendar month; the month
        of the last refill is stamped into ``membership_data.last_refill``.

        Returns:
            int: Number of memberships refilled
        """
        if today is None:
            today = datetime.now(pytz.timezone(settings.GYM_TIMEZONE)).date()
        month_key = today.strftime("%Y-%m")

        by_user: dict[UUID, list] = {}
        for membership in await crud_user_membership.get_all_active(db):
            by_user.setdefault(membership.user_id, []).append(membership)

        refilled = 0
        for user_id, memberships in by_user.items():
            policy = resolve(memberships)
            if policy is None or not isinstance(policy.rule, CreditsRule):
                continue
            if policy.rule.credits.refill_schedule != RefillSchedule.MONTHLY:
                continue
            if (policy.membership.membership_data or {}).get("last_refill") == month_key:
                continue

            allowance = policy.rule.credits.initial_amount
            try:
                await self._apply(db, user_id, lambda credits: allowance, extra={"last_refill": month_key})
            except (BookingError, NotACreditsMembership) as e:
                logger.error(f"Credit refill for user {user_id} failed: {e}")
                continue
            refilled += 1

        logger.info(f"Monthly credit refill {month_key}: {refilled} memberships refilled")
        return refilled


credit_ledger = CreditLedger()
