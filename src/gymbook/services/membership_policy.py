"""
Picks the one authoritative membership of a user and its booking rule.
"""
import logging
from datetime import datetime
from typing import Iterable, NamedTuple, Optional

from pydantic import ValidationError

from gymbook.models.membership import MembershipPlan, UserMembership
from gymbook.schemas.booking_rule import BookingRule, parse_booking_rule

logger = logging.getLogger(__name__)


class ResolvedPolicy(NamedTuple):
    membership: UserMembership
    plan: MembershipPlan
    rule: BookingRule


def _rank(policy: ResolvedPolicy) -> tuple:
    return (
        policy.plan.upgrade_priority or 0,
        policy.membership.created_at or datetime.min,
        str(policy.membership.id),
    )


def resolve(active_memberships: Iterable[UserMembership]) -> Optional[ResolvedPolicy]:
    """
    Select the authoritative membership among a user's active ones.

    Several active rows can coexist while a plan change is being processed.
    The plan with the highest ``upgrade_priority`` wins; ties go to the most
    recently created membership. Memberships whose plan carries an unreadable
    booking rule are ignored.

    Args:
        active_memberships: Memberships with status ``active`` for one user

    Returns:
        The winning membership, its plan and parsed rule, or None when there is
        nothing to book with
    """
    candidates = []
    for membership in active_memberships:
        plan = membership.plan
        if plan is None:
            logger.warning(f"Membership {membership.id} has no plan attached - skipping")
            continue
        try:
            rule = parse_booking_rule(plan.booking_rules)
        except ValidationError as e:
            logger.warning(f"Plan {plan.id} has invalid booking rules {plan.booking_rules!r}: {e}")
            continue
        candidates.append(ResolvedPolicy(membership=membership, plan=plan, rule=rule))

    if not candidates:
        return None
    if len(candidates) > 1:
        logger.warning(
            f"User {candidates[0].membership.user_id} has {len(candidates)} active memberships, "
            f"resolving by priority"
        )
    return max(candidates, key=_rank)
