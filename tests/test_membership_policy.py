from datetime import datetime
from uuid import uuid4

from gymbook.models import MembershipPlan, UserMembership
from gymbook.schemas.booking_rule import CreditsRule, LimitedRule, UnlimitedRule
from gymbook.services.membership_policy import resolve


def _membership(booking_rules, *, priority=None, created_at=datetime(2030, 1, 1)):
    plan = MembershipPlan(id=uuid4(), name="Plan", booking_rules=booking_rules, upgrade_priority=priority)
    return UserMembership(id=uuid4(), user_id=uuid4(), plan=plan, created_at=created_at, membership_data={})


class TestResolve:
    def test_no_memberships(self):
        assert resolve([]) is None

    def test_single_membership(self):
        membership = _membership({"type": "unlimited"})
        policy = resolve([membership])
        assert policy.membership is membership
        assert isinstance(policy.rule, UnlimitedRule)

    def test_highest_priority_wins(self):
        low = _membership({"type": "limited", "limit": {"count": 4, "period": "week"}}, priority=10)
        high = _membership({"type": "credits", "credits": {"initial_amount": 5}}, priority=30)
        policy = resolve([low, high])
        assert policy.membership is high
        assert isinstance(policy.rule, CreditsRule)

    def test_missing_priority_ranks_as_zero(self):
        unranked = _membership({"type": "unlimited"}, created_at=datetime(2030, 2, 1))
        ranked = _membership({"type": "limited", "limit": {"count": 1}}, priority=1, created_at=datetime(2029, 1, 1))
        policy = resolve([unranked, ranked])
        assert isinstance(policy.rule, LimitedRule)

    def test_tie_goes_to_most_recent(self):
        older = _membership({"type": "unlimited"}, priority=5, created_at=datetime(2030, 1, 1))
        newer = _membership({"type": "open_gym_only"}, priority=5, created_at=datetime(2030, 2, 1))
        assert resolve([older, newer]).membership is newer
        assert resolve([newer, older]).membership is newer

    def test_invalid_rule_is_skipped(self):
        broken = _membership({"type": "pay_per_view"}, priority=100)
        valid = _membership({"type": "unlimited"}, priority=1)
        assert resolve([broken, valid]).membership is valid

    def test_only_invalid_rules(self):
        assert resolve([_membership({"type": "limited"})]) is None
