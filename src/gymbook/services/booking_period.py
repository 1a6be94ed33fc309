"""
Quota windows for limited memberships.

Weekly quotas run Monday to Sunday. Monthly quotas are anchored on the
day-of-month the membership started, so a member who joined on the 11th
renews on every 11th; anchors past the end of a short month are clamped to
its last day.
"""
from datetime import date, timedelta
from typing import NamedTuple

from dateutil.relativedelta import relativedelta

from gymbook.schemas.enums import LimitPeriod


class BookingWindow(NamedTuple):
    start: date
    end: date  # inclusive

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end


def week_window(target: date) -> BookingWindow:
    start = target - timedelta(days=target.weekday())
    return BookingWindow(start, start + timedelta(days=6))


def _anchor(year: int, month: int, anchor_day: int) -> date:
    return date(year, month, 1) + relativedelta(day=anchor_day)


def month_window(target: date, anchor_day: int) -> BookingWindow:
    start = _anchor(target.year, target.month, anchor_day)
    if target < start:
        previous = date(target.year, target.month, 1) - relativedelta(months=1)
        start = _anchor(previous.year, previous.month, anchor_day)
    following = date(start.year, start.month, 1) + relativedelta(months=1)
    end = _anchor(following.year, following.month, anchor_day) - timedelta(days=1)
    return BookingWindow(start, end)


def period_window(period: LimitPeriod, target: date, membership_start: date) -> BookingWindow:
    """Window of the given period that contains ``target``."""
    if period == LimitPeriod.WEEK:
        return week_window(target)
    return month_window(target, membership_start.day)
