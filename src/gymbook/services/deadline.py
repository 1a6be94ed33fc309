"""
Registration and cancellation cutoffs relative to course start.
"""
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

from gymbook.core.config import settings


def course_start(course_date: date, start_time: time, gym_timezone: Optional[str] = None) -> datetime:
    """
    Interpret a course's date and start time as gym-local wall-clock time.

    Args:
        course_date: Day of the course
        start_time: Local start time
        gym_timezone: pytz zone name, defaults to GYM_TIMEZONE

    Returns:
        Aware datetime in UTC
    """
    tz = pytz.timezone(gym_timezone or settings.GYM_TIMEZONE)
    local_start = tz.localize(datetime.combine(course_date, start_time))
    return local_start.astimezone(pytz.utc)


def deadline(
    course_date: date,
    start_time: time,
    offset_minutes: Optional[int],
    gym_timezone: Optional[str] = None,
) -> datetime:
    """Instant (UTC) after which the gate is closed."""
    return course_start(course_date, start_time, gym_timezone) - timedelta(minutes=offset_minutes or 0)


def is_before(
    course_date: date,
    start_time: time,
    offset_minutes: Optional[int],
    now: Optional[datetime] = None,
    gym_timezone: Optional[str] = None,
) -> bool:
    """
    True while ``now`` is strictly earlier than course start minus the offset.

    Used for both registration and cancellation, each with its own per-course
    offset. ``now`` must be timezone aware; it defaults to the current time.
    """
    if now is None:
        now = datetime.now(pytz.utc)
    return now < deadline(course_date, start_time, offset_minutes, gym_timezone)
