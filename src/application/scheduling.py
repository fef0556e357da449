"""
application.scheduling - Natural-language schedule parsing and due checks.

Four shapes are recognised, nothing else:

    every N minute(s)                   -> IntervalSchedule(N)
    every N hour(s)                     -> IntervalSchedule(N * 60)
    daily at H[:MM][am|pm]              -> DailySchedule(H, MM)
      (also "every day at ...")
    weekly on <day> at H[:MM][am|pm]    -> WeeklySchedule(day, H, MM)
      (also "every <day> at ...")

Day names accept full and three-letter forms. day_of_week follows the
0 = Sunday convention.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from domain.exceptions import ScheduleParseError
from domain.models import DailySchedule, IntervalSchedule, ScheduleSpec, WeeklySchedule

DAY_MAP = {
    "sunday": 0, "sun": 0,
    "monday": 1, "mon": 1,
    "tuesday": 2, "tue": 2,
    "wednesday": 3, "wed": 3,
    "thursday": 4, "thu": 4,
    "friday": 5, "fri": 5,
    "saturday": 6, "sat": 6,
}

_DAY_NAMES = "|".join(sorted(DAY_MAP, key=len, reverse=True))
_CLOCK = r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)?"

_EVERY_MINUTES = re.compile(r"every\s+(\d+)\s*min")
_EVERY_HOURS = re.compile(r"every\s+(\d+)\s*hour")
_DAILY = re.compile(rf"(?:daily|every\s+day)\s+at\s+{_CLOCK}")
_WEEKLY = re.compile(rf"(?:weekly\s+on|every)\s+({_DAY_NAMES})\s+at\s+{_CLOCK}")


def _to_24h(hour: int, meridiem: Optional[str]) -> int:
    if meridiem == "pm" and hour < 12:
        return hour + 12
    if meridiem == "am" and hour == 12:
        return 0
    return hour


def parse_schedule(text: str) -> ScheduleSpec:
    """Parse a schedule description.

    Raises:
        ScheduleParseError: the text matches none of the supported shapes,
            or names an impossible time.
    """
    lower = (text or "").lower().strip()
    try:
        match = _EVERY_MINUTES.search(lower)
        if match:
            return IntervalSchedule(minutes=int(match.group(1)))

        match = _EVERY_HOURS.search(lower)
        if match:
            return IntervalSchedule(minutes=int(match.group(1)) * 60)

        match = _DAILY.search(lower)
        if match:
            hour, minute, meridiem = match.groups()
            return DailySchedule(
                hour=_to_24h(int(hour), meridiem),
                minute=int(minute) if minute else 0,
            )

        match = _WEEKLY.search(lower)
        if match:
            day, hour, minute, meridiem = match.groups()
            return WeeklySchedule(
                day_of_week=DAY_MAP[day],
                hour=_to_24h(int(hour), meridiem),
                minute=int(minute) if minute else 0,
            )
    except ValueError as e:
        raise ScheduleParseError(text) from e

    raise ScheduleParseError(text)


def sunday_based_weekday(moment: datetime) -> int:
    """datetime.weekday() is Monday-based; schedules count from Sunday."""
    return (moment.weekday() + 1) % 7


def is_due(schedule: ScheduleSpec, last_run: Optional[datetime], now: datetime) -> bool:
    """Whether a task with this schedule should fire at `now`."""
    if isinstance(schedule, IntervalSchedule):
        if last_run is None:
            return True
        elapsed_minutes = (now - last_run).total_seconds() / 60
        return elapsed_minutes >= schedule.minutes

    if isinstance(schedule, DailySchedule):
        if (now.hour, now.minute) != (schedule.hour, schedule.minute):
            return False
        return last_run is None or last_run.date() != now.date()

    if isinstance(schedule, WeeklySchedule):
        if sunday_based_weekday(now) != schedule.day_of_week:
            return False
        if (now.hour, now.minute) != (schedule.hour, schedule.minute):
            return False
        if last_run is not None:
            return (now - last_run).total_seconds() >= 24 * 60 * 60
        return True

    return False
