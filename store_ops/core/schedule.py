"""Weekly operating-hours evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, List, Optional, Tuple
from store_ops.core.time_utils import (
    MINUTES_PER_DAY,
    format_minutes,
    local_to_utc,
    minutes_to_time,
    resolve_local,
    weekday_index,
)


@dataclass(frozen=True)
class Slot:
    """Open interval [start, end) in minutes; end <= start wraps past midnight."""
    start: int
    end: int

    @property
    def wraps(self) -> bool:
        return self.end <= self.start

    def contains(self, minutes: int) -> bool:
        end = self.end + MINUTES_PER_DAY if self.wraps else self.end
        return self.start <= minutes < end

    def spill_contains(self, minutes: int) -> bool:
        """Part of a wrapping slot that falls on the next calendar day."""
        return self.wraps and minutes < self.end


@dataclass(frozen=True)
class DayHours:
    is_open: bool = False
    slots: Tuple[Slot, ...] = ()
    is_24_hours: bool = False


@dataclass(frozen=True)
class WeeklyHours:
    days: Dict[int, DayHours] = field(default_factory=dict)
    closed_days: FrozenSet[int] = frozenset()
    is_24_hours: bool = False

    def day(self, weekday: int) -> DayHours:
        return self.days.get(weekday, DayHours())

    def is_closed_day(self, weekday: int) -> bool:
        return weekday in self.closed_days

    def is_scheduled_closed(self, weekday: int) -> bool:
        return self.is_closed_day(weekday) or not self.day(weekday).is_open

    def runs_24_hours(self, weekday: int) -> bool:
        return self.is_24_hours or self.day(weekday).is_24_hours


def _open_at(hours: WeeklyHours, weekday: int, minutes: int) -> bool:
    if hours.is_closed_day(weekday):
        return False
    day = hours.day(weekday)
    if not day.is_open:
        return False
    if hours.runs_24_hours(weekday):
        return True
    if any(slot.contains(minutes) for slot in day.slots):
        return True
    return _spills_from_previous_day(hours, weekday, minutes)

def _spills_from_previous_day(hours: WeeklyHours, weekday: int, minutes: int) -> bool:
    previous = (weekday - 1) % 7
    if hours.is_scheduled_closed(previous) or hours.runs_24_hours(previous):
        return False
    return any(slot.spill_contains(minutes) for slot in hours.day(previous).slots)

def is_within_hours(hours: Optional[WeeklyHours], instant_utc: datetime, tz_str: Optional[str]) -> bool:
    """
    Whether the schedule says the store should be open at ``instant_utc``.
    Missing hours are never within hours.
    """
    if hours is None:
        return False
    local = resolve_local(instant_utc, tz_str)
    return _open_at(hours, local.weekday, local.minutes)

def next_open_instant(
    hours: Optional[WeeklyHours],
    tz_str: Optional[str],
    from_utc: datetime,
) -> Optional[datetime]:
    """
    First scheduled slot start after ``from_utc``, scanning today and the
    next seven days. 24-hour days never produce an opening event.
    """
    if hours is None:
        return None
    local = resolve_local(from_utc, tz_str)
    for offset in range(8):
        day_date = local.date + timedelta(days=offset)
        weekday = weekday_index(day_date)
        if hours.is_scheduled_closed(weekday) or hours.runs_24_hours(weekday):
            continue
        starts = sorted(slot.start for slot in hours.day(weekday).slots)
        if offset == 0:
            starts = [s for s in starts if s > local.minutes]
        if starts:
            return local_to_utc(datetime.combine(day_date, minutes_to_time(starts[0])), tz_str)
    return None

def first_slot_tomorrow(
    hours: Optional[WeeklyHours],
    tz_str: Optional[str],
    from_utc: datetime,
) -> Optional[datetime]:
    """Start of tomorrow's first slot (local midnight for a 24-hour day)."""
    if hours is None:
        return None
    tomorrow = resolve_local(from_utc, tz_str).date + timedelta(days=1)
    weekday = weekday_index(tomorrow)
    if hours.is_scheduled_closed(weekday):
        return None
    if hours.runs_24_hours(weekday):
        start = 0
    else:
        starts = [slot.start for slot in hours.day(weekday).slots]
        if not starts:
            return None
        start = min(starts)
    return local_to_utc(datetime.combine(tomorrow, minutes_to_time(start)), tz_str)

def today_slots(hours: Optional[WeeklyHours], weekday: int) -> List[Dict[str, str]]:
    if hours is None or hours.is_scheduled_closed(weekday):
        return []
    if hours.runs_24_hours(weekday):
        return [{"start": "00:00", "end": "23:59"}]
    return [
        {"start": format_minutes(slot.start), "end": format_minutes(slot.end)}
        for slot in hours.day(weekday).slots
    ]
