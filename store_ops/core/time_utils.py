from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional, Union
import pytz
from store_ops.config import settings

UTC = pytz.UTC

# 0=Sunday .. 6=Saturday
DAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class LocalTime:
    weekday: int
    minutes: int
    date: date


def get_store_timezone_str(tz_str: Optional[str]) -> str:
    """ Return IANA timezone for store or default to the configured one """
    if not tz_str or tz_str not in pytz.all_timezones_set:
        return settings.default_timezone
    return tz_str

def to_aware_utc(dt: datetime) -> datetime:
    """Datetimes treated as UTC"""
    if dt.tzinfo is None:
        return UTC.localize(dt)
    return dt.astimezone(UTC)

def utc_to_local(utc_dt: datetime, tz_str: Optional[str]) -> datetime:
    tz = pytz.timezone(get_store_timezone_str(tz_str))
    return to_aware_utc(utc_dt).astimezone(tz)

def local_to_utc(local_dt: datetime, tz_str: Optional[str]) -> datetime:
    tz = pytz.timezone(get_store_timezone_str(tz_str))
    if local_dt.tzinfo is None:
        # normalize() moves wall times that fall in a DST gap forward
        local_dt = tz.normalize(tz.localize(local_dt))
    else:
        local_dt = local_dt.astimezone(tz)
    return local_dt.astimezone(UTC)

def weekday_index(day: date) -> int:
    """Python counts from Monday, the schedule counts from Sunday."""
    return (day.weekday() + 1) % 7

def resolve_local(instant_utc: datetime, tz_str: Optional[str]) -> LocalTime:
    """
    Resolve a UTC instant into the store's local weekday, minutes since
    midnight and calendar date. Unknown timezones fall back to the default.
    """
    local = utc_to_local(instant_utc, tz_str)
    return LocalTime(
        weekday=weekday_index(local.date()),
        minutes=local.hour * 60 + local.minute,
        date=local.date(),
    )

def parse_minutes(value: Union[str, time, None]) -> Optional[int]:
    """ 'HH:MM', 'HH:MM:SS' or time -> minutes since midnight """
    if value is None:
        return None
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    text = str(value).strip()
    if not text:
        return None
    parts = text.split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"invalid time of day: {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"invalid time of day: {value!r}")
    return hours * 60 + minutes

def minutes_to_time(minutes: int) -> time:
    return time(minutes // 60, minutes % 60)

def format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"

def isoformat_utc(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return to_aware_utc(dt).isoformat().replace("+00:00", "Z")
