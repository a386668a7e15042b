from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple
from sqlalchemy.orm import Session
from store_ops.core.errors import ValidationError
from store_ops.core.schedule import DayHours, Slot, WeeklyHours
from store_ops.core.time_utils import DAY_NAMES, format_minutes, minutes_to_time, parse_minutes, isoformat_utc
from store_ops.models import StoreOperatingHours, StoreOperatingHoursDay

SLOT_FIELDS = (("slot1_start", "slot1_end"), ("slot2_start", "slot2_end"))


@dataclass(frozen=True)
class DayUpdate:
    weekday: int
    is_open: bool
    is_24_hours: bool
    slots: Tuple[Optional[Tuple[int, int]], Optional[Tuple[int, int]]]


def day_index(name: str) -> int:
    try:
        return DAY_NAMES.index(str(name).strip().lower())
    except ValueError:
        raise ValidationError(f"unknown day: {name!r}") from None

def get_operating_hours_row(session: Session, store_pk: int) -> Optional[StoreOperatingHours]:
    return (
        session.query(StoreOperatingHours)
        .filter(StoreOperatingHours.store_id == store_pk)
        .first()
    )

def weekly_hours_from_row(row: StoreOperatingHours) -> WeeklyHours:
    days: Dict[int, DayHours] = {}
    for day in row.days:
        slots = []
        for start_field, end_field in SLOT_FIELDS:
            start = parse_minutes(getattr(day, start_field))
            end = parse_minutes(getattr(day, end_field))
            if start is not None and end is not None:
                slots.append(Slot(start, end))
        days[day.day_of_week] = DayHours(
            is_open=bool(day.is_open), slots=tuple(slots), is_24_hours=bool(day.is_24_hours)
        )
    closed = frozenset(
        DAY_NAMES.index(name) for name in (row.closed_days or []) if name in DAY_NAMES
    )
    return WeeklyHours(days=days, closed_days=closed, is_24_hours=bool(row.is_24_hours))

def load_operating_hours(session: Session, store_pk: int) -> Optional[WeeklyHours]:
    """ Weekly schedule for a store, None when no hours are configured """
    row = get_operating_hours_row(session, store_pk)
    if row is None:
        return None
    return weekly_hours_from_row(row)

def serialize_operating_hours(row: StoreOperatingHours) -> Dict[str, Any]:
    days = {}
    for day in row.days:
        entry = {"open": bool(day.is_open), "is_24_hours": bool(day.is_24_hours)}
        for start_field, end_field in SLOT_FIELDS:
            for name in (start_field, end_field):
                minutes = parse_minutes(getattr(day, name))
                entry[name] = format_minutes(minutes) if minutes is not None else None
        days[DAY_NAMES[day.day_of_week]] = entry
    return {
        "is_24_hours": bool(row.is_24_hours),
        "closed_days": list(row.closed_days or []),
        "days": days,
        "updated_by_email": row.updated_by_email,
        "updated_at": isoformat_utc(row.updated_at),
    }

def _parse_slot(day_name: str, raw: Mapping[str, Any], start_field: str, end_field: str) -> Optional[Tuple[int, int]]:
    try:
        start = parse_minutes(raw.get(start_field))
        end = parse_minutes(raw.get(end_field))
    except ValueError as exc:
        raise ValidationError(f"{day_name}: {exc}") from None
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise ValidationError(f"{day_name}: {start_field} and {end_field} must be set together")
    if start == end:
        raise ValidationError(f"{day_name}: slot {format_minutes(start)}-{format_minutes(end)} is empty")
    return (start, end)

def validate_day_updates(days: Mapping[str, Mapping[str, Any]]) -> List[DayUpdate]:
    updates = []
    for name, raw in days.items():
        weekday = day_index(name)
        slots = tuple(_parse_slot(name, raw, s, e) for s, e in SLOT_FIELDS)
        updates.append(DayUpdate(
            weekday=weekday,
            is_open=bool(raw.get("open", False)),
            is_24_hours=bool(raw.get("is_24_hours", False)),
            slots=slots,
        ))
    return updates

def validate_closed_days(closed_days: Optional[List[str]]) -> Optional[List[str]]:
    if closed_days is None:
        return None
    return [DAY_NAMES[day_index(name)] for name in closed_days]

def upsert_operating_hours(
    session: Session,
    store_pk: int,
    day_updates: List[DayUpdate],
    closed_days: Optional[List[str]],
    is_24_hours: Optional[bool],
    editor_email: Optional[str],
    now: datetime,
) -> StoreOperatingHours:
    """
    Merge the update into the existing record. Days not mentioned keep their
    hours; without an explicit list, closed_days follows the open flags.
    """
    row = get_operating_hours_row(session, store_pk)
    if row is None:
        row = StoreOperatingHours(store_id=store_pk, is_24_hours=False)
        session.add(row)

    by_weekday = {day.day_of_week: day for day in row.days}
    for update in day_updates:
        day = by_weekday.get(update.weekday)
        if day is None:
            day = StoreOperatingHoursDay(day_of_week=update.weekday)
            row.days.append(day)
            by_weekday[update.weekday] = day
        day.is_open = update.is_open
        day.is_24_hours = update.is_24_hours
        for (start_field, end_field), slot in zip(SLOT_FIELDS, update.slots):
            setattr(day, start_field, minutes_to_time(slot[0]) if slot else None)
            setattr(day, end_field, minutes_to_time(slot[1]) if slot else None)

    if is_24_hours is not None:
        row.is_24_hours = is_24_hours
    if closed_days is None:
        closed_days = [
            DAY_NAMES[weekday] for weekday in range(7)
            if weekday not in by_weekday or not by_weekday[weekday].is_open
        ]
    row.closed_days = closed_days or None
    row.updated_by_email = editor_email
    row.updated_at = now

    session.commit()
    session.refresh(row)
    return row
