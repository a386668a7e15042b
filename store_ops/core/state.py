"""Domain records for store availability."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional
from store_ops.core.schedule import WeeklyHours


class OperationalStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class RestrictionType(str, Enum):
    TEMPORARY = "TEMPORARY"
    CLOSED_TODAY = "CLOSED_TODAY"
    MANUAL_HOLD = "MANUAL_HOLD"


class ToggleOrigin(str, Enum):
    MERCHANT = "MERCHANT"
    AUTO_OPEN = "AUTO_OPEN"
    AUTO_CLOSE = "AUTO_CLOSE"


class LogAction(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    MANUAL_LOCK_ON = "MANUAL_LOCK_ON"
    MANUAL_LOCK_OFF = "MANUAL_LOCK_OFF"


@dataclass(frozen=True)
class Actor:
    name: str
    id: Optional[str] = None
    email: Optional[str] = None


SYSTEM_ACTOR = Actor(name="System")


@dataclass(frozen=True)
class AvailabilityOverride:
    manual_close_until: Optional[datetime] = None
    block_auto_open: bool = False
    restriction_type: Optional[RestrictionType] = None
    auto_open_from_schedule: bool = True

    last_toggled_by_id: Optional[str] = None
    last_toggled_by_name: Optional[str] = None
    last_toggled_by_email: Optional[str] = None
    last_toggle_type: Optional[ToggleOrigin] = None
    last_toggled_at: Optional[datetime] = None

    def close_is_active(self, now: datetime) -> bool:
        return self.manual_close_until is not None and now < self.manual_close_until

    def close_has_lapsed(self, now: datetime) -> bool:
        return self.manual_close_until is not None and now >= self.manual_close_until

    @property
    def auto_open_permitted(self) -> bool:
        return not self.block_auto_open and self.auto_open_from_schedule

    def attributed(self, actor: Actor, origin: ToggleOrigin, at: datetime) -> "AvailabilityOverride":
        return replace(
            self,
            last_toggled_by_id=actor.id,
            last_toggled_by_name=actor.name,
            last_toggled_by_email=actor.email,
            last_toggle_type=origin,
            last_toggled_at=at,
        )


@dataclass(frozen=True)
class StoreSnapshot:
    """Everything the engine needs about one store, as read at one moment."""
    store_pk: int
    store_code: str
    status: OperationalStatus
    version: int
    timezone: Optional[str]
    override: AvailabilityOverride
    hours: Optional[WeeklyHours]

    @property
    def is_accepting_orders(self) -> bool:
        return self.status == OperationalStatus.OPEN


@dataclass(frozen=True)
class StatusLogEntry:
    store_pk: int
    action: LogAction
    actor: Actor
    created_at: datetime
    restriction_type: Optional[RestrictionType] = None
    close_reason: Optional[str] = None
