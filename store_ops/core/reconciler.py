"""
Availability reconciliation.

Each read runs the ordered rules below against a freshly loaded snapshot:

1. auto-open      closed store, nothing suppressing it, schedule says open
2. override expiry a lapsed ``manual_close_until`` is opened on or cleaned up
3. auto-close     open store outside its schedule

Rules are plain functions over a :class:`RuleContext` so they can be tested
without a database. :class:`AvailabilityReconciler` applies the planned
transition through a version-conditional write and appends the audit entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from store_ops.config import settings
from store_ops.core.ports import Clock, StatusLogSink, StoreRepository
from store_ops.core.schedule import is_within_hours, next_open_instant, today_slots
from store_ops.core.state import (
    SYSTEM_ACTOR,
    AvailabilityOverride,
    LogAction,
    OperationalStatus,
    StatusLogEntry,
    StoreSnapshot,
    ToggleOrigin,
)
from store_ops.core.time_utils import LocalTime, isoformat_utc, resolve_local, to_aware_utc

logger = logging.getLogger(__name__)

OUTSIDE_HOURS_REASON = "Outside operating hours"


@dataclass(frozen=True)
class RuleContext:
    snapshot: StoreSnapshot
    now: datetime
    local: LocalTime
    within_hours: bool

    @classmethod
    def build(cls, snapshot: StoreSnapshot, now: datetime) -> "RuleContext":
        now = to_aware_utc(now)
        return cls(
            snapshot=snapshot,
            now=now,
            local=resolve_local(now, snapshot.timezone),
            within_hours=is_within_hours(snapshot.hours, now, snapshot.timezone),
        )

    @property
    def override(self) -> AvailabilityOverride:
        return self.snapshot.override

    @property
    def today_is_closed_day(self) -> bool:
        hours = self.snapshot.hours
        return hours is not None and hours.is_closed_day(self.local.weekday)

    def with_override(self, override: AvailabilityOverride) -> "RuleContext":
        return replace(self, snapshot=replace(self.snapshot, override=override))


@dataclass(frozen=True)
class Transition:
    """
    Planned write. ``status`` is None for override-only cleanup, which is
    never logged.
    """
    rules: Tuple[str, ...]
    override: AvailabilityOverride
    status: Optional[OperationalStatus] = None
    log_action: Optional[LogAction] = None
    close_reason: Optional[str] = None


def auto_open_rule(ctx: RuleContext) -> Optional[Transition]:
    override = ctx.override
    if ctx.snapshot.status != OperationalStatus.CLOSED:
        return None
    if override.block_auto_open or override.manual_close_until is not None:
        return None
    if ctx.today_is_closed_day or not override.auto_open_from_schedule:
        return None
    if not ctx.within_hours:
        return None
    return Transition(
        rules=("auto_open",),
        status=OperationalStatus.OPEN,
        override=override.attributed(SYSTEM_ACTOR, ToggleOrigin.AUTO_OPEN, ctx.now),
        log_action=LogAction.OPEN,
    )

def override_expiry_rule(ctx: RuleContext) -> Optional[Transition]:
    override = ctx.override
    if not override.close_has_lapsed(ctx.now):
        return None
    if not override.auto_open_permitted:
        # a manual hold outlives the timed closure
        return Transition(
            rules=("override_expiry",),
            override=replace(override, manual_close_until=None),
        )
    cleared = replace(override, manual_close_until=None, restriction_type=None)
    if ctx.within_hours and ctx.snapshot.status == OperationalStatus.CLOSED:
        return Transition(
            rules=("override_expiry",),
            status=OperationalStatus.OPEN,
            override=cleared.attributed(SYSTEM_ACTOR, ToggleOrigin.AUTO_OPEN, ctx.now),
            log_action=LogAction.OPEN,
        )
    return Transition(rules=("override_expiry",), override=cleared)

def auto_close_rule(ctx: RuleContext) -> Optional[Transition]:
    override = ctx.override
    if ctx.snapshot.status != OperationalStatus.OPEN:
        return None
    if override.close_is_active(ctx.now) or not override.auto_open_from_schedule:
        return None
    if ctx.snapshot.hours is None or ctx.within_hours:
        return None
    return Transition(
        rules=("auto_close",),
        status=OperationalStatus.CLOSED,
        override=override.attributed(SYSTEM_ACTOR, ToggleOrigin.AUTO_CLOSE, ctx.now),
        log_action=LogAction.CLOSED,
        close_reason=OUTSIDE_HOURS_REASON,
    )

def plan_transition(snapshot: StoreSnapshot, now: datetime) -> Optional[Transition]:
    """
    Fold the rules in order into at most one write. Auto-open and an opening
    expiry decide the outcome; an expiry cleanup falls through to auto-close.
    """
    ctx = RuleContext.build(snapshot, now)

    opened = auto_open_rule(ctx)
    if opened is not None:
        return opened

    cleanup = override_expiry_rule(ctx)
    if cleanup is not None:
        if cleanup.status is not None:
            return cleanup
        ctx = ctx.with_override(cleanup.override)

    closed = auto_close_rule(ctx)
    if closed is not None:
        if cleanup is not None:
            return replace(closed, rules=cleanup.rules + closed.rules)
        return closed
    return cleanup


@dataclass(frozen=True)
class AvailabilityView:
    """Effective status plus the read-time hints the dashboard shows."""
    operational_status: OperationalStatus
    manual_close_until: Optional[datetime]
    opens_at: Optional[datetime]
    auto_open_from_schedule: bool
    block_auto_open: bool
    restriction_type: Optional[str]
    today_date: str
    today_slots: List[Dict[str, str]]
    is_today_scheduled_closed: bool
    within_hours_but_restricted: bool
    last_toggled_by_id: Optional[str] = None
    last_toggled_by_name: Optional[str] = None
    last_toggled_by_email: Optional[str] = None
    last_toggle_type: Optional[str] = None
    last_toggled_at: Optional[datetime] = None

    @property
    def is_accepting_orders(self) -> bool:
        return self.operational_status == OperationalStatus.OPEN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operational_status": self.operational_status.value,
            "is_accepting_orders": self.is_accepting_orders,
            "manual_close_until": isoformat_utc(self.manual_close_until),
            "opens_at": isoformat_utc(self.opens_at),
            "auto_open_from_schedule": self.auto_open_from_schedule,
            "block_auto_open": self.block_auto_open,
            "restriction_type": self.restriction_type,
            "today_date": self.today_date,
            "today_slots": self.today_slots,
            "is_today_scheduled_closed": self.is_today_scheduled_closed,
            "within_hours_but_restricted": self.within_hours_but_restricted,
            "last_toggled_by_id": self.last_toggled_by_id,
            "last_toggled_by_name": self.last_toggled_by_name,
            "last_toggled_by_email": self.last_toggled_by_email,
            "last_toggle_type": self.last_toggle_type,
            "last_toggled_at": isoformat_utc(self.last_toggled_at),
        }


def build_view(snapshot: StoreSnapshot, now: datetime) -> AvailabilityView:
    ctx = RuleContext.build(snapshot, now)
    override = snapshot.override
    hours = snapshot.hours
    scheduled_closed = hours is not None and hours.is_scheduled_closed(ctx.local.weekday)

    if snapshot.status == OperationalStatus.OPEN or scheduled_closed:
        opens_at = None
    elif override.manual_close_until is not None:
        opens_at = override.manual_close_until
    else:
        opens_at = next_open_instant(hours, snapshot.timezone, ctx.now)

    restricted = (
        snapshot.status == OperationalStatus.CLOSED
        and ctx.within_hours
        and (override.block_auto_open or override.close_is_active(ctx.now))
    )

    return AvailabilityView(
        operational_status=snapshot.status,
        manual_close_until=override.manual_close_until,
        opens_at=opens_at,
        auto_open_from_schedule=override.auto_open_from_schedule,
        block_auto_open=override.block_auto_open,
        restriction_type=override.restriction_type.value if override.restriction_type else None,
        today_date=ctx.local.date.isoformat(),
        today_slots=today_slots(hours, ctx.local.weekday),
        is_today_scheduled_closed=scheduled_closed,
        within_hours_but_restricted=restricted,
        last_toggled_by_id=override.last_toggled_by_id,
        last_toggled_by_name=override.last_toggled_by_name,
        last_toggled_by_email=override.last_toggled_by_email,
        last_toggle_type=override.last_toggle_type.value if override.last_toggle_type else None,
        last_toggled_at=override.last_toggled_at,
    )


def append_best_effort(sink: StatusLogSink, entry: StatusLogEntry) -> None:
    """The transition is already committed; a lost audit row must not undo it."""
    try:
        sink.append(entry)
    except Exception:
        logger.warning(
            f"Status log append failed for store {entry.store_pk} ({entry.action.value})",
            exc_info=True,
        )


class AvailabilityReconciler:
    def __init__(
        self,
        repository: StoreRepository,
        log_sink: StatusLogSink,
        clock: Clock,
        max_attempts: Optional[int] = None,
    ):
        self.repository = repository
        self.log_sink = log_sink
        self.clock = clock
        self.max_attempts = max(1, max_attempts or settings.reconcile_attempts)

    def reconcile(self, store_pk: int) -> AvailabilityView:
        return self.reconcile_snapshot(self.repository.load_snapshot(store_pk))

    def reconcile_snapshot(self, snapshot: StoreSnapshot) -> AvailabilityView:
        """
        Apply the planned transition, if any, conditional on the version the
        snapshot was read at. A lost race re-reads and re-plans; once the
        attempts run out the fresh state is adopted without writing.
        """
        now = to_aware_utc(self.clock.now())
        for _ in range(self.max_attempts):
            transition = plan_transition(snapshot, now)
            if transition is None:
                return build_view(snapshot, now)

            written = self.repository.compare_and_set(
                snapshot.store_pk, snapshot.version, transition.status, transition.override
            )
            if written:
                applied = replace(
                    snapshot,
                    status=transition.status or snapshot.status,
                    override=transition.override,
                    version=snapshot.version + 1,
                )
                self._record(applied, transition, now)
                return build_view(applied, now)

            logger.info(
                f"Store {snapshot.store_code} changed since version {snapshot.version}; re-reading"
            )
            snapshot = self.repository.load_snapshot(snapshot.store_pk)

        return build_view(snapshot, now)

    def _record(self, applied: StoreSnapshot, transition: Transition, now: datetime) -> None:
        rules = "+".join(transition.rules)
        if transition.log_action is None:
            logger.debug(f"Store {applied.store_code}: {rules} cleared expired override")
            return
        logger.info(f"Store {applied.store_code}: {rules} -> {applied.status.value}")
        append_best_effort(self.log_sink, StatusLogEntry(
            store_pk=applied.store_pk,
            action=transition.log_action,
            actor=SYSTEM_ACTOR,
            created_at=now,
            restriction_type=applied.override.restriction_type,
            close_reason=transition.close_reason,
        ))
