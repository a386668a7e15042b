"""Merchant/admin overrides: open now, close now, manual lock."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum
from typing import Any, Optional
from store_ops.config import settings
from store_ops.core.errors import ValidationError
from store_ops.core.ports import Clock, StatusLogSink, StoreRepository
from store_ops.core.reconciler import AvailabilityView, append_best_effort, build_view
from store_ops.core.schedule import first_slot_tomorrow
from store_ops.core.state import (
    Actor,
    LogAction,
    OperationalStatus,
    RestrictionType,
    StatusLogEntry,
    ToggleOrigin,
)
from store_ops.core.time_utils import to_aware_utc

logger = logging.getLogger(__name__)

MIN_CLOSE_MINUTES = 1
MAX_CLOSE_MINUTES = 24 * 60


class ClosureKind(str, Enum):
    TEMPORARY = "temporary"
    TODAY = "today"
    MANUAL_HOLD = "manual_hold"


@dataclass(frozen=True)
class CloseRequest:
    kind: ClosureKind
    duration_minutes: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def build(
        cls,
        closure_type: Any,
        duration_minutes: Any = None,
        reason: Optional[str] = None,
    ) -> "CloseRequest":
        """Validate raw request values; raises ValidationError."""
        try:
            kind = ClosureKind(closure_type)
        except ValueError:
            choices = ", ".join(k.value for k in ClosureKind)
            raise ValidationError(f"closure_type must be one of: {choices}") from None

        duration = None
        if kind == ClosureKind.TEMPORARY:
            duration = _parse_duration(duration_minutes)
        reason = reason.strip() if isinstance(reason, str) and reason.strip() else None
        return cls(kind=kind, duration_minutes=duration, reason=reason)


def _parse_duration(value: Any) -> int:
    if value is None or isinstance(value, bool):
        raise ValidationError("duration_minutes is required for a temporary closure")
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        raise ValidationError("duration_minutes must be an integer") from None
    if minutes != value and not isinstance(value, str):
        raise ValidationError("duration_minutes must be an integer")
    if not MIN_CLOSE_MINUTES <= minutes <= MAX_CLOSE_MINUTES:
        raise ValidationError(
            f"duration_minutes must be between {MIN_CLOSE_MINUTES} and {MAX_CLOSE_MINUTES}"
        )
    return minutes


def resolve_actor(
    actor_id: Optional[str] = None,
    name: Optional[str] = None,
    email: Optional[str] = None,
) -> Actor:
    """Caller identity, falling back to a generic owner label."""
    label = (name or "").strip() or (email or "").strip() or settings.fallback_actor_name
    return Actor(name=label, id=actor_id or None, email=email or None)


class OverrideController:
    def __init__(self, repository: StoreRepository, log_sink: StatusLogSink, clock: Clock):
        self.repository = repository
        self.log_sink = log_sink
        self.clock = clock

    def open_now(self, store_pk: int, actor: Actor) -> AvailabilityView:
        now = to_aware_utc(self.clock.now())
        snapshot = self.repository.load_snapshot(store_pk)
        override = replace(
            snapshot.override,
            manual_close_until=None,
            block_auto_open=False,
            restriction_type=None,
        ).attributed(actor, ToggleOrigin.MERCHANT, now)

        version = self.repository.write(store_pk, OperationalStatus.OPEN, override)
        applied = replace(snapshot, status=OperationalStatus.OPEN, override=override, version=version)
        logger.info(f"Store {snapshot.store_code} opened manually by {actor.name}")
        append_best_effort(self.log_sink, StatusLogEntry(
            store_pk=store_pk, action=LogAction.OPEN, actor=actor, created_at=now,
        ))
        return build_view(applied, now)

    def close_now(self, store_pk: int, request: CloseRequest, actor: Actor) -> AvailabilityView:
        now = to_aware_utc(self.clock.now())
        snapshot = self.repository.load_snapshot(store_pk)
        override = snapshot.override

        if request.kind == ClosureKind.MANUAL_HOLD:
            override = replace(
                override,
                block_auto_open=True,
                restriction_type=RestrictionType.MANUAL_HOLD,
                manual_close_until=None,
            )
        elif request.kind == ClosureKind.TODAY:
            until = first_slot_tomorrow(snapshot.hours, snapshot.timezone, now)
            if until is None:
                until = now + timedelta(hours=24)
            override = replace(
                override, manual_close_until=until, restriction_type=RestrictionType.CLOSED_TODAY
            )
        else:
            override = replace(
                override,
                manual_close_until=now + timedelta(minutes=request.duration_minutes),
                restriction_type=RestrictionType.TEMPORARY,
            )
        override = override.attributed(actor, ToggleOrigin.MERCHANT, now)

        version = self.repository.write(store_pk, OperationalStatus.CLOSED, override)
        applied = replace(snapshot, status=OperationalStatus.CLOSED, override=override, version=version)
        logger.info(
            f"Store {snapshot.store_code} closed ({request.kind.value}) by {actor.name}"
            f" until {override.manual_close_until}"
        )
        append_best_effort(self.log_sink, StatusLogEntry(
            store_pk=store_pk,
            action=LogAction.CLOSED,
            actor=actor,
            created_at=now,
            restriction_type=override.restriction_type,
            close_reason=request.reason,
        ))
        return build_view(applied, now)

    def update_manual_lock(self, store_pk: int, enabled: bool, actor: Actor) -> AvailabilityView:
        """Toggle ``block_auto_open`` without touching the current status."""
        now = to_aware_utc(self.clock.now())
        snapshot = self.repository.load_snapshot(store_pk)
        override = snapshot.override
        restriction = override.restriction_type
        # a lapsed closure label no longer counts as a restriction
        other_active = restriction == RestrictionType.MANUAL_HOLD or (
            restriction is not None and override.close_is_active(now)
        )
        if enabled and not other_active:
            restriction = RestrictionType.MANUAL_HOLD
        elif not enabled and restriction == RestrictionType.MANUAL_HOLD:
            restriction = None
        override = replace(
            override, block_auto_open=enabled, restriction_type=restriction
        ).attributed(actor, ToggleOrigin.MERCHANT, now)

        version = self.repository.write(store_pk, None, override)
        applied = replace(snapshot, override=override, version=version)
        logger.info(
            f"Store {snapshot.store_code} manual lock {'on' if enabled else 'off'} by {actor.name}"
        )
        append_best_effort(self.log_sink, StatusLogEntry(
            store_pk=store_pk,
            action=LogAction.MANUAL_LOCK_ON if enabled else LogAction.MANUAL_LOCK_OFF,
            actor=actor,
            created_at=now,
            restriction_type=override.restriction_type,
        ))
        return build_view(applied, now)
