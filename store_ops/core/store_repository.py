"""SQLAlchemy adapters for the availability engine."""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from store_ops.core.errors import NotFoundError, TransientReadError, ValidationError, WriteError
from store_ops.core.operating_hours import load_operating_hours
from store_ops.core.schedule import WeeklyHours
from store_ops.core.state import (
    AvailabilityOverride,
    OperationalStatus,
    RestrictionType,
    StatusLogEntry,
    StoreSnapshot,
    ToggleOrigin,
)
from store_ops.core.time_utils import isoformat_utc, to_aware_utc
from store_ops.models import MerchantStore, StoreAvailability, StoreStatusLog

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)


def _enum_or_none(enum_cls: Type[E], value: Any) -> Optional[E]:
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning(f"Ignoring unknown {enum_cls.__name__} value {value!r}")
        return None

def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    return to_aware_utc(dt) if dt is not None else None

def override_from_row(row: Optional[StoreAvailability]) -> AvailabilityOverride:
    if row is None:
        return AvailabilityOverride()
    return AvailabilityOverride(
        manual_close_until=_aware(row.manual_close_until),
        block_auto_open=bool(row.block_auto_open),
        restriction_type=_enum_or_none(RestrictionType, row.restriction_type),
        auto_open_from_schedule=row.auto_open_from_schedule is not False,
        last_toggled_by_id=row.last_toggled_by_id,
        last_toggled_by_name=row.last_toggled_by_name,
        last_toggled_by_email=row.last_toggled_by_email,
        last_toggle_type=_enum_or_none(ToggleOrigin, row.last_toggle_type),
        last_toggled_at=_aware(row.last_toggled_at),
    )


class SqlStoreRepository:
    """
    Store status lives on ``merchant_stores``, overrides on
    ``merchant_store_availability``. Both are written in one transaction,
    override row first.
    """

    def __init__(self, session: Session):
        self.session = session

    def resolve_store(self, store_code: str) -> int:
        if not store_code:
            raise ValidationError("store_id is required")
        try:
            store_pk = (
                self.session.query(MerchantStore.id)
                .filter(MerchantStore.store_id == store_code)
                .scalar()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TransientReadError(f"Could not look up store {store_code}") from exc
        if store_pk is None:
            raise NotFoundError(f"Store {store_code} not found")
        return store_pk

    def load_snapshot(self, store_pk: int) -> StoreSnapshot:
        try:
            store = self.session.get(MerchantStore, store_pk, populate_existing=True)
            availability = (
                self.session.query(StoreAvailability)
                .filter(StoreAvailability.store_id == store_pk)
                .populate_existing()
                .first()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise TransientReadError(f"Could not load status for store {store_pk}") from exc
        if store is None:
            raise NotFoundError(f"Store {store_pk} not found")

        status = _enum_or_none(OperationalStatus, store.operational_status) or OperationalStatus.CLOSED
        return StoreSnapshot(
            store_pk=store.id,
            store_code=store.store_id,
            status=status,
            version=store.status_version or 0,
            timezone=store.timezone,
            override=override_from_row(availability),
            hours=self._load_hours(store_pk),
        )

    def _load_hours(self, store_pk: int) -> Optional[WeeklyHours]:
        """Unreadable hours degrade to 'no hours' so nothing auto-opens."""
        try:
            return load_operating_hours(self.session, store_pk)
        except (SQLAlchemyError, ValueError):
            self.session.rollback()
            logger.warning(f"Operating hours unavailable for store {store_pk}", exc_info=True)
            return None

    def _write_override(self, store_pk: int, override: AvailabilityOverride) -> None:
        row = (
            self.session.query(StoreAvailability)
            .filter(StoreAvailability.store_id == store_pk)
            .first()
        )
        if row is None:
            row = StoreAvailability(store_id=store_pk)
            self.session.add(row)
        row.manual_close_until = override.manual_close_until
        row.block_auto_open = override.block_auto_open
        row.restriction_type = override.restriction_type.value if override.restriction_type else None
        row.auto_open_from_schedule = override.auto_open_from_schedule
        row.last_toggled_by_id = override.last_toggled_by_id
        row.last_toggled_by_name = override.last_toggled_by_name
        row.last_toggled_by_email = override.last_toggled_by_email
        row.last_toggle_type = override.last_toggle_type.value if override.last_toggle_type else None
        row.last_toggled_at = override.last_toggled_at
        self.session.flush()

    def _status_update(self, store_pk: int, status: Optional[OperationalStatus]):
        values: Dict[str, Any] = {"status_version": MerchantStore.status_version + 1}
        if status is not None:
            values["operational_status"] = status.value
            values["is_accepting_orders"] = status == OperationalStatus.OPEN
        return (
            update(MerchantStore)
            .where(MerchantStore.id == store_pk)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    def compare_and_set(
        self,
        store_pk: int,
        expected_version: int,
        status: Optional[OperationalStatus],
        override: AvailabilityOverride,
    ) -> bool:
        try:
            self._write_override(store_pk, override)
            result = self.session.execute(
                self._status_update(store_pk, status)
                .where(MerchantStore.status_version == expected_version)
            )
            if result.rowcount != 1:
                self.session.rollback()
                return False
            self.session.commit()
            return True
        except IntegrityError:
            # another writer created the override row first
            self.session.rollback()
            return False
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise WriteError(f"Could not update status for store {store_pk}") from exc

    def write(
        self,
        store_pk: int,
        status: Optional[OperationalStatus],
        override: AvailabilityOverride,
    ) -> int:
        try:
            self._write_override(store_pk, override)
            result = self.session.execute(self._status_update(store_pk, status))
            if result.rowcount != 1:
                self.session.rollback()
                raise NotFoundError(f"Store {store_pk} not found")
            self.session.commit()
            return (
                self.session.query(MerchantStore.status_version)
                .filter(MerchantStore.id == store_pk)
                .scalar()
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise WriteError(f"Could not update status for store {store_pk}") from exc


class SqlStatusLogSink:
    def __init__(self, session: Session):
        self.session = session

    def append(self, entry: StatusLogEntry) -> None:
        self.session.add(StoreStatusLog(
            store_id=entry.store_pk,
            action=entry.action.value,
            restriction_type=entry.restriction_type.value if entry.restriction_type else None,
            close_reason=entry.close_reason,
            performed_by_id=entry.actor.id,
            performed_by_name=entry.actor.name,
            performed_by_email=entry.actor.email,
            created_at=entry.created_at,
        ))
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def recent(self, store_pk: int, limit: int) -> List[Dict[str, Any]]:
        """Newest first; only the audit screen reads this."""
        rows = (
            self.session.query(StoreStatusLog)
            .filter(StoreStatusLog.store_id == store_pk)
            .order_by(StoreStatusLog.created_at.desc(), StoreStatusLog.id.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                "id": row.id,
                "action": row.action,
                "restriction_type": row.restriction_type,
                "close_reason": row.close_reason,
                "performed_by_id": row.performed_by_id,
                "performed_by_name": row.performed_by_name,
                "performed_by_email": row.performed_by_email,
                "created_at": isoformat_utc(row.created_at),
            }
            for row in rows
        ]
