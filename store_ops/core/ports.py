"""Interfaces the availability engine is wired against."""

from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol
import pytz
from store_ops.core.state import AvailabilityOverride, OperationalStatus, StatusLogEntry, StoreSnapshot


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(pytz.UTC)


class StoreRepository(Protocol):
    def resolve_store(self, store_code: str) -> int:
        """Internal id for a public store code; raises NotFoundError."""
        ...

    def load_snapshot(self, store_pk: int) -> StoreSnapshot:
        ...

    def compare_and_set(
        self,
        store_pk: int,
        expected_version: int,
        status: Optional[OperationalStatus],
        override: AvailabilityOverride,
    ) -> bool:
        """
        Write override then status (``None`` keeps the current status) only
        if the store is still at ``expected_version``. False on a lost race.
        """
        ...

    def write(
        self,
        store_pk: int,
        status: Optional[OperationalStatus],
        override: AvailabilityOverride,
    ) -> int:
        """Unconditional write; returns the new version."""
        ...


class StatusLogSink(Protocol):
    def append(self, entry: StatusLogEntry) -> None:
        ...
