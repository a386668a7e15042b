# tests/helpers.py
import datetime
from dataclasses import replace
from sqlalchemy import Update
from sqlalchemy.exc import OperationalError

from store_ops.core.schedule import DayHours, Slot, WeeklyHours
from store_ops.core.state import AvailabilityOverride, OperationalStatus, StoreSnapshot
from store_ops.core.errors import NotFoundError
from store_ops.core.time_utils import local_to_utc, parse_minutes
from store_ops.models import MerchantStore

TZ = "Asia/Kolkata"


def ist(y, m, d, h, mi=0) -> datetime.datetime:
    """Local Kolkata wall time as a UTC instant"""
    return local_to_utc(datetime.datetime(y, m, d, h, mi), TZ)


def daily_hours(start="09:00", end="18:00", closed=(), **kwargs) -> WeeklyHours:
    slot = Slot(parse_minutes(start), parse_minutes(end))
    days = {d: DayHours(is_open=True, slots=(slot,)) for d in range(7)}
    return WeeklyHours(days=days, closed_days=frozenset(closed), **kwargs)


class FixedClock:
    def __init__(self, now: datetime.datetime):
        self.current = now

    def now(self) -> datetime.datetime:
        return self.current

    def advance(self, **delta):
        self.current = self.current + datetime.timedelta(**delta)


class InMemoryRepository:
    def __init__(self):
        self.snapshots = {}
        self.writes = 0

    def add(self, snapshot: StoreSnapshot) -> StoreSnapshot:
        self.snapshots[snapshot.store_pk] = snapshot
        return snapshot

    def resolve_store(self, store_code):
        for snapshot in self.snapshots.values():
            if snapshot.store_code == store_code:
                return snapshot.store_pk
        raise NotFoundError(f"Store {store_code} not found")

    def load_snapshot(self, store_pk):
        return self.snapshots[store_pk]

    def compare_and_set(self, store_pk, expected_version, status, override):
        current = self.snapshots[store_pk]
        if current.version != expected_version:
            return False
        self.write(store_pk, status, override)
        return True

    def write(self, store_pk, status, override):
        current = self.snapshots[store_pk]
        self.snapshots[store_pk] = replace(
            current,
            status=status or current.status,
            override=override,
            version=current.version + 1,
        )
        self.writes += 1
        return current.version + 1


class ListLogSink:
    def __init__(self):
        self.entries = []

    def append(self, entry):
        self.entries.append(entry)


class FailingLogSink:
    def append(self, entry):
        raise RuntimeError("log table unavailable")


def make_snapshot(status="CLOSED", hours=None, override=None, version=0, store_pk=1, tz=TZ):
    return StoreSnapshot(
        store_pk=store_pk,
        store_code=f"GMMC{1000 + store_pk}",
        status=OperationalStatus(status),
        version=version,
        timezone=tz,
        override=override or AvailabilityOverride(),
        hours=hours,
    )


def insert_store(session, code="GMMC1001", status="CLOSED", tz=TZ) -> int:
    store = MerchantStore(
        store_id=code,
        store_name=f"Store {code}",
        timezone=tz,
        operational_status=status,
        is_accepting_orders=status == "OPEN",
        status_version=0,
    )
    session.add(store)
    session.commit()
    return store.id


def failing_update(session, table_name):
    """Wrap ``session.execute`` so bulk UPDATEs against ``table_name`` fail"""
    real_execute = session.execute

    def execute(statement, *args, **kwargs):
        if isinstance(statement, Update) and statement.table.name == table_name:
            raise OperationalError("UPDATE", {}, Exception("database is locked"))
        return real_execute(statement, *args, **kwargs)

    return execute


def failing_query(session, model):
    """Wrap ``session.query`` so queries for ``model`` fail"""
    real_query = session.query

    def query(*entities, **kwargs):
        if entities and entities[0] is model:
            raise OperationalError("SELECT", {}, Exception("connection reset"))
        return real_query(*entities, **kwargs)

    return query
