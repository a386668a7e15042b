#etl.py
import logging
import os
import sys
import pandas as pd
import pytz
from sqlalchemy.orm import Session
from store_ops.config import settings
from store_ops.core.time_utils import DAY_NAMES, minutes_to_time, parse_minutes
from store_ops.db import engine, Base
from store_ops.models import (
    MerchantStore, StoreAvailability, StoreOperatingHours, StoreOperatingHoursDay, StoreStatusLog,
)

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "y", "t"}

#Extract files
def load_csv(file_path: str) -> pd.DataFrame:
    return pd.read_csv(file_path, dtype=str, keep_default_na=True)

def truncate_tables(session: Session):
    """ Truncate all target tables before reload, children first """
    for model in [StoreStatusLog, StoreAvailability, StoreOperatingHoursDay, StoreOperatingHours, MerchantStore]:
        session.execute(model.__table__.delete())
    session.commit()
    logger.info("Tables truncated")

def bulk_insert_in_batches(session: Session, records: list, batch_size: int = 500):
    """Insert records in batches to avoid parameter limits."""
    for i in range(0, len(records), batch_size):
        batch = records[i:i+batch_size]
        session.add_all(batch)
        session.commit()

def _clean(value):
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return None
    value = str(value).strip()
    return value or None

def _as_bool(value) -> bool:
    value = _clean(value)
    return value is not None and value.lower() in TRUE_VALUES

def _as_weekday(value) -> int:
    value = _clean(value)
    if value is None:
        raise ValueError("day is required")
    if value.isdigit():
        day = int(value)
        if not 0 <= day <= 6:
            raise ValueError(f"day out of range: {value}")
        return day
    return DAY_NAMES.index(value.lower())

def _as_time(value):
    minutes = parse_minutes(_clean(value))
    return minutes_to_time(minutes) if minutes is not None else None

# Transform & Load
def ingest_stores(session: Session, df: pd.DataFrame) -> dict:
    required_cols = {"store_id", "timezone"}
    if not required_cols.issubset(df.columns):
        raise ValueError("stores.csv missing required columns")

    df = df.copy()
    df["store_id"] = df["store_id"].str.strip()
    df.dropna(subset=["store_id"], inplace=True)
    df.drop_duplicates(subset=["store_id"], keep="last", inplace=True)
    df["timezone"] = df["timezone"].fillna(settings.default_timezone).str.strip()
    df.loc[~df["timezone"].isin(pytz.all_timezones), "timezone"] = settings.default_timezone
    if "operational_status" not in df.columns:
        df["operational_status"] = "CLOSED"
    df["operational_status"] = df["operational_status"].fillna("CLOSED").str.upper().str.strip()
    df.loc[~df["operational_status"].isin(["OPEN", "CLOSED"]), "operational_status"] = "CLOSED"

    records = [
        MerchantStore(
            store_id=row["store_id"],
            store_name=_clean(row.get("store_name")),
            timezone=row["timezone"],
            operational_status=row["operational_status"],
            is_accepting_orders=row["operational_status"] == "OPEN",
            status_version=0,
        )
        for row in df.to_dict(orient="records")
    ]
    bulk_insert_in_batches(session, records, batch_size=500)
    logger.info(f"Loaded {len(records)} rows into merchant_stores")
    return {store.store_id: store.id for store in records}

def ingest_operating_hours(session: Session, df: pd.DataFrame, store_ids: dict):
    required_cols = {"store_id", "day", "open", "slot1_start", "slot1_end"}
    if not required_cols.issubset(df.columns):
        raise ValueError("operating_hours.csv missing required columns")

    df = df.copy()
    for col in ("slot2_start", "slot2_end", "is_24_hours"):
        if col not in df.columns:
            df[col] = None
    df["store_id"] = df["store_id"].str.strip()
    df = df[df["store_id"].isin(list(store_ids))]

    records = []
    for store_code, group in df.groupby("store_id"):
        days = {}
        for row in group.to_dict(orient="records"):
            weekday = _as_weekday(row["day"])
            days[weekday] = StoreOperatingHoursDay(
                day_of_week=weekday,
                is_open=_as_bool(row["open"]),
                is_24_hours=_as_bool(row["is_24_hours"]),
                slot1_start=_as_time(row["slot1_start"]),
                slot1_end=_as_time(row["slot1_end"]),
                slot2_start=_as_time(row["slot2_start"]),
                slot2_end=_as_time(row["slot2_end"]),
            )
        closed = [DAY_NAMES[d] for d in range(7) if d not in days or not days[d].is_open]
        hours = StoreOperatingHours(
            store_id=store_ids[store_code],
            is_24_hours=False,
            closed_days=closed or None,
        )
        hours.days = [days[d] for d in sorted(days)]
        records.append(hours)

    bulk_insert_in_batches(session, records, batch_size=200)
    logger.info(f"Loaded operating hours for {len(records)} stores")

def run_etl(data_dir: str = "data"):
    stores_df = load_csv(os.path.join(data_dir, "stores.csv"))
    hours_df = load_csv(os.path.join(data_dir, "operating_hours.csv"))

    logger.info(f"Stores sample:\n{stores_df.head()}")
    logger.info(f"Operating hours sample:\n{hours_df.head()}")

    Base.metadata.create_all(bind=engine)
    with Session(engine) as session:
        truncate_tables(session)
        store_ids = ingest_stores(session, stores_df)
        ingest_operating_hours(session, hours_df, store_ids)

if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    run_etl(sys.argv[1] if len(sys.argv) > 1 else "data")
