# models.py
from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text, Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from .db import Base


def _utcnow():
    return datetime.now(timezone.utc)


class MerchantStore(Base):
    __tablename__ = "merchant_stores"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(String, unique=True, index=True, nullable=False)  # public code, e.g. GMMC1001
    store_name = Column(String, nullable=True)
    timezone = Column(String, nullable=True)
    operational_status = Column(String, nullable=False, default="CLOSED")
    is_accepting_orders = Column(Boolean, nullable=False, default=False)
    # bumped on every status/override write, used for conditional updates
    status_version = Column(Integer, nullable=False, default=0)


class StoreAvailability(Base):
    __tablename__ = "merchant_store_availability"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("merchant_stores.id"), unique=True, nullable=False)
    manual_close_until = Column(DateTime(timezone=True), nullable=True)
    block_auto_open = Column(Boolean, nullable=False, default=False)
    restriction_type = Column(String, nullable=True)
    auto_open_from_schedule = Column(Boolean, nullable=False, default=True)

    last_toggled_by_id = Column(String, nullable=True)
    last_toggled_by_name = Column(String, nullable=True)
    last_toggled_by_email = Column(String, nullable=True)
    last_toggle_type = Column(String, nullable=True)
    last_toggled_at = Column(DateTime(timezone=True), nullable=True)


class StoreOperatingHours(Base):
    __tablename__ = "merchant_store_operating_hours"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("merchant_stores.id"), unique=True, nullable=False)
    is_24_hours = Column(Boolean, nullable=False, default=False)
    closed_days = Column(JSON, nullable=True)  # list of day names, e.g. ["monday"]
    updated_by_email = Column(String, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow)

    days = relationship(
        "StoreOperatingHoursDay",
        cascade="all, delete-orphan",
        order_by="StoreOperatingHoursDay.day_of_week",
    )


class StoreOperatingHoursDay(Base):
    __tablename__ = "merchant_store_operating_hours_days"

    id = Column(Integer, primary_key=True, index=True)
    operating_hours_id = Column(Integer, ForeignKey("merchant_store_operating_hours.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 6=Saturday
    is_open = Column(Boolean, nullable=False, default=False)
    is_24_hours = Column(Boolean, nullable=False, default=False)
    slot1_start = Column(Time, nullable=True)
    slot1_end = Column(Time, nullable=True)
    slot2_start = Column(Time, nullable=True)
    slot2_end = Column(Time, nullable=True)

    __table_args__ = (
        UniqueConstraint("operating_hours_id", "day_of_week", name="uq_hours_day"),
    )


class StoreStatusLog(Base):
    __tablename__ = "merchant_store_status_log"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("merchant_stores.id"), nullable=False)
    action = Column(String, nullable=False)
    restriction_type = Column(String, nullable=True)
    close_reason = Column(Text, nullable=True)
    performed_by_id = Column(String, nullable=True)
    performed_by_name = Column(String, nullable=True)
    performed_by_email = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_status_log_store_created", "store_id", "created_at"),
    )
