# store_ops/api/schemas.py
from typing import Any, Dict, List, Optional
from pydantic import BaseModel


class StoreOperationRequest(BaseModel):
    store_id: Optional[str] = None
    action: Optional[str] = None
    closure_type: Optional[str] = None
    # checked by CloseRequest.build so range errors share one message
    duration_minutes: Optional[Any] = None
    close_reason: Optional[str] = None
    block_auto_open: Optional[bool] = None


class DayHoursIn(BaseModel):
    open: bool = False
    is_24_hours: bool = False
    slot1_start: Optional[str] = None
    slot1_end: Optional[str] = None
    slot2_start: Optional[str] = None
    slot2_end: Optional[str] = None


class OperatingHoursRequest(BaseModel):
    store_id: Optional[str] = None
    is_24_hours: Optional[bool] = None
    closed_days: Optional[List[str]] = None
    days: Dict[str, DayHoursIn] = {}
    updated_by_email: Optional[str] = None
