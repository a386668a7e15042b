# store_ops/api/routes.py
from typing import Optional
from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session
from store_ops.api.schemas import OperatingHoursRequest, StoreOperationRequest
from store_ops.config import settings
from store_ops.core.errors import NotFoundError, ValidationError
from store_ops.core.operating_hours import (
    get_operating_hours_row,
    serialize_operating_hours,
    upsert_operating_hours,
    validate_closed_days,
    validate_day_updates,
)
from store_ops.core.overrides import CloseRequest, OverrideController, resolve_actor
from store_ops.core.ports import Clock, SystemClock
from store_ops.core.reconciler import AvailabilityReconciler
from store_ops.core.state import Actor
from store_ops.core.store_repository import SqlStatusLogSink, SqlStoreRepository
from store_ops.core.time_utils import to_aware_utc
from store_ops.db import get_db

router = APIRouter()

ACTIONS = ("manual_open", "manual_close", "update_manual_lock")


def get_clock() -> Clock:
    return SystemClock()

def get_actor(
    x_actor_id: Optional[str] = Header(None),
    x_actor_name: Optional[str] = Header(None),
    x_actor_email: Optional[str] = Header(None),
) -> Actor:
    return resolve_actor(x_actor_id, x_actor_name, x_actor_email)


@router.get("/store-operations")
def get_store_operations(
    store_id: Optional[str] = None,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Effective status after reconciling against schedule and overrides"""
    if not store_id:
        raise ValidationError("store_id is required")
    repository = SqlStoreRepository(db)
    reconciler = AvailabilityReconciler(repository, SqlStatusLogSink(db), clock)
    return reconciler.reconcile(repository.resolve_store(store_id)).to_dict()

@router.post("/store-operations")
def post_store_operations(
    body: StoreOperationRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    actor: Actor = Depends(get_actor),
):
    """manual_open | manual_close | update_manual_lock"""
    if not body.store_id or not body.action:
        raise ValidationError("store_id and action are required")
    if body.action not in ACTIONS:
        raise ValidationError(f"Invalid action: {body.action}")

    close_request = None
    if body.action == "manual_close":
        close_request = CloseRequest.build(body.closure_type, body.duration_minutes, body.close_reason)
    elif body.action == "update_manual_lock" and body.block_auto_open is None:
        raise ValidationError("block_auto_open is required")

    repository = SqlStoreRepository(db)
    controller = OverrideController(repository, SqlStatusLogSink(db), clock)
    store_pk = repository.resolve_store(body.store_id)

    if body.action == "manual_open":
        view = controller.open_now(store_pk, actor)
    elif body.action == "manual_close":
        view = controller.close_now(store_pk, close_request, actor)
    else:
        view = controller.update_manual_lock(store_pk, body.block_auto_open, actor)
    return {"success": True, **view.to_dict()}

@router.get("/store-status-log")
def get_store_status_log(
    store_id: Optional[str] = None,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
):
    """Recent open/close activity, newest first"""
    if not store_id:
        raise ValidationError("store_id is required")
    limit = limit or settings.status_log_default_limit
    limit = max(1, min(limit, settings.status_log_max_limit))
    store_pk = SqlStoreRepository(db).resolve_store(store_id)
    return {"logs": SqlStatusLogSink(db).recent(store_pk, limit)}

@router.get("/operating-hours")
def get_operating_hours(store_id: Optional[str] = None, db: Session = Depends(get_db)):
    if not store_id:
        raise ValidationError("store_id is required")
    store_pk = SqlStoreRepository(db).resolve_store(store_id)
    row = get_operating_hours_row(db, store_pk)
    if row is None:
        raise NotFoundError(f"No operating hours for store {store_id}")
    return serialize_operating_hours(row)

@router.put("/operating-hours")
def put_operating_hours(
    body: OperatingHoursRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    actor: Actor = Depends(get_actor),
):
    """Save or update the weekly schedule"""
    if not body.store_id:
        raise ValidationError("store_id is required")
    day_updates = validate_day_updates({name: day.model_dump() for name, day in body.days.items()})
    closed_days = validate_closed_days(body.closed_days)

    store_pk = SqlStoreRepository(db).resolve_store(body.store_id)
    row = upsert_operating_hours(
        db,
        store_pk,
        day_updates,
        closed_days,
        body.is_24_hours,
        body.updated_by_email or actor.email,
        to_aware_utc(clock.now()),
    )
    return {"success": True, **serialize_operating_hours(row)}
