"""Reservation management API endpoints"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
import structlog

from app.api.auth import require_access
from app.api.deps import get_data_source, get_reservation_store
from app.schemas.reservation import (
    ReservationListResponse,
    ReservationRecord,
    ShiftMetrics,
    ShiftSummary,
    StatusUpdateRequest,
    StatusUpdateResponse,
)
from app.services.data_source import DataSource, FetchFailure
from app.services.metrics import (
    compute_shift_metrics,
    filter_reservations,
    metrics_for_shift,
    total_metrics,
)
from app.services.reservation_store import ReservationStore

router = APIRouter()
logger = structlog.get_logger()


async def _ensure_loaded(store: ReservationStore) -> bool:
    """Fill the shared store on first use; False when the data source is down"""
    if store.loaded_scope is not None:
        return True
    try:
        await store.load()
    except FetchFailure as e:
        logger.error("Reservations unavailable", error=str(e))
        return False
    return True


async def _refresh(store: ReservationStore) -> bool:
    """Reload the shared store so rows written by other processes show up"""
    try:
        await store.load()
    except FetchFailure as e:
        if not store.records:
            logger.error("Reservations unavailable", error=str(e))
            return False
        logger.warning("Reload failed, serving cached reservations", error=str(e))
    return True


@router.get(
    "",
    response_model=ReservationListResponse,
    dependencies=[Depends(require_access(permission="reservations.view"))],
)
async def list_reservations(
    day: Optional[date] = Query(None, alias="date"),
    status: str = "all",
    search: str = "",
    store: ReservationStore = Depends(get_reservation_store),
    data_source: DataSource = Depends(get_data_source),
):
    """List reservations with day and per-shift metrics"""
    if not await _refresh(store):
        return ReservationListResponse(items=[], total=0, metrics=ShiftMetrics())

    records = store.records
    items = filter_reservations(records, search=search, status=status, day=day)

    shifts = []
    if day is None:
        metrics = compute_shift_metrics(records, lambda record: True)
    else:
        metrics = total_metrics(records, day)
        try:
            day_shifts = await data_source.fetch_shifts(day)
        except FetchFailure as e:
            logger.warning("Schedules unavailable, omitting shift metrics", date=day.isoformat(), error=str(e))
            day_shifts = []
        shifts = [
            ShiftSummary(
                label=shift.label,
                opening_time=shift.opening_time,
                closing_time=shift.closing_time,
                metrics=metrics_for_shift(records, day, day_shifts, index),
            )
            for index, shift in enumerate(day_shifts)
        ]

    return ReservationListResponse(
        items=items,
        total=len(items),
        metrics=metrics,
        shifts=shifts,
    )


@router.get(
    "/{reservation_id}",
    response_model=ReservationRecord,
    dependencies=[Depends(require_access(permission="reservations.view"))],
)
async def get_reservation(
    reservation_id: str,
    store: ReservationStore = Depends(get_reservation_store),
):
    """Get reservation details"""
    await _ensure_loaded(store)
    reservation = store.get(reservation_id)

    if not reservation:
        raise HTTPException(status_code=404, detail="Reservation not found")

    return reservation


@router.patch(
    "/{reservation_id}/status",
    response_model=StatusUpdateResponse,
    dependencies=[Depends(require_access(permission="reservations.edit"))],
)
async def update_reservation_status(
    reservation_id: str,
    update: StatusUpdateRequest,
    store: ReservationStore = Depends(get_reservation_store),
):
    """Change the status of a reservation"""
    await _ensure_loaded(store)
    if not await store.update_status(reservation_id, update.status.value):
        raise HTTPException(status_code=502, detail="Could not update reservation status")

    return StatusUpdateResponse(success=True, reservation=store.get(reservation_id))


@router.post(
    "/{reservation_id}/arrival",
    response_model=StatusUpdateResponse,
    dependencies=[Depends(require_access(permission="reservations.edit"))],
)
async def confirm_arrival(
    reservation_id: str,
    store: ReservationStore = Depends(get_reservation_store),
):
    """Mark a reservation as arrived"""
    await _ensure_loaded(store)
    if not await store.confirm_arrival(reservation_id):
        raise HTTPException(status_code=502, detail="Could not confirm arrival")

    return StatusUpdateResponse(success=True, reservation=store.get(reservation_id))
