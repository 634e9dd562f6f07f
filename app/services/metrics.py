"""Reservation metrics

Pure aggregation over reservation records. Nothing here does I/O and nothing
depends on the order of the input.
"""

import math
from datetime import date
from typing import Callable, Iterable, List, Optional, Sequence

from app.schemas.reservation import (
    ReservationMetrics,
    ReservationRecord,
    ReservationStatus,
    Shift,
    ShiftMetrics,
)

_STATUS_FIELDS = {
    ReservationStatus.CONFIRMED.value: "confirmed",
    ReservationStatus.CANCELLED.value: "cancelled",
    ReservationStatus.ARRIVED.value: "arrived",
    ReservationStatus.PENDING.value: "pending",
    ReservationStatus.COMPLETED.value: "completed",
}


def compute_metrics(records: Iterable[ReservationRecord]) -> ReservationMetrics:
    """Count reservations per status and sum covers of the active ones"""
    counts = {field: 0 for field in _STATUS_FIELDS.values()}
    total = 0
    other = 0
    active = 0
    total_guests = 0

    for record in records:
        total += 1
        field = _STATUS_FIELDS.get(record.status)
        if field is None:
            other += 1
        else:
            counts[field] += 1
        if record.is_active:
            active += 1
            total_guests += record.guests

    return ReservationMetrics(
        total=total,
        other=other,
        active=active,
        total_guests=total_guests,
        **counts,
    )


def compute_shift_metrics(
    records: Iterable[ReservationRecord],
    in_window: Callable[[ReservationRecord], bool],
) -> ShiftMetrics:
    """Aggregate only the records accepted by ``in_window``"""
    metrics = compute_metrics(record for record in records if in_window(record))
    return ShiftMetrics(
        reservations=metrics.active,
        guests=metrics.total_guests,
        arrived=metrics.arrived,
        cancelled=metrics.cancelled,
    )


def records_in_time_range(
    records: Iterable[ReservationRecord],
    day: date,
    start_time: str,
    end_time: str,
) -> List[ReservationRecord]:
    """Records of ``day`` whose time falls in [start_time, end_time]"""
    return [
        record for record in records
        if record.date == day and start_time <= record.time <= end_time
    ]


def metrics_for_shift(
    records: Iterable[ReservationRecord],
    day: date,
    shifts: Sequence[Shift],
    index: int,
) -> ShiftMetrics:
    """Metrics for the ``index``-th shift of ``day``, zeros if there is none"""
    if index < 0 or index >= len(shifts):
        return ShiftMetrics()

    shift = shifts[index]
    return compute_shift_metrics(
        records,
        lambda record: record.date == day and shift.contains(record),
    )


def total_metrics(records: Iterable[ReservationRecord], day: date) -> ShiftMetrics:
    """Day-wide metrics, regardless of shifts"""
    return compute_shift_metrics(records, lambda record: record.date == day)


def status_count(records: Iterable[ReservationRecord], day: date, status: str) -> int:
    """Number of records of ``day`` with ``status``; "all" counts every status"""
    day_records = [record for record in records if record.date == day]
    if status == "all":
        return len(day_records)
    return sum(1 for record in day_records if record.status == status)


def filter_reservations(
    records: Iterable[ReservationRecord],
    search: str = "",
    status: str = "all",
    day: Optional[date] = None,
) -> List[ReservationRecord]:
    """Admin list filters: free-text search, status and date"""
    filtered = list(records)

    if search:
        needle = search.lower()
        filtered = [
            record for record in filtered
            if needle in record.customer_name.lower()
            or needle in record.email.lower()
            or (record.phone is not None and search in record.phone)
        ]

    if status != "all":
        filtered = [record for record in filtered if record.status == status]

    if day is not None:
        filtered = [record for record in filtered if record.date == day]

    return filtered


def occupancy_rate(active_reservations: int, total_tables: int) -> int:
    """Percentage of active tables holding an active reservation

    Halves round up, and no tables means 0%.
    """
    if total_tables <= 0:
        return 0
    return int(math.floor(active_reservations / total_tables * 100 + 0.5))


def recent_reservations(
    records: Iterable[ReservationRecord],
    limit: int = 5,
) -> List[ReservationRecord]:
    """Latest reservations by date then time, newest first"""
    ordered = sorted(records, key=lambda record: (record.date, record.time), reverse=True)
    return ordered[:limit]
