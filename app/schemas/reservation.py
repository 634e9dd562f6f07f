"""Reservation schemas"""

import enum
from datetime import date, datetime, time as dt_time
from typing import Literal, Optional, List, Tuple, Union
from pydantic import BaseModel, Field

ALL_SCOPE = "all"

# A scope is either a calendar date or the literal "all"
Scope = Union[date, Literal["all"]]


class ReservationStatus(str, enum.Enum):
    """Known reservation statuses"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    ARRIVED = "arrived"
    COMPLETED = "completed"


# Statuses that hold a table and count toward covers and occupancy
ACTIVE_STATUSES = frozenset({ReservationStatus.CONFIRMED.value, ReservationStatus.ARRIVED.value})


class TableAssignment(BaseModel):
    """Table assigned to a reservation"""
    table_id: str
    table_name: Optional[str] = None

    class Config:
        frozen = True


class ReservationRecord(BaseModel):
    """Reservation joined with its customer and table assignments.

    ``status`` is kept as a plain string so rows with a status this service
    does not know about still load and aggregate.
    """
    id: str
    date: date
    time: str
    guests: int = Field(gt=0)
    status: str
    customer_name: str = "Sin nombre"
    email: str = "Sin email"
    phone: Optional[str] = None
    duration_minutes: int = Field(default=90, ge=0)
    table_assignments: Tuple[TableAssignment, ...] = ()
    special_requests: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        frozen = True

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class ReservationMetrics(BaseModel):
    """Aggregate counts over a set of reservations"""
    total: int = 0
    confirmed: int = 0
    cancelled: int = 0
    arrived: int = 0
    pending: int = 0
    completed: int = 0
    other: int = 0
    active: int = 0
    total_guests: int = 0


class ShiftMetrics(BaseModel):
    """Metrics for a shift or a whole day"""
    reservations: int = 0
    guests: int = 0
    arrived: int = 0
    cancelled: int = 0


class Shift(BaseModel):
    """Named time window within a day, both ends inclusive"""
    label: str
    opening_time: str
    closing_time: str

    class Config:
        frozen = True

    def contains(self, record: ReservationRecord) -> bool:
        return self.opening_time <= record.time <= self.closing_time


class TableResource(BaseModel):
    """Restaurant table"""
    id: str
    name: str
    capacity: int
    is_active: bool = True

    class Config:
        frozen = True


class DashboardStats(BaseModel):
    """Day-level statistics shown on the dashboard"""
    today_reservations: int = 0
    confirmed_reservations: int = 0
    cancelled_reservations: int = 0
    arrived_reservations: int = 0
    active_reservations: int = 0
    total_tables: int = 0
    occupancy_rate: int = 0
    total_guests: int = 0


class RecentReservation(BaseModel):
    """Compact reservation row for the dashboard"""
    id: str
    name: str
    email: str
    date: date
    time: str
    guests: int
    status: str


class DashboardSnapshot(BaseModel):
    """Everything the dashboard renders for one date"""
    scope_date: date
    stats: DashboardStats = Field(default_factory=DashboardStats)
    recent_reservations: List[RecentReservation] = []
    is_loading: bool = False

    @classmethod
    def empty(cls, scope_date: date, is_loading: bool = False) -> "DashboardSnapshot":
        return cls(scope_date=scope_date, is_loading=is_loading)


class StatusUpdateRequest(BaseModel):
    """Change a reservation status"""
    status: ReservationStatus


class StatusUpdateResponse(BaseModel):
    """Result of a status change"""
    success: bool
    reservation: Optional[ReservationRecord] = None


class ShiftSummary(BaseModel):
    """Metrics of one shift of the day"""
    label: str
    opening_time: str
    closing_time: str
    metrics: ShiftMetrics


class ReservationListResponse(BaseModel):
    """Reservations for the admin list with day and shift metrics"""
    items: List[ReservationRecord]
    total: int
    metrics: ShiftMetrics
    shifts: List[ShiftSummary] = []


def format_time(value: Union[dt_time, str]) -> str:
    """Render a time of day as HH:MM"""
    if isinstance(value, str):
        return value[:5]
    return value.strftime("%H:%M")
