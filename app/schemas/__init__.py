"""Pydantic schemas for request/response validation"""

from app.schemas.auth import (
    Token,
    ProfileRecord,
    UserResponse,
    Identity,
    AccessDecision,
    MeResponse,
)
from app.schemas.reservation import (
    ReservationStatus,
    ReservationRecord,
    TableAssignment,
    ReservationMetrics,
    ShiftMetrics,
    Shift,
    TableResource,
    DashboardStats,
    DashboardSnapshot,
    RecentReservation,
    StatusUpdateRequest,
    StatusUpdateResponse,
    ReservationListResponse,
)
from app.schemas.agent import (
    AvailableSlot,
    AvailabilityData,
    CreateReservationCommand,
    ReservationResult,
)

__all__ = [
    "Token",
    "ProfileRecord",
    "UserResponse",
    "Identity",
    "AccessDecision",
    "MeResponse",
    "ReservationStatus",
    "ReservationRecord",
    "TableAssignment",
    "ReservationMetrics",
    "ShiftMetrics",
    "Shift",
    "TableResource",
    "DashboardStats",
    "DashboardSnapshot",
    "RecentReservation",
    "StatusUpdateRequest",
    "StatusUpdateResponse",
    "ReservationListResponse",
    "AvailableSlot",
    "AvailabilityData",
    "CreateReservationCommand",
    "ReservationResult",
]
