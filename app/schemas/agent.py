"""Schemas for the agent functions"""

from datetime import date
from typing import Optional, List
from pydantic import BaseModel


class AvailableSlot(BaseModel):
    """Slot returned by the availability procedure"""
    id: Optional[str] = None
    time: str
    capacity: Optional[int] = None


class AvailabilityData(BaseModel):
    """Payload of a successful availability lookup"""
    date: str
    guests: int
    duration_minutes: int
    available_slots: List[AvailableSlot]
    total_slots: int


class CreateReservationCommand(BaseModel):
    """Validated input for the reservation creation procedure"""
    name: str
    email: str
    phone: Optional[str] = None
    date: date
    time: str
    guests: int
    comments: Optional[str] = None
    duration_minutes: int = 90
    table_ids: Optional[List[str]] = None


class ReservationResult(BaseModel):
    """Outcome reported by the reservation creation procedure"""
    success: bool
    reservation_id: Optional[str] = None
    assigned_tables: Optional[List[str]] = None
    error: Optional[str] = None
