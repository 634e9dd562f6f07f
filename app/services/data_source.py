"""Data source interface"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Iterable, List, Optional

from app.schemas.agent import AvailableSlot, CreateReservationCommand, ReservationResult
from app.schemas.auth import ProfileRecord
from app.schemas.reservation import ReservationRecord, Scope, Shift, TableResource
from app.services.change_feed import ChangeSubscription

RESERVATIONS_TABLE = "reservations"
ASSIGNMENTS_TABLE = "reservation_table_assignments"
RESERVATION_TABLES = (RESERVATIONS_TABLE, ASSIGNMENTS_TABLE)


class FetchFailure(Exception):
    """A read or write against the data source failed"""


class ReservationNotFound(FetchFailure):
    """An update matched no reservation"""


class DataSource(ABC):
    """Everything the service needs from the hosted database"""

    @abstractmethod
    async def fetch_reservations(self, scope: Scope) -> List[ReservationRecord]:
        """Reservations of ``scope`` joined with customer and tables, newest first"""
        pass

    @abstractmethod
    async def fetch_tables(self, active_only: bool = True) -> List[TableResource]:
        pass

    @abstractmethod
    async def fetch_shifts(self, day: date) -> List[Shift]:
        """Shifts of the schedule that applies to ``day``, in opening order"""
        pass

    @abstractmethod
    async def update_reservation_status(self, reservation_id: str, status: str) -> None:
        """Raise ``ReservationNotFound`` or ``FetchFailure`` when nothing was written"""
        pass

    @abstractmethod
    def subscribe(self, tables: Iterable[str] = RESERVATION_TABLES) -> ChangeSubscription:
        pass

    @abstractmethod
    async def fetch_profile(self, user_id: str) -> Optional[ProfileRecord]:
        pass

    @abstractmethod
    async def fetch_profile_by_email(self, email: str) -> Optional[ProfileRecord]:
        pass

    @abstractmethod
    async def get_available_slots(
        self,
        day: date,
        guests: int,
        duration_minutes: int,
    ) -> List[AvailableSlot]:
        """Delegates to the database's slot computation"""
        pass

    @abstractmethod
    async def create_reservation(self, command: CreateReservationCommand) -> ReservationResult:
        """Delegates to the database's reservation creation and table assignment"""
        pass
