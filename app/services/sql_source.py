"""SQLAlchemy implementation of the data source"""

import json
from datetime import date, datetime
from typing import Iterable, List, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError
from sqlalchemy import select, update, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from app.models.reservation import Reservation, ReservationTableAssignment
from app.models.table import RestaurantSchedule, RestaurantTable
from app.models.user import Profile
from app.schemas.agent import AvailableSlot, CreateReservationCommand, ReservationResult
from app.schemas.auth import ProfileRecord
from app.schemas.reservation import (
    ALL_SCOPE,
    ReservationRecord,
    Scope,
    Shift,
    TableAssignment,
    TableResource,
    format_time,
)
from app.services.change_feed import ChangeEvent, ChangeFeed, ChangeOperation, ChangeSubscription
from app.services.data_source import (
    ASSIGNMENTS_TABLE,
    RESERVATION_TABLES,
    RESERVATIONS_TABLE,
    DataSource,
    FetchFailure,
    ReservationNotFound,
)

logger = structlog.get_logger()

# Shifts opening before this time are lunch services
DINNER_CUTOFF = "17:00"


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except ValueError:
        return None


class SqlDataSource(DataSource):
    """Data source backed by the restaurant database

    Writes made through this object are published on ``feed`` once committed,
    unless ``publish_writes`` is off because a database listener already
    relays every change.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        feed: Optional[ChangeFeed] = None,
        default_duration_minutes: int = 90,
        publish_writes: bool = True,
    ):
        self._session_factory = session_factory
        self.feed = feed or ChangeFeed()
        self.default_duration_minutes = default_duration_minutes
        self.publish_writes = publish_writes

    def _to_record(self, reservation: Reservation) -> ReservationRecord:
        customer = reservation.customer
        assignments = tuple(
            TableAssignment(
                table_id=str(assignment.table_id),
                table_name=assignment.table.name if assignment.table else None,
            )
            for assignment in reservation.table_assignments
        )
        return ReservationRecord(
            id=str(reservation.id),
            date=reservation.date,
            time=format_time(reservation.time),
            guests=reservation.guests,
            status=reservation.status or "pending",
            customer_name=(customer.name if customer and customer.name else "Sin nombre"),
            email=(customer.email if customer and customer.email else "Sin email"),
            phone=customer.phone if customer else None,
            duration_minutes=(
                reservation.duration_minutes
                if reservation.duration_minutes is not None
                else self.default_duration_minutes
            ),
            table_assignments=assignments,
            special_requests=reservation.special_requests,
            created_at=reservation.created_at,
        )

    async def fetch_reservations(self, scope: Scope) -> List[ReservationRecord]:
        query = (
            select(Reservation)
            .options(
                selectinload(Reservation.customer),
                selectinload(Reservation.table_assignments).selectinload(
                    ReservationTableAssignment.table
                ),
            )
            .order_by(Reservation.date.desc(), Reservation.time.desc())
        )
        if scope != ALL_SCOPE:
            query = query.where(Reservation.date == scope)

        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Failed to fetch reservations", scope=str(scope), error=str(e))
            raise FetchFailure("Could not load reservations") from e

        records = []
        for row in rows:
            try:
                records.append(self._to_record(row))
            except ValidationError as e:
                logger.warning("Skipping invalid reservation row", reservation_id=str(row.id), error=str(e))
        return records

    async def fetch_tables(self, active_only: bool = True) -> List[TableResource]:
        query = select(RestaurantTable).order_by(RestaurantTable.name)
        if active_only:
            query = query.where(RestaurantTable.is_active == True)

        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                tables = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Failed to fetch tables", error=str(e))
            raise FetchFailure("Could not load tables") from e

        return [
            TableResource(
                id=str(table.id),
                name=table.name,
                capacity=table.capacity,
                is_active=bool(table.is_active),
            )
            for table in tables
        ]

    async def fetch_shifts(self, day: date) -> List[Shift]:
        # Schedules number days from Sunday = 0
        day_of_week = (day.weekday() + 1) % 7
        query = (
            select(RestaurantSchedule)
            .where(
                RestaurantSchedule.day_of_week == day_of_week,
                RestaurantSchedule.is_active == True,
            )
            .order_by(RestaurantSchedule.opening_time)
        )

        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                schedules = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Failed to fetch schedules", day=day.isoformat(), error=str(e))
            raise FetchFailure("Could not load schedules") from e

        shifts = []
        for schedule in schedules:
            opening = format_time(schedule.opening_time)
            shifts.append(
                Shift(
                    label="lunch" if opening < DINNER_CUTOFF else "dinner",
                    opening_time=opening,
                    closing_time=format_time(schedule.closing_time),
                )
            )
        return shifts

    async def update_reservation_status(self, reservation_id: str, status: str) -> None:
        key = _parse_uuid(reservation_id)
        if key is None:
            raise ReservationNotFound(reservation_id)

        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(Reservation)
                    .where(Reservation.id == key)
                    .values(status=status, updated_at=datetime.utcnow())
                )
                if result.rowcount == 0:
                    await session.rollback()
                    raise ReservationNotFound(reservation_id)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to update reservation", reservation_id=reservation_id, error=str(e))
            raise FetchFailure("Could not update reservation") from e

        if self.publish_writes:
            self.feed.publish(
                ChangeEvent(
                    table=RESERVATIONS_TABLE,
                    operation=ChangeOperation.UPDATE,
                    record_id=reservation_id,
                )
            )

    def subscribe(self, tables: Iterable[str] = RESERVATION_TABLES) -> ChangeSubscription:
        return self.feed.subscribe(tables)

    async def _profile_where(self, condition) -> Optional[ProfileRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(select(Profile).where(condition))
                profile = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Failed to fetch profile", error=str(e))
            raise FetchFailure("Could not load profile") from e

        if profile is None:
            return None
        return ProfileRecord(
            id=str(profile.id),
            email=profile.email,
            full_name=profile.full_name,
            role=profile.role,
            is_active=bool(profile.is_active),
            hashed_password=profile.hashed_password,
            created_at=profile.created_at,
            last_login=profile.last_login,
        )

    async def fetch_profile(self, user_id: str) -> Optional[ProfileRecord]:
        key = _parse_uuid(user_id)
        if key is None:
            return None
        return await self._profile_where(Profile.id == key)

    async def fetch_profile_by_email(self, email: str) -> Optional[ProfileRecord]:
        return await self._profile_where(Profile.email == email)

    async def get_available_slots(
        self,
        day: date,
        guests: int,
        duration_minutes: int,
    ) -> List[AvailableSlot]:
        statement = text(
            "SELECT * FROM get_available_time_slots(:p_date, :p_guests, :p_duration_minutes)"
        )
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    statement,
                    {"p_date": day, "p_guests": guests, "p_duration_minutes": duration_minutes},
                )
                rows = result.mappings().all()
        except SQLAlchemyError as e:
            logger.error("Availability procedure failed", date=day.isoformat(), error=str(e))
            raise FetchFailure("Failed to fetch available time slots") from e

        return [
            AvailableSlot(
                id=str(row["id"]) if row.get("id") is not None else None,
                time=format_time(row["slot_time"]),
                capacity=row.get("capacity"),
            )
            for row in rows
        ]

    async def create_reservation(self, command: CreateReservationCommand) -> ReservationResult:
        statement = text(
            "SELECT admin_create_reservation("
            ":p_customer_name, :p_customer_email, :p_customer_phone, :p_date, :p_time, "
            ":p_guests, :p_special_requests, :p_table_ids, :p_duration_minutes) AS result"
        )
        params = {
            "p_customer_name": command.name,
            "p_customer_email": command.email,
            "p_customer_phone": command.phone,
            "p_date": command.date,
            "p_time": command.time,
            "p_guests": command.guests,
            "p_special_requests": command.comments,
            "p_table_ids": command.table_ids,
            "p_duration_minutes": command.duration_minutes,
        }
        try:
            async with self._session_factory() as session:
                result = await session.execute(statement, params)
                payload = result.scalar_one()
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Reservation procedure failed", error=str(e))
            raise FetchFailure(f"Failed to create reservation: {e}") from e

        if isinstance(payload, str):
            payload = json.loads(payload)
        payload = payload or {}

        outcome = ReservationResult(
            success=bool(payload.get("success")),
            reservation_id=(
                str(payload["reservation_id"]) if payload.get("reservation_id") else None
            ),
            assigned_tables=[str(table) for table in payload.get("assigned_tables") or []],
            error=payload.get("error"),
        )

        if outcome.success and self.publish_writes:
            self.feed.publish(
                ChangeEvent(
                    table=RESERVATIONS_TABLE,
                    operation=ChangeOperation.INSERT,
                    record_id=outcome.reservation_id,
                )
            )
            if outcome.assigned_tables:
                self.feed.publish(
                    ChangeEvent(table=ASSIGNMENTS_TABLE, operation=ChangeOperation.INSERT)
                )
        return outcome
