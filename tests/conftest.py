"""Test configuration and fixtures"""

import asyncio
from datetime import date, datetime, time
from typing import Dict, List, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from uuid import uuid4

from app.main import app
from app.functions.main import app as functions_app
from app.database import Base
from app.api.auth import create_access_token, get_password_hash
from app.api.deps import get_data_source, get_reservation_store
from app.models import (
    Customer,
    Profile,
    Reservation,
    ReservationTableAssignment,
    RestaurantSchedule,
    RestaurantTable,
    UserRole,
)
from app.schemas.agent import AvailableSlot, ReservationResult
from app.schemas.auth import ProfileRecord
from app.schemas.reservation import ALL_SCOPE, ReservationRecord, Shift, TableResource
from app.services.change_feed import ChangeFeed
from app.services.data_source import DataSource, FetchFailure, ReservationNotFound
from app.services.reservation_store import ReservationStore
from app.services.sql_source import SqlDataSource


# Test database URL (one SQLite file per test under tmp_path)
TEST_DATABASE_URL = "sqlite+aiosqlite:///{path}"

DAY = date(2025, 3, 14)
NEXT_DAY = date(2025, 3, 15)


def make_record(
    record_id: str,
    day: date = DAY,
    at: str = "20:00",
    guests: int = 2,
    status: str = "confirmed",
    name: str = "Ana García",
    email: str = "ana@example.com",
    phone: Optional[str] = None,
) -> ReservationRecord:
    return ReservationRecord(
        id=record_id,
        date=day,
        time=at,
        guests=guests,
        status=status,
        customer_name=name,
        email=email,
        phone=phone,
    )


class FakeDataSource(DataSource):
    """In-memory data source with switchable failures.

    ``gates`` holds an event per scope; a fetch of that scope waits for it,
    which lets tests decide the order in which concurrent loads finish.
    """

    def __init__(self, records=(), tables=(), shifts=(), profiles=()):
        self.records: List[ReservationRecord] = list(records)
        self.tables: List[TableResource] = list(tables)
        self.shifts: List[Shift] = list(shifts)
        self.profiles: Dict[str, ProfileRecord] = {profile.id: profile for profile in profiles}
        self.feed = ChangeFeed()
        self.gates: Dict[object, asyncio.Event] = {}
        self.fetch_calls: List[object] = []
        self.updates: List[tuple] = []
        self.fail_fetch = False
        self.fail_update = False
        self.fail_tables = False
        self.fail_slots = False
        self.slots: List[AvailableSlot] = []
        self.create_result = ReservationResult(
            success=True,
            reservation_id="res-new",
            assigned_tables=["table-1"],
        )
        self.created = []

    async def fetch_reservations(self, scope):
        self.fetch_calls.append(scope)
        # Rows are read before waiting, so a held fetch returns what was there when it started
        if scope == ALL_SCOPE:
            rows = list(self.records)
        else:
            rows = [record for record in self.records if record.date == scope]
        gate = self.gates.get(scope)
        if gate is not None:
            await gate.wait()
        if self.fail_fetch:
            raise FetchFailure("reservations unavailable")
        return rows

    async def fetch_tables(self, active_only: bool = True):
        if self.fail_tables:
            raise FetchFailure("tables unavailable")
        if active_only:
            return [table for table in self.tables if table.is_active]
        return list(self.tables)

    async def fetch_shifts(self, day: date):
        return list(self.shifts)

    async def update_reservation_status(self, reservation_id: str, status: str) -> None:
        if self.fail_update:
            raise FetchFailure("write rejected")
        for index, record in enumerate(self.records):
            if record.id == reservation_id:
                self.records[index] = record.model_copy(update={"status": status})
                self.updates.append((reservation_id, status))
                return
        raise ReservationNotFound(reservation_id)

    def subscribe(self, tables=("reservations", "reservation_table_assignments")):
        return self.feed.subscribe(tables)

    async def fetch_profile(self, user_id: str):
        return self.profiles.get(user_id)

    async def fetch_profile_by_email(self, email: str):
        for profile in self.profiles.values():
            if profile.email == email:
                return profile
        return None

    async def get_available_slots(self, day: date, guests: int, duration_minutes: int):
        if self.fail_slots:
            raise FetchFailure("Failed to fetch available time slots")
        return list(self.slots)

    async def create_reservation(self, command):
        self.created.append(command)
        return self.create_result


@pytest.fixture
def admin_profile():
    return ProfileRecord(id=str(uuid4()), email="admin@example.com", full_name="Admin", role=UserRole.ADMIN)


@pytest.fixture
def staff_profile():
    return ProfileRecord(id=str(uuid4()), email="staff@example.com", full_name="Staff", role=UserRole.USER)


@pytest.fixture
def fake_source(admin_profile, staff_profile):
    """Fake data source with one day of reservations and four tables"""
    records = [
        make_record("r1", at="13:30", guests=2, status="confirmed", name="Ana García"),
        make_record("r2", at="14:00", guests=4, status="arrived", name="Luis Pérez", email="luis@example.com"),
        make_record("r3", at="21:00", guests=3, status="pending", name="Marta Ruiz", email="marta@example.com"),
        make_record("r4", at="21:30", guests=5, status="cancelled", name="Pablo Gil", email="pablo@example.com"),
        make_record("r5", day=NEXT_DAY, at="20:00", guests=2, status="confirmed", name="Sara Molina"),
    ]
    tables = [
        TableResource(id=f"t{number}", name=f"Mesa {number}", capacity=4)
        for number in range(1, 5)
    ]
    shifts = [
        Shift(label="lunch", opening_time="13:00", closing_time="16:00"),
        Shift(label="dinner", opening_time="20:00", closing_time="23:30"),
    ]
    return FakeDataSource(records, tables, shifts, profiles=[admin_profile, staff_profile])


@pytest.fixture
async def client(fake_source):
    """Admin API client backed by the fake data source"""
    store = ReservationStore(fake_source, scope=ALL_SCOPE)
    app.dependency_overrides[get_data_source] = lambda: fake_source
    app.dependency_overrides[get_reservation_store] = lambda: store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    await store.close()


@pytest.fixture
async def admin_client(client, admin_profile):
    """Create admin authenticated test client"""
    token = create_access_token(admin_profile)
    client.headers["Authorization"] = f"Bearer {token}"

    return client


@pytest.fixture
async def staff_client(client, staff_profile):
    """Create authenticated test client for a non-admin profile"""
    token = create_access_token(staff_profile)
    client.headers["Authorization"] = f"Bearer {token}"

    return client


@pytest.fixture
async def functions_client(fake_source):
    """Agent functions client backed by the fake data source"""
    functions_app.dependency_overrides[get_data_source] = lambda: fake_source

    async with AsyncClient(transport=ASGITransport(app=functions_app), base_url="http://test") as client:
        yield client

    functions_app.dependency_overrides.clear()


@pytest.fixture
async def test_engine(tmp_path):
    """Create test database"""
    engine = create_async_engine(
        TEST_DATABASE_URL.format(path=tmp_path / "tablebook.db"),
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def seeded_db(test_engine):
    """Restaurant with two profiles, three tables, one schedule and three reservations"""
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    admin = Profile(
        id=uuid4(),
        email="admin@tablebook.local",
        hashed_password=get_password_hash("adminpass123"),
        full_name="Admin User",
        role=UserRole.ADMIN,
        is_active=True,
    )
    staff = Profile(
        id=uuid4(),
        email="sala@tablebook.local",
        hashed_password=get_password_hash("salapass123"),
        full_name="Floor Staff",
        role=UserRole.USER,
        is_active=True,
    )
    tables = [
        RestaurantTable(id=uuid4(), name="Mesa 1", capacity=2, is_active=True),
        RestaurantTable(id=uuid4(), name="Mesa 2", capacity=4, is_active=True),
        RestaurantTable(id=uuid4(), name="Terraza", capacity=6, is_active=False),
    ]
    customer = Customer(id=uuid4(), name="Lucía Fernández", email="lucia@example.com", phone="+34600111222")
    reservations = [
        Reservation(
            id=uuid4(),
            customer_id=customer.id,
            date=DAY,
            time=time(13, 30),
            guests=2,
            status="confirmed",
            duration_minutes=90,
            created_at=datetime(2025, 3, 1, 10, 0),
        ),
        Reservation(
            id=uuid4(),
            customer_id=customer.id,
            date=DAY,
            time=time(21, 0),
            guests=4,
            status="pending",
            duration_minutes=120,
            created_at=datetime(2025, 3, 2, 10, 0),
        ),
        Reservation(
            id=uuid4(),
            customer_id=customer.id,
            date=NEXT_DAY,
            time=time(20, 30),
            guests=3,
            status="confirmed",
            duration_minutes=90,
            created_at=datetime(2025, 3, 3, 10, 0),
        ),
    ]

    async with session_factory() as session:
        session.add_all([admin, staff, customer, *tables, *reservations])
        session.add(
            ReservationTableAssignment(
                reservation_id=reservations[0].id,
                table_id=tables[0].id,
            )
        )
        # DAY is a Friday; schedules number days from Sunday = 0
        session.add_all([
            RestaurantSchedule(day_of_week=5, opening_time=time(13, 0), closing_time=time(16, 0)),
            RestaurantSchedule(day_of_week=5, opening_time=time(20, 0), closing_time=time(23, 30)),
        ])
        await session.commit()

    return {
        "session_factory": session_factory,
        "admin": admin,
        "staff": staff,
        "tables": tables,
        "reservations": reservations,
    }


@pytest.fixture
async def sql_source(seeded_db):
    return SqlDataSource(seeded_db["session_factory"])


@pytest.fixture
async def sql_client(sql_source):
    """Admin API client backed by the SQLite database"""
    store = ReservationStore(sql_source, scope=ALL_SCOPE)
    app.dependency_overrides[get_data_source] = lambda: sql_source
    app.dependency_overrides[get_reservation_store] = lambda: store

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    await store.close()
