#!/usr/bin/env python3
"""
Seed script to create demo restaurant data
"""

import asyncio
import uuid
from datetime import time, timedelta

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


async def seed_demo_data():
    """Seed demo data for development"""
    from app.config import settings
    from app.database import SessionLocal, engine, Base
    from app.models.customer import Customer
    from app.models.reservation import Reservation, ReservationTableAssignment
    from app.models.table import RestaurantTable, RestaurantSchedule
    from app.models.user import Profile, UserRole
    from app.services.dashboard import restaurant_today

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        # Check if demo data already exists
        from sqlalchemy import select
        result = await db.execute(
            select(Profile).where(Profile.email == "admin@tablebook.local")
        )
        existing = result.scalar_one_or_none()

        if existing:
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo profiles...")

        db.add(Profile(
            id=uuid.uuid4(),
            email="admin@tablebook.local",
            hashed_password=pwd_context.hash("admin123"),
            full_name="Admin",
            role=UserRole.ADMIN,
        ))
        db.add(Profile(
            id=uuid.uuid4(),
            email="sala@tablebook.local",
            hashed_password=pwd_context.hash("sala123"),
            full_name="Floor staff",
            role=UserRole.USER,
        ))

        print("Creating tables and schedules...")

        tables = []
        for number, capacity in enumerate([2, 2, 4, 4, 4, 6, 6, 8], start=1):
            table = RestaurantTable(id=uuid.uuid4(), name=f"Mesa {number}", capacity=capacity)
            db.add(table)
            tables.append(table)

        # Split schedule from Tuesday (2) to Sunday (0); closed on Mondays
        for day_of_week in [0, 2, 3, 4, 5, 6]:
            db.add(RestaurantSchedule(
                day_of_week=day_of_week,
                opening_time=time(13, 0),
                closing_time=time(16, 0),
            ))
            db.add(RestaurantSchedule(
                day_of_week=day_of_week,
                opening_time=time(20, 0),
                closing_time=time(23, 30),
            ))

        print("Creating reservations...")

        today = restaurant_today(settings.restaurant_timezone)
        demo_reservations = [
            ("Lucía Fernández", "lucia@example.com", "+34600111222", today, time(13, 30), 2, "confirmed"),
            ("Marcos Ruiz", "marcos@example.com", "+34600333444", today, time(14, 0), 4, "arrived"),
            ("Elena Torres", "elena@example.com", None, today, time(21, 0), 6, "pending"),
            ("Javier Gil", "javier@example.com", "+34600555666", today, time(21, 30), 2, "cancelled"),
            ("Sara Molina", "sara@example.com", None, today + timedelta(days=1), time(20, 30), 3, "confirmed"),
        ]

        for index, (name, email, phone, day, at, guests, status) in enumerate(demo_reservations):
            customer = Customer(id=uuid.uuid4(), name=name, email=email, phone=phone)
            db.add(customer)
            reservation = Reservation(
                id=uuid.uuid4(),
                customer_id=customer.id,
                date=day,
                time=at,
                guests=guests,
                status=status,
                duration_minutes=settings.default_duration_minutes,
            )
            db.add(reservation)
            if status != "cancelled":
                db.add(ReservationTableAssignment(
                    reservation_id=reservation.id,
                    table_id=tables[index % len(tables)].id,
                ))

        await db.commit()

        print(f"""
Demo data created successfully!

Profiles:
  Admin:
    Email: admin@tablebook.local
    Password: admin123

  Floor staff:
    Email: sala@tablebook.local
    Password: sala123

Tables: {len(tables)} created
Reservations: {len(demo_reservations)} created around {today.isoformat()}
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
