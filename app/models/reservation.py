"""Reservation models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Integer, Date, Time, DateTime, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.database import Base


class Reservation(Base):
    """Table reservations"""
    __tablename__ = "reservations"
    
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("customers.id"))
    
    # Local calendar date and time of day, no timezone
    date = Column(Date, nullable=False, index=True)
    time = Column(Time, nullable=False)
    guests = Column(Integer, nullable=False)
    duration_minutes = Column(Integer, default=90)
    
    # Status
    status = Column(String(50), default="pending")  # pending, confirmed, cancelled, arrived, completed
    
    special_requests = Column(Text)
    
    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    
    # Relationships
    customer = relationship("Customer", back_populates="reservations")
    table_assignments = relationship(
        "ReservationTableAssignment",
        back_populates="reservation",
        cascade="all, delete-orphan",
    )


class ReservationTableAssignment(Base):
    """Join table between reservations and restaurant tables"""
    __tablename__ = "reservation_table_assignments"
    
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    reservation_id = Column(UUID(as_uuid=True), ForeignKey("reservations.id"), nullable=False)
    table_id = Column(UUID(as_uuid=True), ForeignKey("tables.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    
    reservation = relationship("Reservation", back_populates="table_assignments")
    table = relationship("RestaurantTable")
